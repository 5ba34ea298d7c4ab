"""Live markdown rendering of a streamed reply.

`MarkdownStream` is a stream listener: hand it to the relay and it
redraws the reply as deltas arrive, then prints the finished reply as a
panel when the terminal signal comes in.
"""

import time
from typing import Optional

from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from .llm.base import StreamChunk


class MarkdownStream:
    """Streaming markdown renderer backed by Rich's Live display.

    Only the tail of the reply is kept in the live area so long answers
    don't fight with terminal scrollback; the complete text is printed once
    at the end.
    """

    min_delay = 1.0 / 20  # 20fps max redraw rate
    live_window = 20      # Rendered lines kept in the live area

    def __init__(self, console: Optional[Console] = None, title: str = "Assistant", show_reasoning: bool = True):
        self.console = console or Console()
        self.title = title
        self.show_reasoning = show_reasoning
        self.text = ""
        self.reasoning = ""
        self.live: Optional[Live] = None
        self._last_draw = 0.0

    def __call__(self, chunk: StreamChunk) -> None:
        if chunk.is_done:
            self.finish()
            return
        self.text += chunk.content
        self.reasoning += chunk.reasoning
        self._draw()

    def _start(self) -> None:
        if self.live is None:
            self.live = Live(Text(""), console=self.console, refresh_per_second=20, transient=True)
            self.live.start()

    def _renderable(self):
        parts = []
        if self.show_reasoning and self.reasoning:
            tail = self.reasoning.splitlines()[-3:]
            parts.append(Text("\n".join(tail), style="dim italic"))
        if self.text:
            lines = self.text.splitlines()
            parts.append(Markdown("\n".join(lines[-self.live_window:])))
        return Group(*parts)

    def _draw(self, force: bool = False) -> None:
        now = time.time()
        if not force and now - self._last_draw < self.min_delay:
            return
        self._last_draw = now
        self._start()
        self.live.update(self._renderable())

    def stop(self) -> None:
        """Tear down the live area without printing anything."""
        if self.live is not None:
            self.live.stop()
            self.live = None

    def finish(self) -> None:
        """Replace the live area with the complete reply."""
        self.stop()
        if self.show_reasoning and self.reasoning.strip():
            self.console.print(Text(self.reasoning.strip(), style="dim italic"))
        if self.text.strip():
            self.console.print(Panel(
                Markdown(self.text),
                title=f"[bold blue]{self.title}[/]",
                border_style="blue",
                box=box.ROUNDED,
            ))
