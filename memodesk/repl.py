"""Interactive REPL for MemoDesk."""

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory
from prompt_toolkit.lexers import PygmentsLexer
from prompt_toolkit.styles import Style as PromptStyle
from pygments.lexers.markup import MarkdownLexer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .abort_controller import AbortController
from .compactor import MemoCompactor
from .config import Config, app_dir
from .llm.base import ChatTurn
from .llm.errors import RelayError, StreamCancelledError
from .llm.relay import ChatRelay
from .mdstream import MarkdownStream
from .prompts import with_system_message
from .storage.history import HistoryStore
from .storage.packs import PackStore
from .storage.sessions import SessionStore, default_title

HELP_TEXT = """\
[bold]Commands[/]
  /help              Show this help
  /clear             Clear the conversation
  /regenerate        Ask again for the last reply
  /compact           Update memos from the conversation, then archive it
  /archive           Archive the conversation and start fresh
  /archives          List archived conversations
  /sessions          List saved sessions
  /save [title]      Save the conversation as a session
  /load <id>         Replace the conversation with a saved session
  /pack              Show the installed pack and its memos
  /config            Show current settings
  /exit, /quit       Leave
Press Ctrl+C while a reply is streaming to cancel it."""


class MemoDeskREPL:
    """Interactive Read-Eval-Print Loop for MemoDesk."""

    def __init__(self, config: Config, logger=None, console: Optional[Console] = None):
        self.config = config
        self.logger = logger
        self.console = console or Console()
        self.history_store = HistoryStore(config.home)
        self.packs = PackStore(config.home)
        self.sessions = SessionStore(config.home)
        self.history: list[ChatTurn] = self.history_store.load()
        self.commands = {
            "/help": self.cmd_help,
            "/clear": self.cmd_clear,
            "/regenerate": self.cmd_regenerate,
            "/compact": self.cmd_compact,
            "/archive": self.cmd_archive,
            "/archives": self.cmd_archives,
            "/sessions": self.cmd_sessions,
            "/save": self.cmd_save,
            "/load": self.cmd_load,
            "/pack": self.cmd_pack,
            "/config": self.cmd_config,
            "/exit": self.cmd_exit,
            "/quit": self.cmd_exit,
            "exit": self.cmd_exit,
            "quit": self.cmd_exit,
        }

    def _setup_session(self) -> PromptSession:
        """Configure prompt_toolkit session."""
        style = PromptStyle.from_dict({
            'prompt': '#00aa00 bold',
        })
        completer = WordCompleter(
            [c for c in self.commands if c.startswith("/")],
            ignore_case=True,
        )
        history_path = app_dir(self.config.home) / "prompt-history"
        return PromptSession(
            history=FileHistory(str(history_path)),
            lexer=PygmentsLexer(MarkdownLexer),
            style=style,
            completer=completer,
        )

    def _relay(self, compact: bool = False) -> ChatRelay:
        return ChatRelay(self.config.relay_settings(compact=compact), logger=self.logger)

    def run(self) -> None:
        """Start the REPL loop."""
        session = self._setup_session()
        self.console.print("[bold green]MemoDesk[/] - Type /help for commands")
        if self.history:
            self.console.print(f"[dim]Restored {len(self.history)} messages from last time[/]")

        while True:
            try:
                user_input = session.prompt("You> ").strip()
            except KeyboardInterrupt:
                self.console.print("[dim]Use /exit to quit[/]")
                continue
            except EOFError:
                break

            if not user_input:
                continue

            cmd = user_input.split()[0].lower()
            if cmd in self.commands:
                if self.commands[cmd](user_input):
                    break
                continue

            self._send(self.history, user_input)

        self.console.print("[green]Goodbye![/]")

    def _send(self, history: list[ChatTurn], message: str) -> bool:
        """Stream a reply to message; on success record both turns."""
        if self.logger:
            self.logger.log_user_input(message)

        pack = self.packs.load_current_pack()
        turns = with_system_message(history, pack, self.config.system_prompt)
        stream = MarkdownStream(self.console, show_reasoning=self.config.reasoning_enabled)
        abort = AbortController()

        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(self._relay().chat, turns, message, listener=stream, abort=abort)
            while not future.done():
                try:
                    wait([future], timeout=0.1)
                except KeyboardInterrupt:
                    abort.abort()
        stream.stop()

        try:
            reply = future.result()
        except StreamCancelledError:
            self.console.print("[yellow]Cancelled[/]")
            return False
        except RelayError as e:
            self.console.print(Panel(f"[red]{e}[/]", title="[bold red]Error[/]", border_style="red"))
            return False

        if not stream.text.strip():
            # Nothing was streamed, e.g. the empty-reply placeholder
            self.console.print(f"[dim]{reply}[/]")
        self.history = list(history) + [ChatTurn("user", message), ChatTurn("assistant", reply)]
        self.history_store.save(self.history)
        return True

    # Commands return True to leave the loop

    def cmd_help(self, _input: str) -> bool:
        self.console.print(HELP_TEXT)
        return False

    def cmd_clear(self, _input: str) -> bool:
        self.history = []
        self.history_store.clear()
        self.console.print("[dim]Conversation cleared[/]")
        return False

    def cmd_regenerate(self, _input: str) -> bool:
        if len(self.history) < 2 or self.history[-1].role != "assistant" or self.history[-2].role != "user":
            self.console.print("[yellow]Nothing to regenerate[/]")
            return False
        self._send(self.history[:-2], self.history[-2].content)
        return False

    def cmd_compact(self, _input: str) -> bool:
        if not self.history:
            self.console.print("[yellow]Nothing to compact[/]")
            return False
        compactor = MemoCompactor(self._relay(compact=True), self.packs, self.history_store, logger=self.logger)
        with self.console.status("[bold blue]Updating memos...[/]", spinner="dots") as status:
            memos = compactor.compact(
                self.history,
                on_progress=lambda done, total: status.update(f"[bold blue]Updating memos {done}/{total}...[/]"),
            )
        self.history = []
        self.console.print(f"[green]Updated {len(memos or [])} memos; conversation archived[/]")
        return False

    def cmd_archive(self, _input: str) -> bool:
        if not self.history:
            self.console.print("[yellow]Nothing to archive[/]")
            return False
        path = self.history_store.archive(self.history)
        if path is None:
            self.console.print("[red]Failed to write archive[/]")
            return False
        self.history = []
        self.history_store.clear()
        self.console.print(f"[green]Archived to {path.name}[/]")
        return False

    def cmd_archives(self, _input: str) -> bool:
        table = Table(box=box.SIMPLE)
        table.add_column("Archive")
        table.add_column("Created")
        table.add_column("Messages", justify="right")
        for entry in self.history_store.list_archives():
            table.add_row(entry.filename, entry.created_at, str(entry.message_count))
        self.console.print(table)
        return False

    def cmd_sessions(self, _input: str) -> bool:
        table = Table(box=box.SIMPLE)
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Created")
        table.add_column("Messages", justify="right")
        for meta in self.sessions.list_sessions():
            table.add_row(meta.id, meta.title, meta.created_at, str(meta.message_count))
        self.console.print(table)
        return False

    def cmd_save(self, user_input: str) -> bool:
        if not self.history:
            self.console.print("[yellow]Nothing to save[/]")
            return False
        title = user_input[len("/save"):].strip() or default_title(self.history)
        session_id = self.sessions.new_session_id()
        if self.sessions.save_session(session_id, title, self.history):
            self.console.print(f"[green]Saved session {session_id}[/]")
        else:
            self.console.print("[red]Failed to save session[/]")
        return False

    def cmd_load(self, user_input: str) -> bool:
        parts = user_input.split()
        if len(parts) < 2:
            self.console.print("[yellow]Usage: /load <id>[/]")
            return False
        turns = self.sessions.load_session(parts[1])
        if not turns:
            self.console.print(f"[red]No session {parts[1]}[/]")
            return False
        self.history = turns
        self.history_store.save(self.history)
        self.console.print(f"[green]Loaded {len(turns)} messages[/]")
        return False

    def cmd_pack(self, _input: str) -> bool:
        pack = self.packs.load_current_pack()
        if pack is None:
            self.console.print("[dim]No pack installed. Use `memodesk packs install <id>`[/]")
            return False
        self.console.print(f"[bold]{pack.name}[/] [dim]v{pack.version} {pack.id}[/]")
        for memo in pack.memos:
            self.console.print(f"[cyan]{memo.title}[/]: {memo.content or '[dim](empty)[/]'}")
        return False

    def cmd_config(self, _input: str) -> bool:
        settings = self.config.relay_settings()
        self.console.print(f"[dim]Model: {settings.model}[/]")
        self.console.print(f"[dim]Endpoint: {settings.endpoint}[/]")
        self.console.print(f"[dim]Compact model: {self.config.relay_settings(compact=True).model}[/]")
        self.console.print(f"[dim]Config: {self.config.path}[/]")
        return False

    def cmd_exit(self, _input: str) -> bool:
        return True
