"""Memo compaction: fold a finished conversation into the installed pack's memos."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional, Sequence

from .llm.base import ChatTurn
from .llm.errors import RelayError
from .llm.relay import ChatRelay
from .prompts import build_compact_prompt
from .storage.history import HistoryStore
from .storage.packs import Memo, MemoRule, PackStore

ProgressCallback = Callable[[int, int], None]


class MemoCompactor:
    """Rewrites each memo of the installed pack from the conversation.

    Every rule gets its own completion request; requests run in parallel.
    A failed request leaves that memo unchanged. Afterwards the conversation
    is archived and the running history cleared.
    """

    MAX_WORKERS = 4

    def __init__(self, relay: ChatRelay, packs: PackStore, history: HistoryStore, logger=None):
        self.relay = relay
        self.packs = packs
        self.history = history
        self.logger = logger

    def _update_memo(self, rule: MemoRule, current: str, turns: Sequence[ChatTurn]) -> str:
        prompt = build_compact_prompt(rule, current, turns)
        try:
            response = self.relay.complete([ChatTurn("user", prompt)])
        except RelayError as e:
            if self.logger:
                self.logger.log_compaction(rule.title, ok=False, error=str(e))
            return current
        if self.logger:
            self.logger.log_compaction(rule.title, ok=True)
        return response.content.strip()

    def compact(
        self,
        turns: Sequence[ChatTurn],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[list[Memo]]:
        """Update memos from turns, archive and clear history.

        Returns the new memos, or None when there was nothing to compact.
        """
        if not turns:
            return None

        pack = self.packs.load_current_pack()
        rules = pack.rules if pack else []
        current = [
            pack.memos[idx].content if pack and idx < len(pack.memos) else ""
            for idx in range(len(rules))
        ]

        contents = list(current)
        total = len(rules)
        done = 0
        if on_progress:
            on_progress(done, total)

        if rules:
            with ThreadPoolExecutor(max_workers=min(self.MAX_WORKERS, total)) as executor:
                futures = {
                    executor.submit(self._update_memo, rule, current[idx], turns): idx
                    for idx, rule in enumerate(rules)
                }
                for future in as_completed(futures):
                    contents[futures[future]] = future.result()
                    done += 1
                    if on_progress:
                        on_progress(done, total)

        memos = [Memo(title=rule.title, content=content) for rule, content in zip(rules, contents)]
        if pack is not None:
            pack.memos = memos
            self.packs.save_current_pack(pack)

        self.history.archive(turns)
        self.history.clear()
        return memos
