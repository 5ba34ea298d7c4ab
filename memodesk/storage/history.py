"""Running conversation history and its timestamped archives."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from ..config import app_dir, app_subdir
from ..llm.base import ChatTurn
from ..utils.atomic_writer import read_json, write_json

HISTORY_FILENAME = "chat-history.json"
ARCHIVE_STAMP = "%Y%m%d_%H%M%S"


def turns_from_json(data: Any) -> list[ChatTurn]:
    """Convert a JSON array of {role, content} objects, skipping bad entries."""
    if not isinstance(data, list):
        return []
    turns = []
    for item in data:
        try:
            turns.append(ChatTurn.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError):
            continue
    return turns


def turns_to_json(turns: Iterable[ChatTurn]) -> list[dict[str, str]]:
    return [turn.to_dict() for turn in turns]


@dataclass
class ArchiveEntry:
    """An archived conversation file."""
    filename: str  # stem, e.g. 20250101_120000
    message_count: int
    created_at: str


def _archive_created_at(stem: str) -> str:
    # 20250101_120000 -> 2025-01-01T12:00:00
    if len(stem) >= 15:
        return f"{stem[0:4]}-{stem[4:6]}-{stem[6:8]}T{stem[9:11]}:{stem[11:13]}:{stem[13:15]}"
    return stem


class HistoryStore:
    """Stores the current conversation in chat-history.json.

    Compacted or cleared conversations are moved to archives/ as
    timestamped JSON arrays.
    """

    def __init__(self, home: Optional[Path] = None):
        self.home = app_dir(home)
        self.history_path = self.home / HISTORY_FILENAME
        self.archives_dir = app_subdir("archives", self.home)

    def load(self) -> list[ChatTurn]:
        return turns_from_json(read_json(self.history_path, []))

    def save(self, turns: Iterable[ChatTurn]) -> bool:
        return write_json(self.history_path, turns_to_json(turns))

    def clear(self) -> bool:
        return self.save([])

    def archive(self, turns: Iterable[ChatTurn]) -> Optional[Path]:
        """Write turns to a new archive file. Returns its path, or None on failure."""
        stamp = datetime.now().strftime(ARCHIVE_STAMP)
        path = self.archives_dir / f"{stamp}.json"
        # Two archives in the same second get a numeric suffix
        suffix = 1
        while path.exists():
            path = self.archives_dir / f"{stamp}_{suffix}.json"
            suffix += 1
        if not write_json(path, turns_to_json(turns)):
            return None
        return path

    def list_archives(self) -> list[ArchiveEntry]:
        """List archives, newest first."""
        entries = []
        for path in self.archives_dir.glob("*.json"):
            data = read_json(path, [])
            count = len(data) if isinstance(data, list) else 0
            entries.append(ArchiveEntry(
                filename=path.stem,
                message_count=count,
                created_at=_archive_created_at(path.stem),
            ))
        entries.sort(key=lambda e: e.filename, reverse=True)
        return entries

    def load_archive(self, filename: str) -> list[ChatTurn]:
        path = self.archives_dir / f"{Path(filename).stem}.json"
        return turns_from_json(read_json(path, []))
