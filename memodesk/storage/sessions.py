"""Named chat sessions saved alongside the running history."""

import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from ..config import app_subdir
from ..llm.base import ChatTurn
from ..utils.atomic_writer import read_json, write_json
from .history import turns_from_json, turns_to_json


def default_title(turns: Iterable[ChatTurn]) -> str:
    """Title from the last user message, truncated to 50 characters."""
    user_messages = [t.content for t in turns if t.role == "user" and t.content.strip()]
    if not user_messages:
        return "New Session"
    last_msg = user_messages[-1]
    title = (last_msg[:50] + "...") if len(last_msg) > 50 else last_msg
    return title.replace("\n", " ").strip()


@dataclass
class SessionMeta:
    """Summary stored in the "meta" block of a session file."""
    id: str
    title: str
    message_count: int
    created_at: str  # ISO format

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionMeta":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "Untitled")),
            message_count=int(data.get("message_count", 0)),
            created_at=str(data.get("created_at", "")),
        )


class SessionStore:
    """Manages session files in <app dir>/sessions/.

    Each file holds {"meta": {...}, "messages": [...]}.
    """

    def __init__(self, home: Optional[Path] = None):
        self.sessions_dir = app_subdir("sessions", home)

    def _get_session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    @staticmethod
    def new_session_id() -> str:
        return str(uuid.uuid4())[:8]  # Short UUID for readability

    def save_session(self, session_id: str, title: str, turns: Iterable[ChatTurn]) -> bool:
        """Save a session, keeping its original creation time."""
        path = self._get_session_path(session_id)
        messages = turns_to_json(turns)

        created_at = ""
        existing = read_json(path, None)
        if isinstance(existing, dict):
            created_at = (existing.get("meta") or {}).get("created_at", "")
        if not created_at:
            created_at = datetime.now().astimezone().isoformat()

        meta = SessionMeta(
            id=session_id,
            title=title,
            message_count=len(messages),
            created_at=created_at,
        )
        return write_json(path, {"meta": asdict(meta), "messages": messages})

    def load_session(self, session_id: str) -> list[ChatTurn]:
        """Load a session's messages; empty if missing or corrupted."""
        data = read_json(self._get_session_path(session_id), {})
        if not isinstance(data, dict):
            return []
        return turns_from_json(data.get("messages"))

    def list_sessions(self) -> list[SessionMeta]:
        """List sessions, newest first. Unreadable files are skipped."""
        sessions = []
        for session_file in self.sessions_dir.glob("*.json"):
            data = read_json(session_file, None)
            if not isinstance(data, dict) or not isinstance(data.get("meta"), dict):
                continue
            try:
                sessions.append(SessionMeta.from_dict(data["meta"]))
            except (KeyError, TypeError, ValueError):
                continue

        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def delete_session(self, session_id: str) -> bool:
        path = self._get_session_path(session_id)
        try:
            path.unlink()
        except OSError:
            return False
        return True
