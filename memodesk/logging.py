"""Conversation logging for debugging and analysis."""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import app_subdir


class ConversationLogger:
    """Logs user inputs, requests and model responses to a JSONL file."""

    def __init__(self, model_name: str = "unknown", home: Optional[Path] = None, debug: bool = False):
        self.model_name = model_name
        self.debug = debug
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = app_subdir("logs", home) / f"session_{self.session_id}.jsonl"
        self.enabled = True

        self._write_entry({
            "type": "session_start",
            "model": self.model_name,
        })

    def log_user_input(self, message: str) -> None:
        """Log user input."""
        self._write_entry({"type": "user", "content": message})

    def log_request(self, endpoint: str, model: str, messages: list) -> None:
        """Log the messages sent to the completions endpoint."""
        self._write_entry({
            "type": "api_request",
            "endpoint": endpoint,
            "model": model,
            "messages": [
                {"role": getattr(m, "role", "unknown"), "content": getattr(m, "content", "")}
                for m in messages
            ],
        })

    def log_stream_event(self, event_type: str, content: str, meta: Optional[dict] = None) -> None:
        """Log an individual streaming event. Only written in debug mode."""
        if not self.debug:
            return
        entry = {
            "type": "stream_event",
            "event_type": event_type,
            "content": content[:500] if content else "",  # Truncate
        }
        if meta:
            entry["meta"] = meta
        self._write_entry(entry)

    def log_model_response(self, response: str, reasoning: str = "", model: Optional[str] = None) -> None:
        """Log the accumulated model response."""
        entry = {
            "type": "assistant",
            "model": model or self.model_name,
            "content": response,
        }
        if reasoning:
            entry["reasoning"] = reasoning
        self._write_entry(entry)

    def log_compaction(self, rule_title: str, ok: bool, error: str = "") -> None:
        """Log the outcome of one memo update."""
        entry = {"type": "memo_update", "rule": rule_title, "ok": ok}
        if error:
            entry["error"] = error
        self._write_entry(entry)

    def log_error(self, error: str) -> None:
        """Log error."""
        self._write_entry({"type": "error", "error": error})

    def _write_entry(self, entry: dict) -> None:
        """Append a timestamped entry to the log file."""
        if not self.enabled:
            return
        entry["timestamp"] = datetime.now().isoformat()
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError:
            pass  # Logging must not break the app

    @property
    def log_path(self) -> Path:
        """Return path to current log file."""
        return self.log_file


# Global logger instance
_logger: Optional[ConversationLogger] = None


def get_logger() -> Optional[ConversationLogger]:
    """Return the logger created by init_logger, if any."""
    return _logger


def init_logger(model_name: str, home: Optional[Path] = None, debug: bool = False) -> ConversationLogger:
    """Initialize the global logger."""
    global _logger
    _logger = ConversationLogger(model_name, home=home, debug=debug)
    return _logger
