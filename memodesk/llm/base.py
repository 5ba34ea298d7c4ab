"""Data types shared by the relay and its callers."""

from dataclasses import dataclass
from typing import Any, Callable

ROLES = ("system", "user", "assistant")

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass(frozen=True)
class ChatTurn:
    """One message of a conversation."""
    role: str  # "system", "user", "assistant"
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown chat role: {self.role!r}")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatTurn":
        return cls(role=data["role"], content=data.get("content") or "")


@dataclass
class StreamChunk:
    """Incremental update delivered to a listener."""
    content: str
    reasoning: str = ""  # reasoning_content from thinking models
    is_done: bool = False


@dataclass
class ChatResponse:
    """Accumulated result of one completed stream."""
    content: str
    reasoning: str = ""


# Listener sink: called once per delta, then once with is_done=True
StreamListener = Callable[[StreamChunk], None]


@dataclass
class RelaySettings:
    """Connection settings for one relay call."""
    api_key: str = ""
    model_id: str = ""
    base_url: str = ""
    reasoning_enabled: bool = False
    timeout: float = 60.0

    @property
    def model(self) -> str:
        """Configured model, or the default when none is set."""
        return self.model_id or DEFAULT_MODEL

    @property
    def endpoint(self) -> str:
        """Full chat completions URL."""
        base = (self.base_url or DEFAULT_BASE_URL).rstrip("/")
        return f"{base}/chat/completions"
