"""Configuration, application directories and environment variables."""

import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Optional

from .llm.base import RelaySettings
from .utils.atomic_writer import read_json, write_json

CONFIG_FILENAME = "config.json"


def app_dir(home: Optional[Path] = None) -> Path:
    """Return the application directory, creating it if needed.

    Priority: explicit argument, $MEMODESK_HOME, ~/.memodesk
    """
    if home is None:
        env_home = os.getenv("MEMODESK_HOME", "")
        home = Path(env_home) if env_home else Path.home() / ".memodesk"
    home = Path(home)
    home.mkdir(parents=True, exist_ok=True)
    return home


def app_subdir(name: str, home: Optional[Path] = None) -> Path:
    """Return a named directory under the application directory."""
    path = app_dir(home) / name
    path.mkdir(parents=True, exist_ok=True)
    return path


def _coerce(raw: str, current: Any) -> Any:
    """Convert a CLI string to the type of the current value."""
    if isinstance(current, bool):
        value = raw.strip().lower()
        if value in ("1", "true", "yes", "on"):
            return True
        if value in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Expected a boolean, got {raw!r}")
    if isinstance(current, float):
        return float(raw)
    return raw


@dataclass
class Config:
    """Persisted user configuration."""

    api_key: str = ""
    model_id: str = ""
    base_url: str = ""

    # Model used for memo compaction (falls back to model_id)
    compact_model_id: str = ""
    reasoning_enabled: bool = False
    compact_reasoning_enabled: bool = False
    system_prompt: str = ""

    request_timeout: float = 60.0
    debug: bool = False

    home: Optional[Path] = None

    @classmethod
    def load(cls, home: Optional[Path] = None, env: bool = True) -> "Config":
        """Load configuration from config.json and environment variables.

        Config priority (later overrides earlier):
        1. defaults
        2. <app dir>/config.json
        3. Environment variables (skipped when env is False)

        Load with env=False before save() so values that only live in the
        environment, such as API keys, are never written to disk.
        """
        home = app_dir(home)
        data = read_json(home / CONFIG_FILENAME, {})
        if not isinstance(data, dict):
            data = {}

        config = cls(home=home)
        for f in fields(cls):
            if f.name == "home" or f.name not in data:
                continue
            default = getattr(config, f.name)
            value = data[f.name]
            # Keep the default when the stored value has the wrong type
            if isinstance(default, bool):
                if isinstance(value, bool):
                    setattr(config, f.name, value)
            elif isinstance(default, float):
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    setattr(config, f.name, float(value))
            elif isinstance(value, str):
                setattr(config, f.name, value)

        if not env:
            return config

        # Environment variables (highest priority)
        env_api_key = os.getenv("MEMODESK_API_KEY", os.getenv("OPENAI_API_KEY", ""))
        if env_api_key:
            config.api_key = env_api_key

        env_base_url = os.getenv("MEMODESK_BASE_URL", os.getenv("OPENAI_BASE_URL", ""))
        if env_base_url:
            config.base_url = env_base_url

        env_model = os.getenv("MEMODESK_MODEL", os.getenv("OPENAI_MODEL", ""))
        if env_model:
            config.model_id = env_model

        if os.getenv("MEMODESK_DEBUG"):
            config.debug = os.getenv("MEMODESK_DEBUG", "").lower() == "true"

        return config

    @property
    def path(self) -> Path:
        """Path to config.json."""
        return app_dir(self.home) / CONFIG_FILENAME

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("home")
        return data

    def save(self) -> bool:
        """Write configuration to config.json."""
        return write_json(self.path, self.to_dict())

    def set_value(self, key: str, raw: str) -> None:
        """Set a field from its string form.

        Raises:
            KeyError: Unknown configuration key
            ValueError: Value cannot be converted to the field type
        """
        if key == "home" or key not in self.to_dict():
            raise KeyError(key)
        setattr(self, key, _coerce(raw, getattr(self, key)))

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if not self.api_key:
            errors.append(
                f"API key not set. Run `memodesk config set api_key ...` or set MEMODESK_API_KEY"
            )
        return errors

    def relay_settings(self, compact: bool = False) -> RelaySettings:
        """Settings for a chat call, or for memo compaction when compact=True."""
        if compact:
            return RelaySettings(
                api_key=self.api_key,
                model_id=self.compact_model_id or self.model_id,
                base_url=self.base_url,
                reasoning_enabled=self.compact_reasoning_enabled,
                timeout=self.request_timeout,
            )
        return RelaySettings(
            api_key=self.api_key,
            model_id=self.model_id,
            base_url=self.base_url,
            reasoning_enabled=self.reasoning_enabled,
            timeout=self.request_timeout,
        )
