"""Atomic file writing and forgiving JSON reads."""

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Atomically write content to a file.

    The content goes to a temp file in the target directory which then
    replaces the target, so readers never see a half-written file.

    Raises:
        OSError: If the write operation fails
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory as target so os.replace stays on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def write_json(path: Path, data: Any) -> bool:
    """Pretty-print data to path. Returns False if the write failed."""
    try:
        content = json.dumps(data, ensure_ascii=False, indent=2)
        write_text(path, content + "\n")
    except (OSError, TypeError, ValueError):
        return False
    return True


def read_json(path: Path, default: Any) -> Any:
    """Load JSON from path, returning a copy of default on any failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return copy.deepcopy(default)
