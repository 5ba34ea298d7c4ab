"""Rule packs: a system prompt, memo update rules and the memos themselves.

Packs live as one JSON file each under <app dir>/packs/. The installed
pack, the one whose rules and memos feed the conversation, is a copy kept
in current-pack.json.
"""

import json
import random
import re
import string
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from ..config import app_dir, app_subdir
from ..utils.atomic_writer import read_json, write_json, write_text

CURRENT_PACK_FILENAME = "current-pack.json"
EXPORT_SUFFIX = ".memopack.json"
YAML_SUFFIXES = (".yaml", ".yml")


class PackFormatError(ValueError):
    """A file does not contain a recognizable pack or rules document."""
    pass


def generate_pack_id() -> str:
    """pack_<millis>_<6 base36 chars>"""
    alphabet = string.digits + string.ascii_lowercase
    tail = "".join(random.choice(alphabet) for _ in range(6))
    return f"pack_{int(time.time() * 1000)}_{tail}"


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class MemoRule:
    """How one memo should be updated from a conversation."""
    title: str
    update_rule: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoRule":
        # Older files call the title "description"; camelCase from UI exports
        title = data.get("title", data.get("description", ""))
        update_rule = data.get("update_rule", data.get("updateRule", ""))
        return cls(title=str(title or ""), update_rule=str(update_rule or ""))


@dataclass
class Memo:
    title: str
    content: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Memo":
        return cls(title=str(data.get("title") or ""), content=str(data.get("content") or ""))


@dataclass
class RulePack:
    """A shareable bundle of system prompt, rules and memos."""
    id: str
    name: str
    description: str = ""
    author: str = ""
    version: str = "1.0.0"
    system_prompt: str = ""
    rules: list[MemoRule] = field(default_factory=list)
    memos: list[Memo] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RulePack":
        """Build a pack from a stored or exported document.

        Raises:
            PackFormatError: Missing id or malformed fields
        """
        if not isinstance(data, dict) or not data.get("id"):
            raise PackFormatError("Pack document has no id")
        try:
            return cls(
                id=str(data["id"]),
                name=str(data.get("name") or ""),
                description=str(data.get("description") or ""),
                author=str(data.get("author") or data.get("author_name") or ""),
                version=str(data.get("version") or "1.0.0"),
                system_prompt=str(data.get("system_prompt") or data.get("systemPrompt") or ""),
                rules=[MemoRule.from_dict(r) for r in data.get("rules") or []],
                memos=[Memo.from_dict(m) for m in data.get("memos") or []],
                tags=[str(t) for t in data.get("tags") or []],
                created_at=str(data.get("created_at") or ""),
                updated_at=str(data.get("updated_at") or ""),
            )
        except (AttributeError, TypeError) as e:
            raise PackFormatError(f"Malformed pack document: {e}") from e

    def matches(self, query: str) -> bool:
        """Case-insensitive match on name, description, author or tags."""
        q = query.strip().lower()
        if not q:
            return True
        return (
            q in self.name.lower()
            or q in self.description.lower()
            or q in self.author.lower()
            or any(q in t.lower() for t in self.tags)
        )

    @property
    def slug(self) -> str:
        return re.sub(r"\s+", "-", self.name.strip()).lower() or "pack"


class PackStore:
    """Manages the pack library and the installed pack."""

    def __init__(self, home: Optional[Path] = None):
        self.home = app_dir(home)
        self.packs_dir = app_subdir("packs", self.home)
        self.current_pack_path = self.home / CURRENT_PACK_FILENAME

    def _get_pack_path(self, pack_id: str) -> Path:
        return self.packs_dir / f"{pack_id}.json"

    def load_packs(self) -> list[RulePack]:
        """All readable packs, sorted by name. Broken files are skipped."""
        packs = []
        for path in sorted(self.packs_dir.glob("*.json")):
            try:
                packs.append(RulePack.from_dict(read_json(path, {})))
            except PackFormatError:
                continue
        packs.sort(key=lambda p: p.name.lower())
        return packs

    def get_pack(self, pack_id: str) -> Optional[RulePack]:
        try:
            return RulePack.from_dict(read_json(self._get_pack_path(pack_id), {}))
        except PackFormatError:
            return None

    def save_pack(self, pack: RulePack) -> bool:
        now = _now_iso()
        if not pack.created_at:
            pack.created_at = now
        pack.updated_at = now
        return write_json(self._get_pack_path(pack.id), pack.to_dict())

    def delete_pack(self, pack_id: str) -> bool:
        try:
            self._get_pack_path(pack_id).unlink()
        except OSError:
            return False
        return True

    def search(self, query: str = "", tag: str = "") -> list[RulePack]:
        packs = [p for p in self.load_packs() if p.matches(query)]
        if tag:
            packs = [p for p in packs if tag in p.tags]
        return packs

    def all_tags(self) -> list[str]:
        tags = set()
        for pack in self.load_packs():
            tags.update(pack.tags)
        return sorted(tags)

    def load_current_pack(self) -> Optional[RulePack]:
        """The installed pack, or None when nothing valid is installed."""
        try:
            return RulePack.from_dict(read_json(self.current_pack_path, {}))
        except PackFormatError:
            return None

    def save_current_pack(self, pack: RulePack) -> bool:
        """Install pack (or persist changes to the installed one)."""
        return write_json(self.current_pack_path, pack.to_dict())


def export_pack(pack: RulePack, path: Optional[Path] = None) -> Path:
    """Write pack as JSON, or YAML when path ends in .yaml/.yml.

    Without a path the file goes to the working directory as
    <slug>.memopack.json. Returns the written path.
    """
    path = Path(path) if path else Path.cwd() / f"{pack.slug}{EXPORT_SUFFIX}"
    if path.is_dir():
        path = path / f"{pack.slug}{EXPORT_SUFFIX}"
    if path.suffix.lower() in YAML_SUFFIXES:
        content = yaml.safe_dump(pack.to_dict(), allow_unicode=True, sort_keys=False)
    else:
        content = json.dumps(pack.to_dict(), ensure_ascii=False, indent=2) + "\n"
    write_text(path, content)
    return path


def _read_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise PackFormatError(f"Cannot parse {path.name}: {e}") from e


def import_pack(path: Path) -> RulePack:
    """Read a pack export or a bare rules document into a new pack.

    Imported packs always get a fresh id so they never overwrite an
    existing pack.

    Raises:
        PackFormatError: The file holds neither format
        OSError: The file cannot be read
    """
    path = Path(path)
    data = _read_document(path)
    if not isinstance(data, dict):
        raise PackFormatError(f"{path.name} does not contain a pack")

    if data.get("id"):
        pack = RulePack.from_dict(data)
        pack.id = generate_pack_id()
        return pack

    if "rules" in data and ("systemPrompt" in data or "system_prompt" in data):
        now = _now_iso()
        name = path.name
        for suffix in (EXPORT_SUFFIX, ".json") + YAML_SUFFIXES:
            if name.endswith(suffix):
                name = name[: -len(suffix)]
                break
        try:
            rules = [MemoRule.from_dict(r) for r in data.get("rules") or []]
        except AttributeError as e:
            raise PackFormatError(f"Malformed rules in {path.name}") from e
        return RulePack(
            id=generate_pack_id(),
            name=name.replace("-", " "),
            description="Imported rules",
            system_prompt=str(data.get("systemPrompt") or data.get("system_prompt") or ""),
            rules=rules,
            tags=["imported"],
            created_at=now,
            updated_at=now,
        )

    raise PackFormatError(f"{path.name} is not a pack or rules document")
