"""Local JSON persistence."""

from .history import ArchiveEntry, HistoryStore
from .packs import Memo, MemoRule, PackFormatError, PackStore, RulePack, export_pack, import_pack
from .sessions import SessionMeta, SessionStore

__all__ = [
    "ArchiveEntry",
    "HistoryStore",
    "Memo",
    "MemoRule",
    "PackFormatError",
    "PackStore",
    "RulePack",
    "SessionMeta",
    "SessionStore",
    "export_pack",
    "import_pack",
]
