"""MemoDesk - terminal assistant shell with rule packs and memos."""

__version__ = "0.3.0"
