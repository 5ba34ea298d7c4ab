"""Prompt assembly: system message from memos, memo update prompt."""

from typing import Iterable, Optional, Sequence

from .llm.base import ChatTurn
from .storage.packs import Memo, MemoRule, RulePack

EMPTY_MEMO = "(empty)"

COMPACT_PROMPT_TEMPLATE = """You are a memo manager. Update a single memo based on the chat history.

Memo title: {title}
Update rule: {update_rule}
Current content: {current_content}

Chat history:
{chat_history}

Output ONLY the updated memo content as plain text (no JSON, no wrapping). If there is nothing relevant in the chat, return the current content as-is."""


def build_system_message(memos: Iterable[Memo], system_prompt: str = "") -> Optional[ChatTurn]:
    """Memos with content as "[title]: content" lines, then the system prompt."""
    parts = []
    memo_lines = [f"[{m.title}]: {m.content}" for m in memos if m.content.strip()]
    if memo_lines:
        parts.append("\n".join(memo_lines))
    if system_prompt.strip():
        parts.append(system_prompt.strip())
    if not parts:
        return None
    return ChatTurn("system", "\n".join(parts))


def with_system_message(
    history: Sequence[ChatTurn],
    pack: Optional[RulePack] = None,
    system_prompt: str = "",
) -> list[ChatTurn]:
    """Prepend the system message for the installed pack and user prompt.

    The pack's own system prompt comes before the user's configured one.
    """
    memos = pack.memos if pack else []
    prompts = [p.strip() for p in ((pack.system_prompt if pack else ""), system_prompt) if p.strip()]
    system = build_system_message(memos, "\n".join(prompts))
    turns = [t for t in history if t.role != "system"]
    if system is None:
        return turns
    return [system] + turns


def format_chat_history(history: Iterable[ChatTurn]) -> str:
    return "\n".join(f"{t.role}: {t.content}" for t in history)


def build_compact_prompt(rule: MemoRule, current_content: str, history: Iterable[ChatTurn]) -> str:
    """Prompt asking the model to rewrite one memo from the conversation."""
    return COMPACT_PROMPT_TEMPLATE.format(
        title=rule.title,
        update_rule=rule.update_rule,
        current_content=current_content or EMPTY_MEMO,
        chat_history=format_chat_history(history),
    )
