"""Instruction blocks and prompt assembly for conversation turns."""

from __future__ import annotations

from typing import Iterable

from .schemas import Role, Turn

BASE_PROMPT = """
You are a friendly, knowledgeable assistant taking part in an ongoing chat.
Answer the user's latest message directly and keep answers concise unless the
user asks for detail. Use the earlier conversation for context, stay consistent
with what you already said, and say so plainly when you do not know something.
""".strip()


CUSTOM_PROMPT = """
Reply in plain text without role labels such as "AI:" or "User:". Match the
language the user writes in.
""".strip()


TRANSCRIPT_MARKER = "Here is our ongoing conversation:"

ROLE_LABELS = {Role.USER: "User", Role.MODEL: "AI"}


def format_turn(turn: Turn) -> str:
    return f"{ROLE_LABELS[turn.role]}: {turn.content}"


def render_prompt(
    instruction_a: str,
    instruction_b: str,
    transcript: Iterable[Turn],
    user_input: str,
) -> str:
    """Build the prompt text sent to the model for one turn.

    The pending ``user_input`` is rendered as the final ``User:`` line but is
    not part of ``transcript``.
    """

    lines = [
        instruction_a.strip(),
        "",
        instruction_b.strip(),
        "",
        TRANSCRIPT_MARKER,
    ]
    lines.extend(format_turn(turn) for turn in transcript)
    lines.append(f"User: {user_input}")
    return "\n".join(lines)


__all__ = [
    "BASE_PROMPT",
    "CUSTOM_PROMPT",
    "ROLE_LABELS",
    "TRANSCRIPT_MARKER",
    "format_turn",
    "render_prompt",
]
