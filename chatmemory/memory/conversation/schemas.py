"""Typed data structures used by the conversation memory."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple


class Role(str, Enum):
    USER = "user"
    MODEL = "model"


@dataclass(frozen=True)
class Turn:
    """One message produced by either participant."""

    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=Role.USER, content=content)

    @classmethod
    def model(cls, content: str) -> "Turn":
        return cls(role=Role.MODEL, content=content)

    def to_payload(self) -> Mapping[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Turn":
        if not isinstance(payload, Mapping):
            raise ValueError(f"Turn payload must be an object, got {type(payload).__name__}")
        content = payload.get("content")
        if not isinstance(content, str):
            raise ValueError("Turn payload is missing a string 'content'")
        try:
            role = Role(payload.get("role"))
        except ValueError as exc:
            raise ValueError(f"Unknown turn role {payload.get('role')!r}") from exc
        return cls(role=role, content=content)


Transcript = Tuple[Turn, ...]


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    MODEL = "model"


@dataclass(frozen=True)
class TurnReply:
    """Successful turn carrying the model's reply."""

    text: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TurnFailure:
    """Failed turn; nothing was committed to the transcript."""

    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False

    @property
    def text(self) -> str:
        return self.message


TurnResult = TurnReply | TurnFailure


@dataclass(frozen=True)
class StorageFailure:
    """A persistence operation that failed and was recovered in memory."""

    operation: str
    key: str
    error: Optional[BaseException] = None

    def describe(self) -> str:
        return f"{self.operation} {self.key!r} failed: {self.error}"


def dumps_transcript(turns: Iterable[Turn]) -> str:
    """Serialize ``turns`` into the snapshot format."""

    return json.dumps([turn.to_payload() for turn in turns], ensure_ascii=False)


def loads_transcript(raw: str) -> Transcript:
    """Parse a snapshot, raising :class:`ValueError` when it is malformed."""

    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("Snapshot must be a JSON array of turns")
    turns = tuple(Turn.from_payload(item) for item in data)
    if len(turns) % 2:
        raise ValueError(f"Snapshot holds an unpaired turn ({len(turns)} turns)")
    return turns


__all__ = [
    "FailureKind",
    "Role",
    "StorageFailure",
    "Transcript",
    "Turn",
    "TurnFailure",
    "TurnReply",
    "TurnResult",
    "dumps_transcript",
    "loads_transcript",
]
