"""Conversation memory around a single remote text-generation call.

This subpackage keeps one linear dialogue and wires together

* the transcript schema and its persisted snapshot format,
* key/value storage backends for the snapshot,
* an OpenAI-compatible client for the remote model, and
* the manager that renders each prompt and commits a turn only when the
  model call succeeds.
"""

from .clients import LLMClient, ModelResponse
from .manager import ConversationManager, MemoryStore, describe_error
from .prompts import BASE_PROMPT, CUSTOM_PROMPT, TRANSCRIPT_MARKER, render_prompt
from .runtime import ConversationRuntime, main as runtime_main
from .schemas import (
    FailureKind,
    Role,
    StorageFailure,
    Transcript,
    Turn,
    TurnFailure,
    TurnReply,
    TurnResult,
)
from .storage import InMemoryKeyValueStore, SQLiteKeyValueStore

__all__ = [
    "BASE_PROMPT",
    "CUSTOM_PROMPT",
    "ConversationManager",
    "ConversationRuntime",
    "FailureKind",
    "InMemoryKeyValueStore",
    "LLMClient",
    "MemoryStore",
    "ModelResponse",
    "Role",
    "SQLiteKeyValueStore",
    "StorageFailure",
    "TRANSCRIPT_MARKER",
    "Transcript",
    "Turn",
    "TurnFailure",
    "TurnReply",
    "TurnResult",
    "describe_error",
    "render_prompt",
    "runtime_main",
]
