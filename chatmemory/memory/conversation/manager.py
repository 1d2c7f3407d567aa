"""Transcript ownership and turn orchestration for the conversation memory."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Protocol

from .prompts import BASE_PROMPT, CUSTOM_PROMPT, render_prompt
from .schemas import (
    FailureKind,
    Role,
    StorageFailure,
    Transcript,
    Turn,
    TurnFailure,
    TurnReply,
    TurnResult,
    dumps_transcript,
    loads_transcript,
)
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "chat_memory"
MISSING_CONFIGURATION_MESSAGE = "Missing API key."
DEFAULT_ERROR_MESSAGE = "Error fetching response."


class GeneratedText(Protocol):
    def text(self) -> str: ...


class ModelClient(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def generate(self, prompt: str) -> GeneratedText: ...


class MemoryStore:
    """Own the transcript in memory and mirror it into a key/value store.

    Storage errors never escape: they are logged, passed to ``on_storage_error``
    when one is given, and the store carries on with its in-memory copy.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        key: str = SNAPSHOT_KEY,
        on_storage_error: Optional[Callable[[StorageFailure], None]] = None,
    ) -> None:
        self.storage = storage
        self.key = key
        self.on_storage_error = on_storage_error
        self._turns: List[Turn] = list(self.load())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> Transcript:
        try:
            raw = self.storage.get(self.key)
        except Exception as exc:
            self._report(StorageFailure(operation="load", key=self.key, error=exc))
            return ()
        if raw is None:
            return ()
        try:
            return loads_transcript(raw)
        except Exception as exc:
            self._report(StorageFailure(operation="load", key=self.key, error=exc))
            return ()

    def _persist(self) -> None:
        try:
            self.storage.set(self.key, dumps_transcript(self._turns))
        except Exception as exc:
            self._report(StorageFailure(operation="persist", key=self.key, error=exc))

    def _report(self, failure: StorageFailure) -> None:
        logger.warning("Chat memory storage unavailable, continuing in memory: %s", failure.describe())
        if self.on_storage_error is None:
            return
        try:
            self.on_storage_error(failure)
        except Exception:
            logger.exception("Storage error hook raised while handling %s", failure.operation)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def append(self, user_turn: Turn, model_turn: Turn) -> None:
        if user_turn.role is not Role.USER or model_turn.role is not Role.MODEL:
            raise ValueError(
                f"Turns must be appended as a (user, model) pair, got "
                f"({user_turn.role.value}, {model_turn.role.value})"
            )
        self._turns.extend((user_turn, model_turn))
        self._persist()

    def clear(self) -> None:
        self._turns = []
        try:
            self.storage.remove(self.key)
        except Exception as exc:
            self._report(StorageFailure(operation="clear", key=self.key, error=exc))

    def snapshot(self) -> Transcript:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)


def _lookup(value: Any, *path: str) -> Any:
    current = value
    for name in path:
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(name)
        else:
            current = getattr(current, name, None)
    return current


def describe_error(error: Any) -> str:
    """Best-effort human readable description of a failed model call."""

    message = _lookup(error, "message")
    if not message and isinstance(error, BaseException):
        message = str(error)
    if message:
        return str(message)

    for path in (("response", "error", "message"), ("error", "message")):
        nested = _lookup(error, *path)
        if nested:
            return str(nested)

    if isinstance(error, str) and error:
        return error
    return DEFAULT_ERROR_MESSAGE


@dataclass
class ConversationManager:
    """Assemble prompts, call the model, and commit turns that succeed.

    Turns are serialized: a second :meth:`ask_turn` waits for the one in flight
    and reads the transcript only after it has committed or failed.
    """

    store: MemoryStore
    model_client: ModelClient
    instruction_a: str = BASE_PROMPT
    instruction_b: str = CUSTOM_PROMPT
    _turn_lock: Optional[asyncio.Lock] = field(default=None, init=False, repr=False)
    _lock_loop: Optional[asyncio.AbstractEventLoop] = field(default=None, init=False, repr=False)

    def _lock_for_running_loop(self) -> asyncio.Lock:
        # asyncio.Lock binds to the loop it first waits on.
        loop = asyncio.get_running_loop()
        if self._turn_lock is None or self._lock_loop is not loop:
            self._turn_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._turn_lock

    def render(self, user_input: str) -> str:
        return render_prompt(self.instruction_a, self.instruction_b, self.store.snapshot(), user_input)

    async def ask_turn(self, user_input: str) -> TurnResult:
        if not self.model_client.is_configured:
            logger.warning("Model client has no API key configured; skipping turn")
            return TurnFailure(kind=FailureKind.CONFIGURATION, message=MISSING_CONFIGURATION_MESSAGE)

        async with self._lock_for_running_loop():
            prompt = self.render(user_input)
            logger.debug("Rendered prompt for %s stored turns", len(self.store))
            try:
                response = await self.model_client.generate(prompt)
                reply = response.text()
            except Exception as exc:
                logger.exception("Model call failed")
                return TurnFailure(kind=FailureKind.MODEL, message=describe_error(exc))

            self.store.append(Turn.user(user_input), Turn.model(reply))
            logger.info("Committed turn; transcript holds %s turns", len(self.store))
            return TurnReply(text=reply)

    async def ask(self, user_input: str) -> str:
        result = await self.ask_turn(user_input)
        return result.text

    def clear_memory(self) -> None:
        self.store.clear()
        logger.info("Chat memory cleared")


__all__ = [
    "ConversationManager",
    "DEFAULT_ERROR_MESSAGE",
    "MISSING_CONFIGURATION_MESSAGE",
    "MemoryStore",
    "ModelClient",
    "SNAPSHOT_KEY",
    "describe_error",
]
