"""Runtime helpers for running the conversation memory from the command line."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .clients import LLMClient
from .manager import ConversationManager, MemoryStore, ModelClient
from .prompts import BASE_PROMPT, CUSTOM_PROMPT
from .schemas import StorageFailure, TurnResult
from .storage import SQLiteKeyValueStore

logger = logging.getLogger(__name__)

CLEAR_COMMAND = "/clear"
EXIT_COMMAND = "/exit"


def _read_instructions(path: Optional[Path], default: str) -> str:
    if path is None:
        return default
    try:
        return path.expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Cannot read instruction file %s: %s", path, exc)
        raise SystemExit(1) from exc


@dataclass
class ConversationRuntime:
    """Wire storage, model client, and manager for one conversation."""

    db_path: str = "chat_memory.sqlite"
    provider: str = "gemini"
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key_env: Optional[str] = None
    instruction_a: str = BASE_PROMPT
    instruction_b: str = CUSTOM_PROMPT
    model_client: Optional[ModelClient] = None
    on_storage_error: Optional[Callable[[StorageFailure], None]] = None
    failures: List[StorageFailure] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(Path(self.db_path).expanduser())

        if self.model_client is None:
            self.model_client = LLMClient(
                provider=self.provider,
                model=self.model,
                base_url=self.base_url,
                api_key_env=self.api_key_env,
            )
        if not self.model_client.is_configured:
            logger.warning("API key missing for provider %s; every turn will fail until it is set", self.provider)

        self.storage = SQLiteKeyValueStore(self.db_path)
        self.store = MemoryStore(self.storage, on_storage_error=self._record_failure)
        self.manager = ConversationManager(
            store=self.store,
            model_client=self.model_client,
            instruction_a=self.instruction_a,
            instruction_b=self.instruction_b,
        )

    def _record_failure(self, failure: StorageFailure) -> None:
        self.failures.append(failure)
        if self.on_storage_error is not None:
            self.on_storage_error(failure)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def ask(self, user_input: str) -> TurnResult:
        return await self.manager.ask_turn(user_input)

    def clear(self) -> None:
        self.manager.clear_memory()

    async def close(self) -> None:
        try:
            self.storage.close()
        finally:
            close = getattr(self.model_client, "close", None)
            if close is not None:
                await close()


def _iter_messages(stream: Iterable[str]) -> Iterable[str]:
    for raw_line in stream:
        line = raw_line.rstrip("\n")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        yield line


async def run_stream(runtime: ConversationRuntime, stream: Iterable[str], out=None) -> int:
    """Feed each line of ``stream`` to the runtime; return the CLI exit code."""

    out = out or sys.stdout
    failed = False
    for message in _iter_messages(stream):
        command = message.strip()
        if command == EXIT_COMMAND:
            break
        if command == CLEAR_COMMAND:
            runtime.clear()
            print("(memory cleared)", file=out)
            continue
        result = await runtime.ask(message)
        if result.ok:
            print(result.text, file=out)
        else:
            failed = True
            print(f"error: {result.text}", file=out)
        out.flush()
    return 1 if failed else 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Chat with a model that remembers the conversation")
    parser.add_argument("--db", default="chat_memory.sqlite", help="SQLite file holding the transcript snapshot")
    parser.add_argument(
        "--provider",
        choices=["gemini", "openai", "vllm"],
        default="gemini",
        help="Model provider type",
    )
    parser.add_argument("--model", help="Model name; defaults to the provider's default")
    parser.add_argument("--base-url", help="Override the provider's API base URL")
    parser.add_argument("--api-key-env", help="Environment variable holding the API key")
    parser.add_argument("--base-prompt", type=Path, help="File with the first instruction block")
    parser.add_argument("--custom-prompt", type=Path, help="File with the second instruction block")
    parser.add_argument(
        "--input",
        type=Path,
        help="Optional file with one user message per line. Defaults to reading from standard input.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging to trace prompt/response payloads.",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    runtime = ConversationRuntime(
        db_path=str(args.db),
        provider=args.provider,
        model=args.model,
        base_url=args.base_url,
        api_key_env=args.api_key_env,
        instruction_a=_read_instructions(args.base_prompt, BASE_PROMPT),
        instruction_b=_read_instructions(args.custom_prompt, CUSTOM_PROMPT),
    )

    async def _run() -> int:
        try:
            if args.input:
                try:
                    with args.input.open("r", encoding="utf-8") as fh:
                        return await run_stream(runtime, fh)
                except OSError as exc:
                    logger.error("Cannot read input file %s: %s", args.input, exc)
                    raise SystemExit(1) from exc
            return await run_stream(runtime, sys.stdin)
        finally:
            await runtime.close()

    return asyncio.run(_run())


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
