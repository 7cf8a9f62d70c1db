from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import anyio

from takopi.api import get_logger

from .events import extract_thread_info

if TYPE_CHECKING:
    from .assistant import AssistantArgs

logger = get_logger(__name__)

ThreadContext = dict[str, Any]

STATE_VERSION = 1
STATE_FILENAME = "slack_assistant_context_state.json"
CONTEXT_EVENT_TYPE = "assistant_thread_context"


class ThreadContextStore(Protocol):
    async def get(self, args: AssistantArgs) -> ThreadContext: ...

    async def save(self, args: AssistantArgs) -> None: ...


def resolve_context_path(config_path: Path) -> Path:
    return config_path.with_name(STATE_FILENAME)


def _thread_key(channel_id: str, thread_ts: str) -> str:
    return f"{channel_id}:{thread_ts}"


def _atomic_write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(
        payload,
        ensure_ascii=True,
        sort_keys=True,
        indent=2,
    )
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_text(f"{data}\n", encoding="utf-8")
    os.replace(tmp_path, path)


class InMemoryThreadContextStore:
    """Process-local store; contexts are lost on restart."""

    def __init__(self) -> None:
        self._lock = anyio.Lock()
        self._threads: dict[str, ThreadContext] = {}

    async def get(self, args: AssistantArgs) -> ThreadContext:
        info = extract_thread_info(args.payload)
        key = _thread_key(info.channel_id, info.thread_ts)
        async with self._lock:
            return dict(self._threads.get(key, {}))

    async def save(self, args: AssistantArgs) -> None:
        info = extract_thread_info(args.payload)
        key = _thread_key(info.channel_id, info.thread_ts)
        async with self._lock:
            self._threads[key] = dict(info.context)


class FileThreadContextStore:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = anyio.Lock()
        self._loaded = False
        self._mtime_ns: int | None = None
        self._threads: dict[str, ThreadContext] = {}

    def _stat_mtime_ns(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _load_locked(self) -> None:
        self._loaded = True
        self._mtime_ns = self._stat_mtime_ns()
        if self._mtime_ns is None:
            self._threads = {}
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "slack.assistant.context_store.load_failed",
                path=str(self._path),
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            self._threads = {}
            return
        if not isinstance(payload, dict) or payload.get("version") != STATE_VERSION:
            logger.warning(
                "slack.assistant.context_store.version_mismatch",
                path=str(self._path),
                version=payload.get("version") if isinstance(payload, dict) else None,
                expected=STATE_VERSION,
            )
            self._threads = {}
            return
        threads = payload.get("threads")
        if not isinstance(threads, dict):
            self._threads = {}
            return
        self._threads = {
            key: context
            for key, context in threads.items()
            if isinstance(key, str) and isinstance(context, dict)
        }

    def _reload_locked_if_needed(self) -> None:
        current = self._stat_mtime_ns()
        if self._loaded and current == self._mtime_ns:
            return
        self._load_locked()

    def _save_locked(self) -> None:
        _atomic_write_json(
            self._path, {"version": STATE_VERSION, "threads": self._threads}
        )
        self._mtime_ns = self._stat_mtime_ns()

    async def get(self, args: AssistantArgs) -> ThreadContext:
        info = extract_thread_info(args.payload)
        key = _thread_key(info.channel_id, info.thread_ts)
        async with self._lock:
            self._reload_locked_if_needed()
            return dict(self._threads.get(key, {}))

    async def save(self, args: AssistantArgs) -> None:
        info = extract_thread_info(args.payload)
        key = _thread_key(info.channel_id, info.thread_ts)
        async with self._lock:
            self._reload_locked_if_needed()
            self._threads[key] = dict(info.context)
            self._save_locked()

    async def clear_thread(self, *, channel_id: str, thread_ts: str) -> None:
        key = _thread_key(channel_id, thread_ts)
        async with self._lock:
            self._reload_locked_if_needed()
            if key not in self._threads:
                return
            self._threads.pop(key, None)
            self._save_locked()


class MessageMetadataThreadContextStore:
    """Keeps the context in the metadata of the bot's first thread reply.

    Needs no storage of its own; every ``get`` reads the thread back through
    ``conversations.replies``.
    """

    def __init__(self, *, bot_user_id: str | None = None, limit: int = 4) -> None:
        self._bot_user_id = bot_user_id
        self._limit = limit

    def _resolve_bot_user_id(self, args: AssistantArgs) -> str | None:
        if self._bot_user_id:
            return self._bot_user_id
        value = args.context.get("bot_user_id")
        return value if isinstance(value, str) and value else None

    async def _find_bot_message(
        self, args: AssistantArgs
    ) -> tuple[str, str, dict[str, Any]] | None:
        info = extract_thread_info(args.payload)
        bot_user_id = self._resolve_bot_user_id(args)
        payload = await args.client.conversations_replies(
            channel=info.channel_id,
            ts=info.thread_ts,
            limit=self._limit,
            include_all_metadata=True,
        )
        messages = payload.get("messages")
        if not isinstance(messages, list):
            return None
        for message in messages:
            if not isinstance(message, dict) or "subtype" in message:
                continue
            if bot_user_id is None:
                if not message.get("bot_id"):
                    continue
            elif message.get("user") != bot_user_id:
                continue
            ts = message.get("ts")
            if isinstance(ts, str) and ts:
                return info.channel_id, ts, message
        return None

    async def get(self, args: AssistantArgs) -> ThreadContext:
        found = await self._find_bot_message(args)
        if found is None:
            return {}
        _, _, message = found
        metadata = message.get("metadata")
        if not isinstance(metadata, dict):
            return {}
        if metadata.get("event_type") != CONTEXT_EVENT_TYPE:
            return {}
        context = metadata.get("event_payload")
        return dict(context) if isinstance(context, dict) else {}

    async def save(self, args: AssistantArgs) -> None:
        found = await self._find_bot_message(args)
        if found is None:
            logger.info("slack.assistant.context_store.no_bot_message")
            return
        channel_id, ts, message = found
        context = extract_thread_info(args.payload).context
        params: dict[str, Any] = {
            "channel": channel_id,
            "ts": ts,
            "text": message.get("text") or "",
            "metadata": {"event_type": CONTEXT_EVENT_TYPE, "event_payload": context},
        }
        if isinstance(message.get("blocks"), list):
            params["blocks"] = message["blocks"]
        await args.client.chat_update(**params)
