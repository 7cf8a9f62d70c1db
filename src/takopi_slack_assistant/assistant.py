"""Dispatch of Slack assistant-thread events to user handlers.

An :class:`Assistant` sits in the Slack event pipeline. Events that belong
to an assistant thread are acknowledged, enriched with thread-bound
utilities and handed to the configured handlers; everything else goes
straight to the pipeline's ``next``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from takopi.api import get_logger

from .context_store import (
    CONTEXT_EVENT_TYPE,
    InMemoryThreadContextStore,
    ThreadContext,
    ThreadContextStore,
)
from .errors import AssistantInitializationError
from .events import EventCategory, classify, extract_thread_info
from .middleware import AssistantMiddleware, Continuation, process_assistant_middleware

logger = get_logger(__name__)

AssistantConfig = Mapping[str, Any]
Ack = Callable[[], Awaitable[Any]]

REQUIRED_KEYS = ("threadStarted", "threadContextChanged", "userMessage")
STORE_KEY = "threadContextStore"
_SNAKE_CASE_KEYS = {
    "thread_started": "threadStarted",
    "thread_context_changed": "threadContextChanged",
    "user_message": "userMessage",
    "thread_context_store": STORE_KEY,
}

_CATEGORY_KEYS = {
    EventCategory.THREAD_STARTED: "threadStarted",
    EventCategory.THREAD_CONTEXT_CHANGED: "threadContextChanged",
    EventCategory.USER_MESSAGE: "userMessage",
    EventCategory.OTHER_MESSAGE_SUB_EVENT: "userMessage",
}


@dataclass(frozen=True, slots=True)
class ValidatedConfig:
    thread_started: tuple[AssistantMiddleware, ...]
    thread_context_changed: tuple[AssistantMiddleware, ...]
    user_message: tuple[AssistantMiddleware, ...]
    thread_context_store: ThreadContextStore | None = None

    def handlers_for(self, key: str) -> tuple[AssistantMiddleware, ...]:
        if key == "threadStarted":
            return self.thread_started
        if key == "threadContextChanged":
            return self.thread_context_changed
        return self.user_message


@dataclass(slots=True)
class SlackEventArgs:
    """Arguments the surrounding event pipeline hands to a middleware."""

    payload: dict[str, Any]
    client: Any = None
    ack: Ack | None = None
    next: Continuation | None = None
    context: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    logger: Any = None


@dataclass(slots=True)
class AssistantArgs:
    payload: dict[str, Any]
    client: Any
    logger: Any
    say: Callable[[str | Mapping[str, Any]], Awaitable[Any]]
    set_status: Callable[[str], Awaitable[Any]]
    set_suggested_prompts: Callable[..., Awaitable[Any]]
    set_title: Callable[[str], Awaitable[Any]]
    get_thread_context: Callable[[], Awaitable[ThreadContext]]
    save_thread_context: Callable[[], Awaitable[None]]
    ack: Ack | None = None
    context: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    next: Continuation | None = None


def _normalize_handlers(key: str, value: object) -> tuple[AssistantMiddleware, ...]:
    if callable(value):
        return (value,)  # type: ignore[return-value]
    if (
        isinstance(value, Sequence)
        and not isinstance(value, (str, bytes))
        and len(value) > 0
        and all(callable(item) for item in value)
    ):
        return tuple(value)
    raise AssistantInitializationError(
        f"Assistant {key} property must be a function or an array of functions"
    )


def validate(config: object) -> ValidatedConfig:
    if isinstance(config, ValidatedConfig):
        return config
    if not isinstance(config, Mapping):
        raise AssistantInitializationError(
            "Assistant expects a configuration object as the argument"
        )
    entries: dict[str, Any] = {}
    for key, value in config.items():
        name = _SNAKE_CASE_KEYS.get(key, key)
        if name in entries:
            raise AssistantInitializationError(
                f"Assistant {name} property is configured more than once"
            )
        entries[name] = value

    missing = [key for key in REQUIRED_KEYS if key not in entries]
    if missing:
        raise AssistantInitializationError(
            f"Assistant is missing required keys: {', '.join(missing)}"
        )

    handlers = {key: _normalize_handlers(key, entries[key]) for key in REQUIRED_KEYS}

    store = entries.get(STORE_KEY)
    if store is not None and not (
        callable(getattr(store, "get", None)) and callable(getattr(store, "save", None))
    ):
        raise AssistantInitializationError(
            f"Assistant {STORE_KEY} property must provide get and save"
        )

    return ValidatedConfig(
        thread_started=handlers["threadStarted"],
        thread_context_changed=handlers["threadContextChanged"],
        user_message=handlers["userMessage"],
        thread_context_store=store,
    )


def enrich_assistant_args(
    store: ThreadContextStore, args: SlackEventArgs | AssistantArgs
) -> AssistantArgs:
    """Bind the thread utilities for the event in ``args``.

    The returned bundle never carries the pipeline's ``next``. ``say`` only
    consults ``store`` when the event has no inline context, and only when
    it is actually called.
    """
    payload = args.payload
    info = extract_thread_info(payload)
    client = args.client

    async def get_thread_context() -> ThreadContext:
        return await store.get(enriched)

    async def save_thread_context() -> None:
        await store.save(enriched)

    async def say(message: str | Mapping[str, Any]) -> Any:
        if isinstance(message, str):
            params: dict[str, Any] = {"text": message}
        else:
            params = dict(message)
        context = info.context or (await store.get(enriched)) or {}
        params["channel"] = info.channel_id
        params["thread_ts"] = info.thread_ts
        params["metadata"] = {
            "event_type": CONTEXT_EVENT_TYPE,
            "event_payload": context,
        }
        return await client.chat_post_message(**params)

    async def set_status(status: str) -> Any:
        return await client.assistant_threads_set_status(
            channel_id=info.channel_id, thread_ts=info.thread_ts, status=status
        )

    async def set_suggested_prompts(
        options: Mapping[str, Any] | None = None,
        *,
        prompts: Sequence[Mapping[str, str]] | None = None,
        title: str | None = None,
    ) -> Any:
        if options is not None:
            prompts = options.get("prompts", prompts)
            title = options.get("title", title)
        return await client.assistant_threads_set_suggested_prompts(
            channel_id=info.channel_id,
            thread_ts=info.thread_ts,
            prompts=[dict(prompt) for prompt in prompts or ()],
            title=title,
        )

    async def set_title(title: str) -> Any:
        return await client.assistant_threads_set_title(
            channel_id=info.channel_id, thread_ts=info.thread_ts, title=title
        )

    enriched = AssistantArgs(
        payload=payload,
        client=client,
        logger=args.logger if args.logger is not None else logger,
        say=say,
        set_status=set_status,
        set_suggested_prompts=set_suggested_prompts,
        set_title=set_title,
        get_thread_context=get_thread_context,
        save_thread_context=save_thread_context,
        ack=args.ack,
        context=args.context,
        body=args.body,
    )
    return enriched


class Assistant:
    def __init__(self, config: AssistantConfig) -> None:
        self._config = validate(config)
        self._store: ThreadContextStore = (
            self._config.thread_context_store or InMemoryThreadContextStore()
        )

    @property
    def thread_context_store(self) -> ThreadContextStore:
        return self._store

    def category_handlers(
        self, category: EventCategory
    ) -> tuple[AssistantMiddleware, ...]:
        key = _CATEGORY_KEYS.get(category)
        if key is None:
            return ()
        return self._config.handlers_for(key)

    def get_middleware(self) -> Callable[[SlackEventArgs], Awaitable[None]]:
        return self.__call__

    async def __call__(self, args: SlackEventArgs) -> None:
        category = classify(args.payload)
        if category is EventCategory.UNRELATED:
            logger.debug(
                "slack.assistant.deferred", event_type=_event_type(args.payload)
            )
            if args.next is not None:
                await args.next()
            return

        assistant_args = enrich_assistant_args(self._store, args)
        logger.debug(
            "slack.assistant.dispatch",
            category=category.value,
            event_type=_event_type(args.payload),
        )
        await process_assistant_middleware(
            assistant_args, self.category_handlers(category)
        )


def _event_type(payload: object) -> str | None:
    if isinstance(payload, dict):
        value = payload.get("type")
        return value if isinstance(value, str) else None
    return None
