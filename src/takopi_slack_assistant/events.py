"""Classification of Slack events that belong to assistant threads.

Every inbound event falls into exactly one :class:`EventCategory`. The
predicates only look at the declared ``type``/``subtype``/``channel_type``
fields, never at message content, so classification cannot fail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import AssistantMissingPropertyError

THREAD_STARTED_EVENT = "assistant_thread_started"
THREAD_CONTEXT_CHANGED_EVENT = "assistant_thread_context_changed"
MESSAGE_EVENT = "message"
ASSISTANT_CHANNEL_TYPE = "im"
ASSISTANT_THREAD_SUBTYPE = "assistant_app_thread"
USER_MESSAGE_SUBTYPES = frozenset({"file_share"})
MESSAGE_SUB_EVENTS = {
    "message_changed": "message",
    "message_deleted": "previous_message",
}


class EventCategory(Enum):
    THREAD_STARTED = "thread_started"
    THREAD_CONTEXT_CHANGED = "thread_context_changed"
    USER_MESSAGE = "user_message"
    OTHER_MESSAGE_SUB_EVENT = "other_message_sub_event"
    UNRELATED = "unrelated"


@dataclass(frozen=True, slots=True)
class ThreadInfo:
    channel_id: str
    thread_ts: str
    context: dict[str, Any] = field(default_factory=dict)


def _is_assistant_message(event: dict[str, Any]) -> bool:
    return (
        event.get("type") == MESSAGE_EVENT
        and event.get("channel_type") == ASSISTANT_CHANNEL_TYPE
    )


def _subtype(event: dict[str, Any]) -> str | None:
    subtype = event.get("subtype")
    return subtype if isinstance(subtype, str) else None


def _nested_message(event: dict[str, Any]) -> dict[str, Any] | None:
    subtype = _subtype(event)
    key = MESSAGE_SUB_EVENTS.get(subtype) if subtype is not None else None
    if key is None:
        return None
    nested = event.get(key)
    return nested if isinstance(nested, dict) else None


def is_thread_started(event: dict[str, Any]) -> bool:
    return event.get("type") == THREAD_STARTED_EVENT


def is_thread_context_changed(event: dict[str, Any]) -> bool:
    return event.get("type") == THREAD_CONTEXT_CHANGED_EVENT


def is_user_message_in_thread(event: dict[str, Any]) -> bool:
    if not _is_assistant_message(event):
        return False
    thread_ts = event.get("thread_ts")
    if not isinstance(thread_ts, str) or not thread_ts:
        return False
    if event.get("subtype") is None:
        return True
    return _subtype(event) in USER_MESSAGE_SUBTYPES


def is_other_message_sub_event(event: dict[str, Any]) -> bool:
    """Edits and deletes of a message that lives in an assistant thread.

    An edit of an ordinary channel message is not an assistant event: the
    top-level ``channel_type`` and the nested record's thread marker both
    have to agree.
    """
    if (
        is_thread_started(event)
        or is_thread_context_changed(event)
        or is_user_message_in_thread(event)
    ):
        return False
    if not _is_assistant_message(event):
        return False
    nested = _nested_message(event)
    if nested is None:
        return False
    if nested.get("subtype") == ASSISTANT_THREAD_SUBTYPE:
        return True
    thread_ts = nested.get("thread_ts")
    return isinstance(thread_ts, str) and bool(thread_ts)


_CLASSIFIERS = (
    (EventCategory.THREAD_STARTED, is_thread_started),
    (EventCategory.THREAD_CONTEXT_CHANGED, is_thread_context_changed),
    (EventCategory.USER_MESSAGE, is_user_message_in_thread),
    (EventCategory.OTHER_MESSAGE_SUB_EVENT, is_other_message_sub_event),
)


def classify(event: object) -> EventCategory:
    if not isinstance(event, dict):
        return EventCategory.UNRELATED
    for category, predicate in _CLASSIFIERS:
        if predicate(event):
            return category
    return EventCategory.UNRELATED


def _non_empty_str(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def extract_thread_info(event: dict[str, Any]) -> ThreadInfo:
    """Return the thread identity and inline context carried by ``event``.

    Thread lifecycle events describe the thread in ``assistant_thread``.
    Message events only carry ``channel``/``thread_ts``; their context is
    never inline and has to come from a thread context store.
    """
    thread = event.get("assistant_thread")
    if isinstance(thread, dict):
        channel_id = _non_empty_str(thread.get("channel_id"))
        thread_ts = _non_empty_str(thread.get("thread_ts"))
        context = thread.get("context")
        context = dict(context) if isinstance(context, dict) else {}
    else:
        channel_id = _non_empty_str(event.get("channel"))
        thread_ts = _non_empty_str(event.get("thread_ts"))
        if thread_ts is None:
            nested = _nested_message(event)
            if nested is not None:
                thread_ts = _non_empty_str(nested.get("thread_ts"))
                # the thread's root message is its own thread
                if (
                    thread_ts is None
                    and nested.get("subtype") == ASSISTANT_THREAD_SUBTYPE
                ):
                    thread_ts = _non_empty_str(nested.get("ts"))
        context = {}

    if channel_id is None or thread_ts is None:
        missing = [
            name
            for name, value in (("channel_id", channel_id), ("thread_ts", thread_ts))
            if value is None
        ]
        raise AssistantMissingPropertyError(missing)
    return ThreadInfo(channel_id=channel_id, thread_ts=thread_ts, context=context)
