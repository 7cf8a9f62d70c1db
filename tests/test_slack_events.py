from __future__ import annotations

import pytest

from takopi_slack_assistant.errors import AssistantMissingPropertyError
from takopi_slack_assistant.events import (
    EventCategory,
    ThreadInfo,
    classify,
    extract_thread_info,
    is_other_message_sub_event,
    is_thread_context_changed,
    is_thread_started,
    is_user_message_in_thread,
)
from tests.slack_fakes import (
    app_mention_event,
    assistant_message_changed_event,
    channel_message_changed_event,
    channel_message_event,
    thread_context_changed_event,
    thread_started_event,
    user_message_event,
)

_PREDICATES = (
    is_thread_started,
    is_thread_context_changed,
    is_user_message_in_thread,
    is_other_message_sub_event,
)


@pytest.mark.parametrize(
    ("event", "expected"),
    [
        (thread_started_event(), EventCategory.THREAD_STARTED),
        (thread_context_changed_event(), EventCategory.THREAD_CONTEXT_CHANGED),
        (user_message_event(), EventCategory.USER_MESSAGE),
        (user_message_event(subtype="file_share"), EventCategory.USER_MESSAGE),
        (assistant_message_changed_event(), EventCategory.OTHER_MESSAGE_SUB_EVENT),
        (channel_message_changed_event(), EventCategory.UNRELATED),
        (channel_message_event(), EventCategory.UNRELATED),
        (app_mention_event(), EventCategory.UNRELATED),
    ],
)
def test_classify(event: dict, expected: EventCategory) -> None:
    assert classify(event) is expected
    matches = [predicate for predicate in _PREDICATES if predicate(event)]
    if expected is EventCategory.UNRELATED:
        assert matches == []
    else:
        assert len(matches) == 1


def test_classify_non_dict_is_unrelated() -> None:
    assert classify(None) is EventCategory.UNRELATED
    assert classify("message") is EventCategory.UNRELATED


def test_user_message_requires_thread_ts() -> None:
    event = user_message_event()
    del event["thread_ts"]
    assert is_user_message_in_thread(event) is False
    assert classify(event) is EventCategory.UNRELATED


def test_user_message_requires_im_channel() -> None:
    assert is_user_message_in_thread(user_message_event(channel_type="mpim")) is False


def test_user_message_rejects_other_subtypes() -> None:
    event = user_message_event(subtype="bot_message")
    assert is_user_message_in_thread(event) is False
    assert classify(event) is EventCategory.UNRELATED


def test_thread_lifecycle_is_not_a_message_sub_event() -> None:
    assert is_other_message_sub_event(thread_started_event()) is False
    assert is_other_message_sub_event(thread_context_changed_event()) is False
    assert is_other_message_sub_event(user_message_event()) is False


def test_edit_of_threaded_dm_reply_is_sub_event() -> None:
    event = channel_message_changed_event()
    event["channel"] = "D1"
    event["channel_type"] = "im"
    assert classify(event) is EventCategory.OTHER_MESSAGE_SUB_EVENT


def test_delete_uses_previous_message() -> None:
    event = {
        "type": "message",
        "subtype": "message_deleted",
        "channel": "D1",
        "channel_type": "im",
        "previous_message": {"type": "message", "ts": "5.5", "thread_ts": "1.1"},
    }
    assert classify(event) is EventCategory.OTHER_MESSAGE_SUB_EVENT
    assert extract_thread_info(event) == ThreadInfo("D1", "1.1", {})


def test_lifecycle_type_wins_over_message_fields() -> None:
    event = thread_started_event()
    event.update(channel_type="im", thread_ts="9.9", channel="D1")
    assert classify(event) is EventCategory.THREAD_STARTED


def test_extract_thread_info_thread_started() -> None:
    event = thread_started_event()
    info = extract_thread_info(event)
    thread = event["assistant_thread"]
    assert info.channel_id == thread["channel_id"]
    assert info.thread_ts == thread["thread_ts"]
    assert info.context == thread["context"]


def test_extract_thread_info_context_changed() -> None:
    event = thread_context_changed_event(context={"channel_id": "C2"})
    info = extract_thread_info(event)
    assert info.context == {"channel_id": "C2"}


def test_extract_thread_info_defaults_context() -> None:
    event = thread_started_event()
    del event["assistant_thread"]["context"]
    assert extract_thread_info(event).context == {}


def test_extract_thread_info_user_message() -> None:
    event = user_message_event(channel="C1", thread_ts="100.1")
    assert extract_thread_info(event) == ThreadInfo(
        channel_id="C1", thread_ts="100.1", context={}
    )


def test_extract_thread_info_root_message_changed() -> None:
    info = extract_thread_info(assistant_message_changed_event())
    assert info.channel_id == "D1"
    assert info.thread_ts == "1726133698.626339"


def test_extract_thread_info_missing_channel_id() -> None:
    event = thread_started_event(channel_id="")
    with pytest.raises(AssistantMissingPropertyError) as exc:
        extract_thread_info(event)
    assert exc.value.missing == ("channel_id",)
    assert str(exc.value) == (
        "Assistant message event is missing required properties: channel_id"
    )


def test_extract_thread_info_missing_both() -> None:
    with pytest.raises(AssistantMissingPropertyError) as exc:
        extract_thread_info({"type": "message"})
    assert "channel_id, thread_ts" in str(exc.value)


@pytest.mark.parametrize(
    "overrides",
    [
        {"subtype": ["x"]},
        {"subtype": {"kind": "file_share"}},
        {"subtype": {"kind": "x"}, "thread_ts": None},
        {"subtype": 7},
        {"thread_ts": ["1.1"]},
        {"thread_ts": 1.1},
        {"subtype": "message_changed", "message": ["not", "a", "dict"]},
        {"subtype": "message_deleted", "previous_message": "gone"},
    ],
)
def test_classify_malformed_fields_is_unrelated(overrides: dict) -> None:
    event = user_message_event(**overrides)
    assert classify(event) is EventCategory.UNRELATED
    assert not any(predicate(event) for predicate in _PREDICATES)


def test_classify_malformed_nested_subtype() -> None:
    event = assistant_message_changed_event()
    event["message"]["subtype"] = ["assistant_app_thread"]
    assert classify(event) is EventCategory.UNRELATED
