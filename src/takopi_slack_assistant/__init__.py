from .assistant import (
    Assistant,
    AssistantArgs,
    AssistantConfig,
    SlackEventArgs,
    enrich_assistant_args,
    validate,
)
from .client import AssistantClient, SlackApiError, SlackClient
from .config import AssistantSettings, build_thread_context_store
from .context_store import (
    FileThreadContextStore,
    InMemoryThreadContextStore,
    MessageMetadataThreadContextStore,
    ThreadContextStore,
)
from .errors import (
    AssistantError,
    AssistantInitializationError,
    AssistantMissingPropertyError,
)
from .events import EventCategory, ThreadInfo, classify, extract_thread_info
from .middleware import auto_acknowledge, process_assistant_middleware

__all__ = [
    "Assistant",
    "AssistantArgs",
    "AssistantClient",
    "AssistantConfig",
    "AssistantError",
    "AssistantInitializationError",
    "AssistantMissingPropertyError",
    "AssistantSettings",
    "EventCategory",
    "FileThreadContextStore",
    "InMemoryThreadContextStore",
    "MessageMetadataThreadContextStore",
    "SlackApiError",
    "SlackClient",
    "SlackEventArgs",
    "ThreadContextStore",
    "ThreadInfo",
    "auto_acknowledge",
    "build_thread_context_store",
    "classify",
    "enrich_assistant_args",
    "extract_thread_info",
    "process_assistant_middleware",
    "validate",
]
