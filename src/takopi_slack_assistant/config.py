from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from takopi.api import ConfigError

from .context_store import (
    FileThreadContextStore,
    InMemoryThreadContextStore,
    MessageMetadataThreadContextStore,
    ThreadContextStore,
    resolve_context_path,
)

_LABEL = "transports.slack.assistant"
_CONTEXT_STORES = ("memory", "file", "metadata")


@dataclass(frozen=True, slots=True)
class AssistantSettings:
    context_store: Literal["memory", "file", "metadata"] = "memory"
    context_store_path: str | None = None
    bot_user_id: str | None = None

    @classmethod
    def from_config(
        cls, config: object, *, config_path: Path
    ) -> "AssistantSettings":
        if config is None:
            return cls()
        if isinstance(config, AssistantSettings):
            return config
        if not isinstance(config, dict):
            raise ConfigError(
                f"Invalid `{_LABEL}` in {config_path}; expected a table."
            )

        allowed_keys = {"context_store", "context_store_path", "bot_user_id"}
        unknown_keys = set(config) - allowed_keys
        if unknown_keys:
            unknown = ", ".join(sorted(unknown_keys))
            raise ConfigError(
                f"Invalid `{_LABEL}` in {config_path}; unknown keys: {unknown}."
            )

        context_store = config.get("context_store", "memory")
        if not isinstance(context_store, str):
            raise ConfigError(
                f"Invalid `{_LABEL}.context_store` in {config_path}; "
                "expected a string."
            )
        context_store = context_store.strip().lower()
        if context_store not in _CONTEXT_STORES:
            raise ConfigError(
                f"Invalid `{_LABEL}.context_store` in {config_path}; "
                "expected 'memory', 'file' or 'metadata'."
            )

        context_store_path = _optional_str(
            config, "context_store_path", None, config_path
        )
        bot_user_id = _optional_str(config, "bot_user_id", None, config_path)
        return cls(
            context_store=context_store,  # type: ignore[arg-type]
            context_store_path=context_store_path,
            bot_user_id=bot_user_id,
        )


def build_thread_context_store(
    settings: AssistantSettings, *, config_path: Path
) -> ThreadContextStore:
    if settings.context_store == "file":
        if settings.context_store_path is None:
            return FileThreadContextStore(resolve_context_path(config_path))
        path = Path(settings.context_store_path).expanduser()
        if not path.is_absolute():
            path = config_path.parent / path
        return FileThreadContextStore(path)
    if settings.context_store == "metadata":
        return MessageMetadataThreadContextStore(bot_user_id=settings.bot_user_id)
    return InMemoryThreadContextStore()


def _optional_str(
    config: dict[str, Any],
    key: str,
    default: str | None,
    config_path: Path,
) -> str | None:
    if key not in config:
        return default
    value = config.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(
            f"Invalid `{_LABEL}.{key}` in {config_path}; expected a string."
        )
    cleaned = value.strip()
    return cleaned or None
