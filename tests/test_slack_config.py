from pathlib import Path

import pytest

from takopi.api import ConfigError
from takopi_slack_assistant.config import AssistantSettings, build_thread_context_store
from takopi_slack_assistant.context_store import (
    FileThreadContextStore,
    InMemoryThreadContextStore,
    MessageMetadataThreadContextStore,
)
from takopi_slack_assistant.errors import AssistantInitializationError


def test_from_config_defaults() -> None:
    settings = AssistantSettings.from_config(None, config_path=Path("/tmp/x"))
    assert settings.context_store == "memory"
    assert settings.context_store_path is None
    assert settings.bot_user_id is None


def test_from_config_valid() -> None:
    cfg = {
        "context_store": " File ",
        "context_store_path": "state/context.json",
        "bot_user_id": "U123",
    }
    settings = AssistantSettings.from_config(cfg, config_path=Path("/tmp/x"))
    assert settings.context_store == "file"
    assert settings.context_store_path == "state/context.json"
    assert settings.bot_user_id == "U123"


def test_from_config_invalid_table() -> None:
    with pytest.raises(ConfigError):
        AssistantSettings.from_config("nope", config_path=Path("/tmp/x"))


def test_from_config_unknown_keys() -> None:
    with pytest.raises(ConfigError, match="unknown keys: extra"):
        AssistantSettings.from_config({"extra": 1}, config_path=Path("/tmp/x"))


def test_from_config_invalid_store() -> None:
    with pytest.raises(ConfigError):
        AssistantSettings.from_config(
            {"context_store": "redis"}, config_path=Path("/tmp/x")
        )
    with pytest.raises(ConfigError):
        AssistantSettings.from_config({"context_store": 1}, config_path=Path("/tmp/x"))


def test_from_config_invalid_path_type() -> None:
    with pytest.raises(ConfigError):
        AssistantSettings.from_config(
            {"context_store_path": 3}, config_path=Path("/tmp/x")
        )


def test_build_store_variants(tmp_path: Path) -> None:
    config_path = tmp_path / "takopi.toml"
    assert isinstance(
        build_thread_context_store(AssistantSettings(), config_path=config_path),
        InMemoryThreadContextStore,
    )
    assert isinstance(
        build_thread_context_store(
            AssistantSettings(context_store="metadata"), config_path=config_path
        ),
        MessageMetadataThreadContextStore,
    )
    file_store = build_thread_context_store(
        AssistantSettings(context_store="file", context_store_path="ctx.json"),
        config_path=config_path,
    )
    assert isinstance(file_store, FileThreadContextStore)
    assert file_store._path == tmp_path / "ctx.json"

    default_file_store = build_thread_context_store(
        AssistantSettings(context_store="file"), config_path=config_path
    )
    assert default_file_store._path == tmp_path / "slack_assistant_context_state.json"


def test_initialization_error_is_config_error() -> None:
    assert issubclass(AssistantInitializationError, ConfigError)
