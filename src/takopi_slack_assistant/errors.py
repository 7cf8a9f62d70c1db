from __future__ import annotations

from collections.abc import Sequence

from takopi.api import ConfigError


class AssistantError(RuntimeError):
    pass


class AssistantInitializationError(ConfigError):
    pass


class AssistantMissingPropertyError(AssistantError):
    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(
            "Assistant message event is missing required properties: "
            + ", ".join(self.missing)
        )
