from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from takopi.api import get_logger

if TYPE_CHECKING:
    from .assistant import AssistantArgs

logger = get_logger(__name__)

Continuation = Callable[[], Awaitable[None]]
AssistantMiddleware = Callable[["AssistantArgs"], Awaitable[Any]]


async def auto_acknowledge(args: AssistantArgs) -> None:
    if args.ack is not None:
        await args.ack()
    if args.next is not None:
        await args.next()


def build_chain(
    handlers: Sequence[AssistantMiddleware],
) -> tuple[AssistantMiddleware, ...]:
    return (auto_acknowledge, *handlers)


async def _noop() -> None:
    return None


async def _run_from(
    args: AssistantArgs, chain: Sequence[AssistantMiddleware], index: int
) -> None:
    if index >= len(chain):
        return
    handler = chain[index]

    async def call_next() -> None:
        await _run_from(args, chain, index + 1)

    continuation: Continuation = call_next if index + 1 < len(chain) else _noop
    await handler(dataclasses.replace(args, next=continuation))


async def process_assistant_middleware(
    args: AssistantArgs, handlers: Sequence[AssistantMiddleware]
) -> None:
    """Run ``handlers`` one after another behind :func:`auto_acknowledge`.

    Each handler gets its own ``args.next`` that starts the following one;
    a handler that never awaits it ends the chain there.
    """
    chain = build_chain(handlers)
    logger.debug("slack.assistant.chain_started", length=len(chain))
    try:
        await _run_from(args, chain, 0)
    except Exception as exc:
        logger.exception(
            "slack.assistant.handler_failed",
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        raise
