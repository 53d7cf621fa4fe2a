"""Routing of client WebSocket messages to per-type handlers.

Each handler module registers itself with @handler on import. A handler that
raises is reported to the sender as an INTERNAL_ERROR message; the socket
stays open.
"""

import logging
from collections.abc import Awaitable, Callable

from app.schemas.ws import MessageType

from .base import HandlerContext, HandlerResult, error_response

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[HandlerContext], Awaitable[HandlerResult]]

_handlers: dict[MessageType, HandlerFunc] = {}


def handler(message_type: MessageType) -> Callable[[HandlerFunc], HandlerFunc]:
    """Register the decorated coroutine as the handler for message_type.

    Raises:
        ValueError: If message_type already has a handler.
    """

    def register(func: HandlerFunc) -> HandlerFunc:
        existing = _handlers.get(message_type)
        if existing is not None and existing is not func:
            raise ValueError(f"{message_type} is already handled by {existing.__name__}")
        _handlers[message_type] = func
        return func

    return register


async def dispatch(ctx: HandlerContext) -> HandlerResult | None:
    """Run the handler for ctx.message.

    Returns:
        The handler's result, an INTERNAL_ERROR result if it raised, or None
        for message types nobody handles (e.g. server-to-client types).
    """
    handler_func = _handlers.get(ctx.message.type)
    if handler_func is None:
        return None

    try:
        return await handler_func(ctx)
    except Exception:
        logger.exception(
            "Handler %s failed for connection %s", handler_func.__name__, ctx.connection_id
        )
        return error_response(
            "INTERNAL_ERROR",
            "Something went wrong handling that message",
            MessageType.ERROR,
            ctx.message.request_id,
        )


from . import game  # noqa: E402, F401
from . import leave  # noqa: E402, F401
from . import ping  # noqa: E402, F401
from . import start_game  # noqa: E402, F401

__all__ = [
    "HandlerContext",
    "HandlerResult",
    "dispatch",
    "handler",
]
