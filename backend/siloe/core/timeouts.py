import asyncio
import logging
from typing import Awaitable, Type, TypeVar

from .errors import ProviderTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(
    awaitable: Awaitable[T],
    seconds: float,
    what: str,
    error_cls: Type[ProviderTimeout] = ProviderTimeout,
) -> T:
    """Await ``awaitable`` for at most ``seconds``.

    Raises ``error_cls`` (a ProviderTimeout) when the bound is exceeded, so
    callers can tell an overrun from a provider that answered with an error.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        logger.error("%s timed out after %.1fs", what, seconds)
        raise error_cls(f"{what} timed out after {seconds:g}s", cause=e) from e
