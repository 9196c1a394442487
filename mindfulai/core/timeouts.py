import asyncio
import logging
from typing import Awaitable, TypeVar

from mindfulai.core.errors import GatewayTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_timeout(awaitable: Awaitable[T], seconds: float, operation: str) -> T:
    """Await a provider call, failing it for the caller after `seconds`.

    Only the local task is cancelled. The provider may still complete the
    action on its side, so a timeout is reported as "outcome unknown".
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning(
            f"{operation} timed out after {seconds}s; "
            "the provider may still complete it out-of-band"
        )
        raise GatewayTimeout(f"{operation} timed out after {seconds}s")
