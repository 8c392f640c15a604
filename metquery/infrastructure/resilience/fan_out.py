"""Bounded parallel execution of independent paid calls.

Each branch handles its own failure: a branch that raises a PaidRequestError
yields None instead, so one endpoint's failure never aborts the others.
"""

import asyncio
import logging
from typing import Awaitable, List, Optional, Tuple

from metquery.domain.errors import PaidRequestError
from metquery.domain.models.payment import CallResult

logger = logging.getLogger(__name__)

MAX_FAN_OUT = 4


async def _isolated(name: str, step: Awaitable[CallResult]) -> Optional[CallResult]:
    try:
        return await step
    except PaidRequestError as e:
        logger.error(f"{name} error: {e.describe()}")
        return None


async def join_isolated(*branches: Tuple[str, Awaitable[CallResult]]) -> List[Optional[CallResult]]:
    """Starts all branches, waits for all, and returns their results in order.

    Args:
        *branches: (name, awaitable) pairs; at most MAX_FAN_OUT of them.

    Returns:
        One entry per branch: its CallResult, or None if it failed.
    """
    if len(branches) > MAX_FAN_OUT:
        raise ValueError(f"join_isolated supports at most {MAX_FAN_OUT} branches, got {len(branches)}")
    return list(await asyncio.gather(*(_isolated(name, step) for name, step in branches)))
