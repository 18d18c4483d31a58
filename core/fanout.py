# PATH: core/fanout.py
"""
Best-effort concurrent fan-out with partial results.

Each call gets its own timeout (asyncio.wait_for); the whole batch is
bounded by a global budget (asyncio.wait). Calls still running when the
budget ends are cancelled. Every key always gets an outcome: the call's
value, or the exception that ended it.
"""

import asyncio
from typing import Any, Awaitable, Dict, Hashable, Optional, Union

from core.logging import get_logger

logger = get_logger(__name__)


class BudgetExceeded(Exception):
    """The global fan-out budget ran out before the call finished."""


Outcome = Union[Any, BaseException]


async def fan_out(
    calls: Dict[Hashable, Awaitable[Any]],
    per_call_timeout: Optional[float],
    budget: Optional[float],
) -> Dict[Hashable, Outcome]:
    """
    Run calls concurrently and collect outcomes.

    Args:
        calls: key -> awaitable
        per_call_timeout: Timeout for each call (None = unbounded)
        budget: Timeout for the batch (None = unbounded)

    Returns:
        key -> result value or exception (asyncio.TimeoutError,
        BudgetExceeded, or whatever the call raised)
    """
    if not calls:
        return {}

    tasks: Dict[asyncio.Task, Hashable] = {
        asyncio.ensure_future(asyncio.wait_for(call, timeout=per_call_timeout)): key
        for key, call in calls.items()
    }

    done, pending = await asyncio.wait(tasks.keys(), timeout=budget)

    for task in pending:
        task.cancel()
    if pending:
        # Wait for cancelled tasks to unwind
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(
            "Fan-out budget exceeded",
            extra={"context": {"cancelled": len(pending), "budget_seconds": budget}},
        )

    outcomes: Dict[Hashable, Outcome] = {}
    for task, key in tasks.items():
        if task in pending:
            outcomes[key] = BudgetExceeded(f"budget of {budget}s exceeded")
        elif task.exception() is not None:
            outcomes[key] = task.exception()
        else:
            outcomes[key] = task.result()
    return outcomes
