"""
Fan-out Verification

Architectural Intent:
- Runs one check per name concurrently and joins them all before returning
- Each task owns its (name, value, error) slot; slots are merged only after
  asyncio.gather completes, so no task ever touches shared state
- Per-item failures are logged as they resolve and folded into one
  StageFailure that names exactly the failed items
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from rollwatch.domain.errors import ItemError
from rollwatch.domain.value_objects.stage_result import (
    Stage,
    StageFailure,
    StageResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Check = Callable[[str], Awaitable[T]]


def describe_error(error: BaseException) -> str:
    if isinstance(error, ItemError):
        return error.reason
    return str(error) or error.__class__.__name__


async def verify_all(
    stage: Stage,
    names: Sequence[str],
    check: Check,
    failure_message: str,
    describe: Callable[[str, T], str],
) -> StageResult[dict[str, T]]:
    """Run ``check`` for every name and aggregate the outcome.

    Args:
        stage: Stage the results belong to.
        names: Items to verify, in reporting order.
        check: Async callable returning the converged value or raising.
        failure_message: StageFailure message when any item fails.
        describe: Formats the progress line for a successful item.
    """

    async def _one(name: str) -> tuple[str, Optional[T], Optional[Exception]]:
        try:
            value = await check(name)
        except Exception as e:
            logger.error("\t%s ERROR %s", name, describe_error(e))
            return name, None, e
        logger.info("\t%s", describe(name, value))
        return name, value, None

    slots = await asyncio.gather(*(_one(name) for name in names))

    values: dict[str, T] = {}
    reasons: dict[str, str] = {}
    for name, value, error in slots:
        if error is None:
            values[name] = value
        else:
            reasons[name] = describe_error(error)

    if reasons:
        failure = StageFailure(
            stage=stage,
            names=frozenset(reasons),
            message=failure_message,
            reasons=reasons,
        )
        return StageResult.failed(stage, failure, values)
    return StageResult.succeeded(stage, values)
