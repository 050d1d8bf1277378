"""
Convergence Poller

Architectural Intent:
- One bounded retry-until-true primitive shared by every verification stage
- The probe runs immediately, then once per interval until it reports done
- Timeout is cooperative: an in-flight probe always finishes before the
  deadline is checked, and expiry fails only the caller's own task
- Probe exceptions are query errors, not "not yet"; they propagate untouched
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from rollwatch.domain.errors import PollTimeoutError

T = TypeVar("T")

Probe = Callable[[], Awaitable[tuple[bool, T]]]


async def poll(
    predicate: Probe,
    interval: float = 1.0,
    timeout: Optional[float] = None,
) -> T:
    """Call ``predicate`` until it returns ``(True, value)`` and return ``value``.

    Args:
        predicate: Async callable returning a ``(done, value)`` pair.
        interval: Seconds to wait between unsuccessful checks.
        timeout: Seconds before giving up with PollTimeoutError.
            ``None`` or ``0`` polls indefinitely.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout else None

    while True:
        done, value = await predicate()
        if done:
            return value

        if deadline is None:
            await asyncio.sleep(interval)
            continue

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise PollTimeoutError(timeout)
        await asyncio.sleep(min(interval, remaining))
