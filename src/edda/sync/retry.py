# src/edda/sync/retry.py

from __future__ import annotations

"""
Call policy for sync provider calls.

Provider calls are the only genuinely unreliable operations, so each call gets:
- a hard timeout (asyncio.wait_for); a timeout counts as a NetworkError
- bounded retry with exponential backoff, for NetworkError only
  (auth/config problems fail fast: retrying them cannot help)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ..core.errors import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CallPolicy:
    timeout_seconds: float = 30.0
    max_retries: int = 2  # extra attempts after the first one
    backoff_seconds: float = 1.0
    max_backoff_seconds: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (1-based)."""
        return min(self.max_backoff_seconds, max(0.0, self.backoff_seconds) * (2 ** (attempt - 1)))


async def call_provider(
    what: str,
    fn: Callable[[], Awaitable[T]],
    policy: CallPolicy,
) -> T:
    attempts = 1 + max(0, int(policy.max_retries))
    attempt = 1

    while True:
        try:
            return await asyncio.wait_for(fn(), timeout=max(0.001, float(policy.timeout_seconds)))
        except TimeoutError:
            error = NetworkError(f"{what} timed out after {policy.timeout_seconds:.1f}s")
        except NetworkError as e:
            error = e

        if attempt >= attempts:
            logger.warning("%s failed after %s attempt(s): %s", what, attempts, error)
            raise error

        delay = policy.delay_for(attempt)
        logger.info(
            "%s failed (attempt %s/%s): %s; retrying in %.1fs",
            what,
            attempt,
            attempts,
            error,
            delay,
        )
        await asyncio.sleep(delay)
        attempt += 1
