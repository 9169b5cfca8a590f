"""Retrying HTTP sends for external collaborators.

Each client owns a RetryPolicy: how many attempts, how long to back off
and which response statuses count as transient. The same policy decides
whether a final failure is reported as retryable to the caller.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable

import httpx

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    retry_statuses: frozenset[int] = TRANSIENT_STATUSES

    def is_transient(self, status_code: int) -> bool:
        return status_code in self.retry_statuses

    def backoff(self, attempt: int) -> float:
        """Delay before retry number attempt + 1: doubling, capped, up to 50% jitter."""
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        return delay + random.uniform(0, delay / 2) if delay else 0.0


def send_with_retries(
    send: Callable[[], httpx.Response],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> httpx.Response:
    """
    Call send until it returns a non-transient response or attempts run out.

    Transport errors on the last attempt propagate; a transient status on
    the last attempt is returned for the caller to report.
    """
    attempt = 0
    while True:
        last_attempt = attempt >= policy.max_attempts - 1
        try:
            response = send()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning(
                "HTTP attempt %s/%s failed: %s", attempt + 1, policy.max_attempts, type(exc).__name__
            )
        else:
            if last_attempt or not policy.is_transient(response.status_code):
                return response
            logger.warning(
                "HTTP attempt %s/%s returned %s", attempt + 1, policy.max_attempts, response.status_code
            )

        delay = policy.backoff(attempt)
        if delay:
            sleep(delay)
        attempt += 1
