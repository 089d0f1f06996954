"""
Retry Policy Configuration

Centralized retry policy for LLM oracle calls. Policies are plain values;
callers turn them into tenacity retry controllers with build_retrying().
Timeouts live in Settings.

Usage:
    from docspec.core.retry_config import ORACLE_RETRY, build_retrying

    async for attempt in build_retrying(ORACLE_RETRY, retry_on=(OracleError,)):
        with attempt:
            await call_oracle()
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Tuple, Type

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy: initial, initial*coef, ... capped at maximum."""
    maximum_attempts: int = 3
    initial_interval: timedelta = timedelta(seconds=1)
    backoff_coefficient: float = 2.0
    maximum_interval: timedelta = timedelta(seconds=30)


# =============================================================================
# Retry Policies
# =============================================================================

# LLM oracle calls: 3 attempts, 1s -> 2s backoff.
# Non-2xx statuses, transport errors and empty completions are retried.
ORACLE_RETRY = RetryPolicy(
    maximum_attempts=3,
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=30),
)


# =============================================================================
# Helper Functions
# =============================================================================

def with_overrides(policy: RetryPolicy, attempts: int, initial_seconds: float) -> RetryPolicy:
    """Copy a policy with the attempt count and initial interval from settings."""
    return replace(
        policy,
        maximum_attempts=max(1, attempts),
        initial_interval=timedelta(seconds=max(0.0, initial_seconds)),
    )


def build_retrying(
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...],
) -> AsyncRetrying:
    """
    Build a tenacity controller for a policy.

    The last exception is re-raised once attempts are exhausted.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(policy.maximum_attempts),
        wait=wait_exponential(
            multiplier=policy.initial_interval.total_seconds(),
            exp_base=policy.backoff_coefficient,
            max=policy.maximum_interval.total_seconds(),
        ),
        retry=retry_if_exception_type(retry_on),
        reraise=True,
    )
