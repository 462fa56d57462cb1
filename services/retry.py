"""
Store retries
Transient store failures are retried a fixed number of times with linearly
increasing backoff (backoff × attempt) before surfacing to the caller.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from core.config import CONFIG
from core.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "store call",
) -> T:
    """
    Await `operation()`, retrying TransientStoreError only.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        attempts: Total attempts including the first one
        backoff: Seconds to wait after attempt N is backoff * N
    """
    attempts = attempts if attempts is not None else CONFIG['store_retry_attempts']
    backoff = backoff if backoff is not None else CONFIG['store_retry_backoff']

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TransientStoreError as e:
            if attempt >= attempts:
                logger.error("❌ %s failed after %d attempts: %s", label, attempts, e)
                raise
            delay = backoff * attempt
            logger.warning("⚠️ %s failed (attempt %d/%d), retrying in %.1fs: %s",
                           label, attempt, attempts, delay, e)
            await sleep(delay)
    raise TransientStoreError(f"{label}: no attempts made")


class RetryingStore:
    """Wraps any store so every coroutine method goes through with_retries."""

    def __init__(self, store: Any, attempts: Optional[int] = None,
                 backoff: Optional[float] = None, sleep: Sleep = asyncio.sleep):
        self._store = store
        self._attempts = attempts
        self._backoff = backoff
        self._sleep = sleep

    @property
    def wrapped(self) -> Any:
        return self._store

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._store, name)
        if not inspect.iscoroutinefunction(attr):
            return attr

        async def call(*args, **kwargs):
            return await with_retries(
                lambda: attr(*args, **kwargs),
                attempts=self._attempts,
                backoff=self._backoff,
                sleep=self._sleep,
                label=name,
            )

        return call
