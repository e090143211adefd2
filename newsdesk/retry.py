from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import RetriableStatusError

T = TypeVar("T")

RETRIABLE_STATUSES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, RetriableStatusError):
        return True
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry with exponential backoff for one outbound call site."""

    max_attempts: int = 3
    base_delay: float = 0.35
    max_delay: float = 5.0
    retry_statuses: frozenset[int] = RETRIABLE_STATUSES

    def check_status(self, response: httpx.Response) -> None:
        if response.status_code in self.retry_statuses:
            raise RetriableStatusError(response.status_code, str(response.request.url))

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception(is_transient_error),
            reraise=True,
        )

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        async for attempt in self.retrying():
            with attempt:
                return await fn()
        raise AssertionError("unreachable")
