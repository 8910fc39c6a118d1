from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

LOGGER = logging.getLogger("trendscope.http")

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})
DEFAULT_USER_AGENT = "trendscope/0.1"

Sleeper = Callable[[float], Awaitable[None]]
JitterSource = Callable[[float], float]


@dataclass(frozen=True)
class RetryPolicy:
    attempt_timeout_seconds: float = 15.0
    max_retries: int = 3
    base_delay_seconds: float = 2.0
    max_jitter_seconds: float = 1.0
    retry_statuses: frozenset[int] = RETRYABLE_STATUS_CODES

    def should_retry_status(self, status_code: int) -> bool:
        return status_code in self.retry_statuses

    def backoff_seconds(self, retry_number: int, *, jitter: float = 0.0) -> float:
        exponent = max(0, retry_number - 1)
        return self.base_delay_seconds * (2**exponent) + max(0.0, jitter)


def _uniform_jitter(upper: float) -> float:
    if upper <= 0:
        return 0.0
    return random.uniform(0.0, upper)


class ResilientTransport(httpx.AsyncBaseTransport):
    """
    Applies one timeout + retry policy to every request sent through it.

    Each attempt is bounded by `attempt_timeout_seconds`. Transport failures and
    responses with a retryable status are retried with exponential backoff plus
    jitter; every other status is returned to the caller untouched. Once retries
    are exhausted the final response is returned (or the final error re-raised),
    so callers decide how to surface it.

    Task cancellation propagates through both the in-flight attempt and the
    backoff sleep.
    """

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport | None = None,
        *,
        policy: RetryPolicy | None = None,
        sleep: Sleeper = asyncio.sleep,
        jitter: JitterSource = _uniform_jitter,
    ) -> None:
        self._inner = inner if inner is not None else httpx.AsyncHTTPTransport()
        self._policy = policy if policy is not None else RetryPolicy()
        self._sleep = sleep
        self._jitter = jitter

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        retries_done = 0
        while True:
            try:
                response = await self._attempt(request)
            except (httpx.TransportError, TimeoutError) as exc:
                if retries_done >= self._policy.max_retries:
                    LOGGER.warning(
                        "http request failed method=%s host=%s path=%s retries=%s error_type=%s",
                        request.method,
                        request.url.host,
                        request.url.path,
                        retries_done,
                        type(exc).__name__,
                    )
                    if isinstance(exc, TimeoutError):
                        raise httpx.TimeoutException(
                            f"Request timed out after {self._policy.attempt_timeout_seconds}s",
                            request=request,
                        ) from exc
                    raise
                reason = type(exc).__name__
            else:
                if (
                    not self._policy.should_retry_status(response.status_code)
                    or retries_done >= self._policy.max_retries
                ):
                    return response
                reason = f"status_{response.status_code}"
                await response.aclose()

            retries_done += 1
            delay = self._policy.backoff_seconds(
                retries_done,
                jitter=self._jitter(self._policy.max_jitter_seconds),
            )
            LOGGER.info(
                (
                    "http retry scheduled method=%s host=%s path=%s retry=%s "
                    "max_retries=%s delay_seconds=%.2f reason=%s"
                ),
                request.method,
                request.url.host,
                request.url.path,
                retries_done,
                self._policy.max_retries,
                delay,
                reason,
            )
            await self._sleep(delay)

    async def _attempt(self, request: httpx.Request) -> httpx.Response:
        async with asyncio.timeout(self._policy.attempt_timeout_seconds):
            return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


def build_http_client(
    *,
    policy: RetryPolicy | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Sleeper = asyncio.sleep,
    jitter: JitterSource = _uniform_jitter,
    user_agent: str = DEFAULT_USER_AGENT,
) -> httpx.AsyncClient:
    resolved_policy = policy if policy is not None else RetryPolicy()
    return httpx.AsyncClient(
        transport=ResilientTransport(
            transport,
            policy=resolved_policy,
            sleep=sleep,
            jitter=jitter,
        ),
        timeout=httpx.Timeout(resolved_policy.attempt_timeout_seconds),
        headers={"accept": "application/json", "user-agent": user_agent},
    )
