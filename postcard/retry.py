from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar

from apify_client.errors import ApifyApiError
from openai import APIConnectionError, APIStatusError, APITimeoutError, RateLimitError

T = TypeVar("T")

RetryDecision = tuple[bool, float | None, str | None]


@dataclass(frozen=True)
class RetryConfig:
    """
    Exponential backoff retry policy for transport calls.

    - max_attempts counts the initial attempt (max_attempts=3 => 1 try + 2 retries).
    - base_delay_seconds is the first delay after the first failure.
    - jitter_ratio adds multiplicative jitter in [1-jitter, 1+jitter].
    - retry_after_cap_seconds caps any Retry-After override (0 disables the cap).
    """

    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    jitter_ratio: float = 0.25
    retry_after_cap_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0 and 1")
        if self.retry_after_cap_seconds < 0:
            raise ValueError("retry_after_cap_seconds must be >= 0")

    def backoff_seconds(self, failure_attempt: int) -> float:
        # failure_attempt=1 => base delay.
        exponent = max(0, int(failure_attempt) - 1)
        return min(self.max_delay_seconds, max(0.0, self.base_delay_seconds * (2**exponent)))

    def jittered(self, delay: float) -> float:
        d = max(0.0, float(delay))
        if d == 0.0 or self.jitter_ratio <= 0:
            return d
        return max(0.0, d * random.uniform(1.0 - self.jitter_ratio, 1.0 + self.jitter_ratio))

    def capped_retry_after(self, value: float | None) -> float | None:
        if value is None or value < 0:
            return None
        if self.retry_after_cap_seconds > 0:
            return min(float(value), float(self.retry_after_cap_seconds))
        return float(value)


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    failure_attempt: int
    max_attempts: int
    delay_seconds: float
    reason: str | None
    error_type: str
    error_message: str
    context: str | None


IsRetryableFn = Callable[[BaseException], RetryDecision]
OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], None]


def call_with_retries(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig,
    is_retryable: IsRetryableFn,
    operation: str,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
    context: str | None = None,
) -> T:
    """
    Call fn() and retry while is_retryable says the failure is transient.

    The last failure is re-raised unchanged once attempts are exhausted.
    """
    op = (operation or "").strip() or "operation"
    sleeper = sleep_fn or time.sleep

    attempt = 1
    while True:
        try:
            return fn()
        except Exception as exc:
            retryable, retry_after, reason = is_retryable(exc)
            if not retryable or attempt >= cfg.max_attempts:
                raise

            delay = cfg.backoff_seconds(attempt)
            ra = cfg.capped_retry_after(retry_after)
            if ra is not None:
                delay = max(delay, ra)
            delay = cfg.jittered(delay)

            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=op,
                        failure_attempt=attempt,
                        max_attempts=cfg.max_attempts,
                        delay_seconds=delay,
                        reason=reason,
                        error_type=type(exc).__name__,
                        error_message=(str(exc) or "").strip(),
                        context=context,
                    )
                )

            if delay > 0:
                sleeper(delay)
            attempt += 1


def _status_code(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "http_status"):
        val = getattr(exc, attr, None)
        if val is None:
            continue
        try:
            return int(val)
        except (TypeError, ValueError):
            continue
    return None


def _retry_after_seconds(exc: BaseException) -> float | None:
    response = getattr(exc, "response", None)
    headers: Any = getattr(response, "headers", None)
    if not isinstance(headers, Mapping) and headers is not None:
        try:
            headers = dict(headers)
        except (TypeError, ValueError):
            headers = None
    if not headers:
        return None

    val = headers.get("retry-after") or headers.get("Retry-After")
    if val is None:
        return None
    try:
        return float(str(val).strip())
    except ValueError:
        return None


def _is_transient_status(code: int | None) -> bool:
    return code in (408, 409, 429) or (isinstance(code, int) and code >= 500)


def openai_retry_policy(exc: BaseException) -> RetryDecision:
    """Connection errors, timeouts, HTTP 408/409/429 and 5xx are transient."""
    retry_after = _retry_after_seconds(exc)

    if isinstance(exc, APITimeoutError):
        return True, retry_after, "timeout"
    if isinstance(exc, APIConnectionError):
        return True, retry_after, "connection_error"
    if isinstance(exc, RateLimitError):
        return True, retry_after, "rate_limited"
    if isinstance(exc, APIStatusError):
        code = _status_code(exc)
        return _is_transient_status(code), retry_after, f"http_{code}"

    return False, None, None


def apify_retry_policy(exc: BaseException) -> RetryDecision:
    """HTTP 429, 5xx and network-level failures are transient."""
    if isinstance(exc, ApifyApiError):
        code = _status_code(exc)
        transient = code == 429 or (isinstance(code, int) and code >= 500)
        return transient, None, f"http_{code}"

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True, None, "network_error"

    # Apify's HTTP stack surfaces its own timeout/connection types.
    name = type(exc).__name__.casefold()
    if "timeout" in name or "connect" in name:
        return True, None, "network_error"

    return False, None, None
