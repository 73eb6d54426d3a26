"""
Bounded retry with exponential backoff over tagged call outcomes.

External clients never hand raw status codes to the rest of the code. Every
call is converted at the boundary into one of::

    Ok(data) | RateLimited | ServerError | ClientError

``RateLimited`` and ``ServerError`` (5xx, timeouts, transport failures) are
retryable; ``ClientError`` is not. ``call_with_retry`` runs an operation in an
explicit loop and returns the last outcome, so callers decide how to degrade.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    data: Any = None


@dataclass(frozen=True)
class RateLimited:
    detail: str = ""
    status: int = 429


@dataclass(frozen=True)
class ServerError:
    detail: str = ""
    status: Optional[int] = None


@dataclass(frozen=True)
class ClientError:
    detail: str = ""
    status: Optional[int] = None


CallOutcome = Union[Ok, RateLimited, ServerError, ClientError]
Operation = Callable[[], Awaitable[CallOutcome]]

_RETRYABLE = (RateLimited, ServerError)


def is_retryable(outcome: CallOutcome) -> bool:
    return isinstance(outcome, _RETRYABLE)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return self.base_delay * (2 ** (attempt - 1))


@dataclass
class RetryState:
    max_attempts: int
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


def _short(value, max_len=200):
    text = str(value or "").replace("\n", " ").strip()
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def classify_response(response: httpx.Response) -> CallOutcome:
    status = response.status_code
    if 200 <= status < 300:
        if not response.content:
            return Ok(None)
        try:
            return Ok(response.json())
        except ValueError:
            return ServerError("response body is not valid JSON", status)
    detail = _short(response.text)
    if status == 429:
        return RateLimited(detail, status)
    if status >= 500:
        return ServerError(detail, status)
    return ClientError(detail, status)


async def send_request(send: Callable[[], Awaitable[httpx.Response]]) -> CallOutcome:
    """Run an httpx request coroutine and tag its result."""
    try:
        response = await send()
    except httpx.TimeoutException as exc:
        return ServerError(f"timeout: {_short(exc) or type(exc).__name__}")
    except httpx.TransportError as exc:
        return ServerError(f"transport error: {_short(exc) or type(exc).__name__}")
    return classify_response(response)


async def call_with_retry(
    operation: Operation,
    policy: RetryPolicy,
    *,
    label: str = "external call",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> CallOutcome:
    state = RetryState(policy.max_attempts)
    outcome: CallOutcome = ServerError("not attempted")
    while not state.exhausted:
        state.attempt += 1
        outcome = await operation()
        if not is_retryable(outcome):
            if state.attempt > 1 and isinstance(outcome, Ok):
                logger.info("%s succeeded on attempt %d", label, state.attempt)
            return outcome
        if state.exhausted:
            break
        delay = policy.delay_for(state.attempt)
        logger.warning(
            "%s attempt %d/%d failed (%s), retrying in %.2fs",
            label,
            state.attempt,
            state.max_attempts,
            type(outcome).__name__,
            delay,
        )
        await sleep(delay)
    logger.error(
        "%s gave up after %d attempts: %s %s",
        label,
        state.attempt,
        type(outcome).__name__,
        getattr(outcome, "detail", ""),
    )
    return outcome
