"""Error types for the event pipeline with retry and classification helpers."""

import asyncio
import random
import re
from typing import Optional, Type, Tuple, Callable, Any
from enum import Enum

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for better handling."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # Remote service returned an error response
    AUTH_ERROR = "auth_error"  # Authentication/authorization failures
    RATE_LIMIT = "rate_limit"  # Rate limit exceeded
    MEDIA = "media"  # Media could not be acquired
    UNKNOWN = "unknown"  # Unknown errors


class PipelineError(Exception):
    """Base exception for errors raised while processing an event."""
    def __init__(self, message: str, category: ErrorCategory, retryable: bool = False, retry_after: Optional[float] = None):
        self.message = message
        self.category = category
        self.retryable = retryable
        self.retry_after = retry_after
        super().__init__(message)


class NetworkError(PipelineError):
    """Network-related errors (connection, timeout)."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.NETWORK, retryable=True, retry_after=retry_after)


class APIError(PipelineError):
    """Remote API returned an error response."""
    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False, retry_after: Optional[float] = None):
        self.status_code = status_code
        super().__init__(message, ErrorCategory.API_ERROR, retryable=retryable, retry_after=retry_after)


class AuthError(PipelineError):
    """Authentication/authorization errors."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.AUTH_ERROR, retryable=False)


class RateLimitError(PipelineError):
    """Rate limit exceeded."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.RATE_LIMIT, retryable=True, retry_after=retry_after)


class MediaDownloadError(PipelineError):
    """Attached media could not be downloaded; the message cannot be stored."""
    def __init__(self, message: str, message_id: Optional[str] = None):
        self.message_id = message_id
        super().__init__(message, ErrorCategory.MEDIA, retryable=False)


class TranscriptionError(PipelineError):
    """Audio transcription failed."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message, ErrorCategory.API_ERROR, retryable=retryable)


def classify_error(error: Exception) -> Tuple[ErrorCategory, bool, Optional[float]]:
    """
    Classify an error into a category and determine if it's retryable.

    Args:
        error: The exception to classify

    Returns:
        Tuple of (category, retryable, retry_after_seconds)
    """
    if isinstance(error, PipelineError):
        return error.category, error.retryable, error.retry_after

    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK, True, None

    error_str = str(error).lower()

    if any(keyword in error_str for keyword in ['connection', 'timeout', 'network', 'dns', 'refused']):
        return ErrorCategory.NETWORK, True, None

    if 'rate limit' in error_str or '429' in error_str or 'too many requests' in error_str:
        retry_after = None
        match = re.search(r'retry[_-]after[:\s]+(\d+)', error_str, re.IGNORECASE)
        if match:
            retry_after = float(match.group(1))
        return ErrorCategory.RATE_LIMIT, True, retry_after

    if any(keyword in error_str for keyword in ['unauthorized', 'forbidden', '401', '403', 'authentication']):
        return ErrorCategory.AUTH_ERROR, False, None

    if 'api' in error_str or 'http' in error_str:
        return ErrorCategory.API_ERROR, False, None

    return ErrorCategory.UNKNOWN, False, None


def wrap_http_error(error: Exception, service: str) -> PipelineError:
    """
    Wrap an httpx error raised while talking to an external service.

    Args:
        error: Original exception
        service: Service name used in the message ('gateway', 'openai')

    Returns:
        PipelineError with the appropriate category
    """
    if isinstance(error, PipelineError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        if status_code == 429:
            retry_after = error.response.headers.get("retry-after")
            return RateLimitError(
                f"{service} rate limit exceeded",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status_code in (401, 403):
            return AuthError(f"{service} auth error ({status_code})")
        if status_code >= 500:
            return APIError(f"{service} server error ({status_code})", status_code=status_code, retryable=True)
        return APIError(f"{service} API error ({status_code})", status_code=status_code, retryable=False)

    category, retryable, retry_after = classify_error(error)
    if category == ErrorCategory.NETWORK:
        return NetworkError(f"{service} network error: {error}", retry_after=retry_after)
    return APIError(f"{service} error: {error}", retryable=retryable)


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Only errors that classify_error() reports as retryable are retried.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        retryable_exceptions: Tuple of exception types to consider
        on_retry: Optional callback called on each retry (exception, attempt_number)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except retryable_exceptions as e:
            _, retryable, retry_after = classify_error(e)

            if not retryable or attempt >= max_retries:
                raise

            if retry_after:
                delay = min(retry_after, max_delay)
            else:
                delay = min(initial_delay * (exponential_base ** attempt), max_delay)

            # Add jitter to avoid thundering herd
            delay += random.uniform(0, delay * 0.1)

            if on_retry:
                result = on_retry(e, attempt + 1)
                if asyncio.iscoroutine(result):
                    await result

            await asyncio.sleep(delay)
