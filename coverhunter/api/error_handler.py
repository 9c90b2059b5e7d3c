"""Error taxonomy for image provider interactions."""

from enum import Enum
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categorize failures so callers can decide how to react."""
    PRECONDITION = "precondition"  # bad directory, empty config - abort before starting
    RECOVERABLE = "recoverable"    # missing credential - one interactive retry
    TRANSIENT = "transient"        # 429, timeout, network - user may retry
    FATAL = "fatal"                # 403, malformed response - surfaced, no retry
    CANCELLED = "cancelled"        # superseded by a newer request - silent
    FILE_OP = "file_op"            # conversion/delete failure while watching


class ProviderError(Exception):
    """Base exception for image provider failures."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class NoCredentialError(ProviderError):
    """Provider needs an API key (or other credential) that is not configured."""
    pass


class RateLimitedError(ProviderError):
    """Provider rate limit exceeded (429)."""
    pass


class ForbiddenError(ProviderError):
    """Provider denied access (401/403): bad key or exhausted free quota."""
    pass


class MalformedResponseError(ProviderError):
    """Provider returned a body that could not be parsed."""
    pass


class NetworkError(ProviderError):
    """Connection failure or server-side (5xx) error."""
    pass


class ProviderTimeoutError(ProviderError):
    """Provider request timed out."""
    pass


class SearchCancelled(Exception):
    """A search was cancelled because its request was superseded."""
    pass


HTTP_STATUS_MESSAGES = {
    200: "Success",
    400: "Malformed request",
    401: "Unauthorized",
    403: "Access forbidden",
    404: "Endpoint not found",
    429: "Rate limit exceeded",
    500: "Server error",
    502: "Bad gateway",
    503: "Service unavailable",
    504: "Gateway timeout",
}


def get_error_message(status_code: int) -> str:
    """
    Get user-friendly error message for HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        Error message string
    """
    return HTTP_STATUS_MESSAGES.get(
        status_code,
        f"Unknown error (HTTP {status_code})"
    )


def handle_http_status(status_code: int, provider: str) -> None:
    """
    Raise the taxonomy exception for an HTTP status code.

    Args:
        status_code: HTTP status code from the provider
        provider: Provider display name, used in messages

    Raises:
        RateLimitedError: 429
        ForbiddenError: 401, 403
        NetworkError: 5xx
        ProviderError: any other non-2xx status
    """
    if 200 <= status_code < 300:
        return

    msg = f"{provider} API error: {get_error_message(status_code)} (HTTP {status_code})"

    if status_code == 429:
        logger.warning(f"{provider} API rate limit exceeded (429)")
        raise RateLimitedError(
            f"{provider} API rate limit has been exceeded. "
            "Please wait a moment before trying again.",
            provider=provider
        )
    elif status_code in (401, 403):
        logger.warning(f"{provider} API access forbidden ({status_code}). Check API key and permissions.")
        raise ForbiddenError(
            f"{provider} API access forbidden ({status_code}). "
            "Your API key may be incorrect or your daily free limit has been reached.",
            provider=provider
        )
    elif status_code >= 500:
        raise NetworkError(msg, provider=provider)
    else:
        raise ProviderError(msg, provider=provider)


def categorize_error(exception: BaseException) -> ErrorCategory:
    """
    Categorize an error raised while searching or watching.

    Args:
        exception: Exception to categorize

    Returns:
        ErrorCategory for the exception
    """
    if isinstance(exception, SearchCancelled):
        return ErrorCategory.CANCELLED
    if isinstance(exception, NoCredentialError):
        return ErrorCategory.RECOVERABLE
    if isinstance(exception, (RateLimitedError, ProviderTimeoutError, NetworkError)):
        return ErrorCategory.TRANSIENT
    if isinstance(exception, ProviderError):
        return ErrorCategory.FATAL
    if isinstance(exception, OSError):
        return ErrorCategory.FILE_OP

    # Imported lazily to keep this module free of package cycles
    from coverhunter.scanner.missing_scanner import ScannerError
    from coverhunter.config.loader import ConfigError
    if isinstance(exception, (ScannerError, ConfigError, ValueError)):
        return ErrorCategory.PRECONDITION

    return ErrorCategory.FATAL

