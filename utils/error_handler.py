"""
Error Handler - Centralized error types and categorization.

Provides:
- Categorized exceptions for provider, economy and game-rule failures
- categorize_exception() for exceptions raised by third-party SDKs
- http_status_for() mapping used by the API layer

The gateway relies on categorize_exception() to tell a 429 from any other
provider failure without importing every SDK's error classes.
"""
from enum import Enum
from typing import Optional

from utils.platform import now_ist


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    TRANSIENT = "TRANSIENT"      # Retry-able (network issues, timeouts, 5xx)
    RATE_LIMIT = "RATE_LIMIT"    # Provider quota hit (429)
    AUTH = "AUTH"                # Missing / rejected credentials
    DATA = "DATA"                # Bad input or unparseable model output
    FATAL = "FATAL"              # Don't retry


class MelaException(Exception):
    """Base exception for AI Mela."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.FATAL):
        self.message = message
        self.category = category
        self.timestamp = now_ist().replace(tzinfo=None)
        super().__init__(message)


# ============================================
# PROVIDER ERRORS
# ============================================

class ProviderException(MelaException):
    """A single provider call failed."""

    def __init__(self, message: str, provider: str = "",
                 status_code: Optional[int] = None,
                 category: ErrorCategory = ErrorCategory.TRANSIENT):
        super().__init__(message, category)
        self.provider = provider
        self.status_code = status_code


class RateLimitException(ProviderException):
    """Rate limit hit (HTTP 429)."""

    def __init__(self, message: str, provider: str = "", retry_after: Optional[float] = None):
        super().__init__(message, provider=provider, status_code=429,
                         category=ErrorCategory.RATE_LIMIT)
        self.retry_after = retry_after


class AuthException(MelaException):
    """No usable API key."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.AUTH)


class NoProvidersAvailableError(AuthException):
    """Every provider in the chain was skipped (no credentials)."""


class AllProvidersFailedError(MelaException):
    """Every attempted provider failed."""

    def __init__(self, message: str, last_error: Optional[Exception] = None):
        category = categorize_exception(last_error) if last_error else ErrorCategory.TRANSIENT
        super().__init__(message, category)
        self.last_error = last_error


class GenerationError(MelaException):
    """Model answered but the payload was unusable."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.DATA)


# ============================================
# ECONOMY / GAME ERRORS
# ============================================

class PlayerNotFoundError(MelaException):
    def __init__(self, uid: str):
        super().__init__(f"Player not found: {uid}", ErrorCategory.DATA)
        self.uid = uid


class PlayerExistsError(MelaException):
    def __init__(self, uid: str):
        super().__init__(f"User ID {uid} already exists", ErrorCategory.DATA)
        self.uid = uid


class InsufficientFundsError(MelaException):
    def __init__(self, uid: str, balance: int, required: int):
        super().__init__(
            f"Insufficient Stonks for {uid}: balance {balance}, need {required}",
            ErrorCategory.DATA,
        )
        self.uid = uid
        self.balance = balance
        self.required = required


class GameRuleError(MelaException):
    """Move or request not allowed in the current game state."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.DATA)


def categorize_exception(e: Exception) -> ErrorCategory:
    """
    Categorize an exception for handling decisions.
    """
    # Check our custom exceptions first
    if isinstance(e, MelaException):
        return e.category

    # SDK errors carry an HTTP status (openai: status_code, google-genai: code)
    status = getattr(e, "status_code", None) or getattr(e, "code", None)
    if isinstance(status, int):
        if status == 429:
            return ErrorCategory.RATE_LIMIT
        if status in (401, 403):
            return ErrorCategory.AUTH
        if status >= 500:
            return ErrorCategory.TRANSIENT
        if status in (400, 404, 422):
            return ErrorCategory.DATA

    error_str = str(e).lower()

    # Rate limiting
    if any(x in error_str for x in ['429', 'rate limit', 'too many requests', 'resource_exhausted', 'quota exceeded']):
        return ErrorCategory.RATE_LIMIT

    # Authentication
    if any(x in error_str for x in ['401', '403', 'unauthorized', 'api key not valid', 'invalid api key']):
        return ErrorCategory.AUTH

    # Transient network issues
    if any(x in error_str for x in [
        'timeout', 'timed out', 'connection', 'socket', 'dns',
        '500', '502', '503', '504', 'service unavailable'
    ]):
        return ErrorCategory.TRANSIENT

    # Data issues
    if any(x in error_str for x in ['json', 'no content', 'empty response', 'invalid response']):
        return ErrorCategory.DATA

    # Default to fatal for unknown errors
    return ErrorCategory.FATAL


def http_status_for(e: Exception) -> int:
    """HTTP status the API returns for an exception."""
    if isinstance(e, (NoProvidersAvailableError, AuthException)):
        return 401
    if isinstance(e, InsufficientFundsError):
        return 402
    if isinstance(e, PlayerNotFoundError):
        return 404
    if isinstance(e, PlayerExistsError):
        return 409
    if isinstance(e, GameRuleError):
        return 400
    if isinstance(e, RateLimitException):
        return 429
    if isinstance(e, (ProviderException, AllProvidersFailedError, GenerationError)):
        return 502
    return 500
