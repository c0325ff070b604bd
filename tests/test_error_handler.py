"""
Tests for utils/error_handler.py - exception categories and HTTP status mapping.
"""
import pytest

from utils.error_handler import (
    AllProvidersFailedError,
    AuthException,
    ErrorCategory,
    GameRuleError,
    GenerationError,
    InsufficientFundsError,
    MelaException,
    NoProvidersAvailableError,
    PlayerExistsError,
    PlayerNotFoundError,
    ProviderException,
    RateLimitException,
    categorize_exception,
    http_status_for,
)


class TestCategorizeException:
    """Test categorize_exception for different error types."""

    def test_categorize_rate_limit(self):
        """Exception with '429' in message -> RATE_LIMIT."""
        exc = Exception("HTTP 429 Too Many Requests")
        assert categorize_exception(exc) == ErrorCategory.RATE_LIMIT

    def test_categorize_resource_exhausted(self):
        """Gemini spells it RESOURCE_EXHAUSTED."""
        exc = Exception("RESOURCE_EXHAUSTED: quota for model")
        assert categorize_exception(exc) == ErrorCategory.RATE_LIMIT

    def test_categorize_auth(self):
        """Exception with '401 unauthorized' -> AUTH."""
        exc = Exception("401 unauthorized access denied")
        assert categorize_exception(exc) == ErrorCategory.AUTH

    def test_categorize_timeout(self):
        """Exception with 'timeout' -> TRANSIENT."""
        exc = Exception("Connection timeout after 30s")
        assert categorize_exception(exc) == ErrorCategory.TRANSIENT

    def test_categorize_data(self):
        assert categorize_exception(ValueError("bad json")) == ErrorCategory.DATA

    def test_unknown_is_fatal(self):
        assert categorize_exception(Exception("???")) == ErrorCategory.FATAL

    @pytest.mark.parametrize("status,category", [
        (429, ErrorCategory.RATE_LIMIT),
        (401, ErrorCategory.AUTH),
        (403, ErrorCategory.AUTH),
        (503, ErrorCategory.TRANSIENT),
        (400, ErrorCategory.DATA),
    ])
    def test_sdk_status_code(self, status, category):
        class SDKError(Exception):
            pass

        exc = SDKError("boom")
        exc.status_code = status
        assert categorize_exception(exc) == category

    def test_google_style_code_attribute(self):
        class ClientError(Exception):
            code = 429

        assert categorize_exception(ClientError("x")) == ErrorCategory.RATE_LIMIT

    def test_categorize_custom_exception(self):
        """Custom MelaException subclasses return their own category."""
        rate_exc = RateLimitException("slow down", provider="groq", retry_after=30)
        assert categorize_exception(rate_exc) == ErrorCategory.RATE_LIMIT
        assert rate_exc.retry_after == 30
        assert rate_exc.status_code == 429

        assert categorize_exception(AuthException("no key")) == ErrorCategory.AUTH
        assert categorize_exception(GameRuleError("nope")) == ErrorCategory.DATA

    def test_all_failed_inherits_last_error_category(self):
        exc = AllProvidersFailedError("all failed", last_error=RateLimitException("429"))
        assert exc.category == ErrorCategory.RATE_LIMIT
        assert AllProvidersFailedError("all failed").category == ErrorCategory.TRANSIENT


class TestExceptionFields:

    def test_message_and_timestamp(self):
        exc = MelaException("boom")
        assert exc.message == "boom"
        assert str(exc) == "boom"
        assert exc.timestamp.tzinfo is None

    def test_player_errors(self):
        assert str(PlayerNotFoundError("X1")) == "Player not found: X1"
        assert str(PlayerExistsError("X1")) == "User ID X1 already exists"

    def test_insufficient_funds(self):
        exc = InsufficientFundsError("X1", balance=5, required=20)
        assert exc.balance == 5
        assert exc.required == 20
        assert "need 20" in str(exc)


class TestHttpStatus:

    @pytest.mark.parametrize("exc,status", [
        (NoProvidersAvailableError("No AI providers available"), 401),
        (AuthException("groq API key required"), 401),
        (InsufficientFundsError("X1", 0, 20), 402),
        (PlayerNotFoundError("X1"), 404),
        (PlayerExistsError("X1"), 409),
        (GameRuleError("bad move"), 400),
        (RateLimitException("429", provider="groq"), 429),
        (ProviderException("500", provider="groq", status_code=500), 502),
        (AllProvidersFailedError("All AI providers failed"), 502),
        (GenerationError("FAILED_TO_GENERATE"), 502),
        (RuntimeError("bug"), 500),
    ])
    def test_mapping(self, exc, status):
        assert http_status_for(exc) == status
