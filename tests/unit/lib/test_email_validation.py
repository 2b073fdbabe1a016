"""Unit tests for the email validation providers and registry."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from email_validator import EmailNotValidError, EmailUndeliverableError

from auth_api.core.config import Settings
from auth_api.lib.email_validation import (
    DEFAULT_PROVIDER,
    DeliverabilityValidator,
    EmailValidationProviderError,
    EmailValidationResult,
    ZeroBounceValidator,
    get_available_providers,
    get_configured_validator,
    get_email_validator,
)


class TestEmailValidationResult:
    def test_score_bounds(self) -> None:
        with pytest.raises(ValueError, match="between 0 and 100"):
            EmailValidationResult(valid=True, score=101)

    def test_defaults(self) -> None:
        result = EmailValidationResult(valid=True)
        assert result.reason is None
        assert result.suggestion is None
        assert result.score is None


class TestRegistry:
    def test_available_providers(self) -> None:
        assert get_available_providers() == ["deliverability", "zerobounce"]

    def test_lookup_by_name(self) -> None:
        assert isinstance(get_email_validator("zerobounce", api_key="k"), ZeroBounceValidator)

    def test_unknown_falls_back_to_default(self) -> None:
        with patch("auth_api.lib.email_validation.logger") as mock_logger:
            validator = get_email_validator("nope")
        assert validator.provider_name == DEFAULT_PROVIDER
        warning = mock_logger.warning.call_args.args[0]
        assert "available: deliverability, zerobounce" in warning

    def test_configured_zerobounce(self, settings: Settings) -> None:
        settings.email_validation_provider = "ZeroBounce"
        settings.zerobounce_api_key = "secret"
        validator = get_configured_validator(settings)
        assert isinstance(validator, ZeroBounceValidator)
        assert validator.is_configured

    def test_configured_default(self, settings: Settings) -> None:
        assert isinstance(get_configured_validator(settings), DeliverabilityValidator)


class TestDeliverabilityValidator:
    """Tests for the email-validator backed provider."""

    async def test_valid_address(self) -> None:
        info = SimpleNamespace(ascii_domain="example.org")
        with patch("auth_api.lib.email_validation.deliverability.validate_email", return_value=info):
            result = await DeliverabilityValidator().validate("alice@example.org")
        assert result.valid
        assert result.is_disposable is False
        assert result.score == 80

    async def test_disposable_domain(self) -> None:
        info = SimpleNamespace(ascii_domain="Mailinator.com")
        with patch("auth_api.lib.email_validation.deliverability.validate_email", return_value=info):
            result = await DeliverabilityValidator().validate("x@mailinator.com")
        assert not result.valid
        assert result.is_disposable
        assert result.reason == "Disposable email addresses are not allowed"

    async def test_undeliverable(self) -> None:
        error = EmailUndeliverableError("The domain name nowhere.invalid does not exist.")
        with patch("auth_api.lib.email_validation.deliverability.validate_email", side_effect=error):
            result = await DeliverabilityValidator().validate("a@nowhere.invalid")
        assert not result.valid
        assert "does not exist" in (result.reason or "")

    async def test_bad_syntax(self) -> None:
        error = EmailNotValidError("An email address must have an @-sign.")
        with patch("auth_api.lib.email_validation.deliverability.validate_email", side_effect=error):
            result = await DeliverabilityValidator().validate("no-at-sign")
        assert not result.valid
        assert result.score == 0

    async def test_unexpected_failure_is_provider_error(self) -> None:
        with (
            patch("auth_api.lib.email_validation.deliverability.validate_email", side_effect=RuntimeError("dns")),
            pytest.raises(EmailValidationProviderError) as exc_info,
        ):
            await DeliverabilityValidator().validate("a@example.org")
        assert exc_info.value.provider_name == "deliverability"


def _mock_client(response: MagicMock | None = None, error: Exception | None = None) -> MagicMock:
    client = AsyncMock()
    if error is not None:
        client.get.side_effect = error
    else:
        client.get.return_value = response
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=client)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestZeroBounceValidator:
    """Tests for the ZeroBounce API provider."""

    async def test_missing_key(self) -> None:
        with pytest.raises(EmailValidationProviderError, match="not configured"):
            await ZeroBounceValidator(api_key="").validate("a@example.org")

    @pytest.mark.parametrize(
        ("status", "valid", "score"),
        [
            ("valid", True, 100),
            ("invalid", False, 0),
            ("catch-all", True, 70),
            ("unknown", True, 50),
            ("spamtrap", False, 0),
            ("abuse", False, 0),
            ("do_not_mail", False, 0),
            ("something-new", False, 0),
        ],
    )
    async def test_status_mapping(self, status: str, valid: bool, score: int) -> None:
        ctx = _mock_client(_response({"status": status, "sub_status": ""}))
        with patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx):
            result = await ZeroBounceValidator(api_key="k").validate("a@example.org")
        assert result.valid is valid
        assert result.score == score

    async def test_suggestion_and_flags(self) -> None:
        payload = {"status": "invalid", "sub_status": "disposable", "did_you_mean": "a@gmail.com"}
        ctx = _mock_client(_response(payload))
        with patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx):
            result = await ZeroBounceValidator(api_key="k").validate("a@gmial.com")
        assert result.suggestion == "a@gmail.com"
        assert result.is_disposable
        assert not result.is_catch_all

    async def test_request_parameters(self) -> None:
        ctx = _mock_client(_response({"status": "valid"}))
        with patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx):
            await ZeroBounceValidator(api_key="k", api_url="https://zb.test/v2/").validate("a@example.org")
        client = await ctx.__aenter__()
        url = client.get.await_args.args[0]
        params = client.get.await_args.kwargs["params"]
        assert url == "https://zb.test/v2/validate"
        assert params["api_key"] == "k"
        assert params["email"] == "a@example.org"

    async def test_error_body(self) -> None:
        ctx = _mock_client(_response({"error": "Invalid API key"}))
        with (
            patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx),
            pytest.raises(EmailValidationProviderError, match="Invalid API key"),
        ):
            await ZeroBounceValidator(api_key="k").validate("a@example.org")

    async def test_timeout(self) -> None:
        ctx = _mock_client(error=httpx.ReadTimeout("slow"))
        with (
            patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx),
            pytest.raises(EmailValidationProviderError, match="timed out"),
        ):
            await ZeroBounceValidator(api_key="k").validate("a@example.org")

    async def test_http_status_error(self) -> None:
        request = httpx.Request("GET", "https://api.zerobounce.net/v2/validate")
        error = httpx.HTTPStatusError("boom", request=request, response=httpx.Response(503, request=request))
        ctx = _mock_client(error=error)
        with (
            patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx),
            pytest.raises(EmailValidationProviderError) as exc_info,
        ):
            await ZeroBounceValidator(api_key="k").validate("a@example.org")
        assert exc_info.value.status_code == 503

    async def test_connect_error(self) -> None:
        ctx = _mock_client(error=httpx.ConnectError("refused"))
        with (
            patch("auth_api.lib.email_validation.zerobounce.httpx.AsyncClient", return_value=ctx),
            pytest.raises(EmailValidationProviderError, match="Connection"),
        ):
            await ZeroBounceValidator(api_key="k").validate("a@example.org")
