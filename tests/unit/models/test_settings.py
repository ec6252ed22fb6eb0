"""Tests for test settings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from sitecheck.availability.models.settings import TestSettings


def test_defaults() -> None:
    """Defaults fail fast, follow up to 50 redirects and retry."""
    settings = TestSettings()

    assert settings.continue_on_failure is False
    assert settings.follow_http_redirection_responses is True
    assert settings.max_redirections == 50
    assert settings.retry_http_request_when_failed is True
    assert settings.http_request_timeout == timedelta(seconds=30)
    assert settings.http_method == "GET"
    assert settings.strict_start_date is False


def test_browser_defaults_disable_retry() -> None:
    """Browser runs do not retry failed requests."""
    assert TestSettings.for_browser().retry_http_request_when_failed is False
    assert TestSettings.for_http_client().retry_http_request_when_failed is True


def test_rejects_negative_max_redirections() -> None:
    """max_redirections cannot be negative."""
    with pytest.raises(ValidationError):
        TestSettings(max_redirections=-1)


def test_loads_from_json() -> None:
    """Settings load from JSON with a numeric timeout in seconds."""
    settings = TestSettings.model_validate_json(
        '{"max_redirections": 5, "http_request_timeout": 2.5, '
        '"browser_type": "firefox"}'
    )

    assert settings.max_redirections == 5
    assert settings.http_request_timeout == timedelta(seconds=2.5)
    assert settings.browser_type == "firefox"


def test_rejects_unknown_browser_type() -> None:
    """Only chromium, firefox and webkit are supported."""
    with pytest.raises(ValidationError):
        TestSettings.model_validate({"browser_type": "opera"})
