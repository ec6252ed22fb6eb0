"""Run configuration shared by every component of a pipeline."""

from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_HTTP_REQUEST_TIMEOUT = timedelta(seconds=30)


class TestSettings(BaseModel):
    """Settings for a single test run."""

    __test__ = False

    continue_on_failure: bool = Field(
        default=False, description="Keep running components after a failed step"
    )
    follow_http_redirection_responses: bool = Field(
        default=True, description="Follow 3xx redirect responses"
    )
    max_redirections: int = Field(
        default=50, ge=0, description="Maximum number of redirects to follow"
    )
    retry_http_request_when_failed: bool = Field(
        default=True, description="Retry transient HTTP failures"
    )
    http_request_timeout: timedelta = Field(
        default=DEFAULT_HTTP_REQUEST_TIMEOUT,
        description="Timeout for HTTP requests, pings and navigation",
    )
    http_method: str = Field(default="GET", description="HTTP request method")
    http_content: bytes | None = Field(default=None, description="HTTP request body")
    http_request_headers: dict[str, list[str]] = Field(
        default_factory=dict, description="Extra HTTP request headers"
    )
    ping_ttl: int = Field(default=64, ge=1, le=255, description="Ping time-to-live")
    ping_dont_fragment: bool = Field(
        default=True, description="Set the don't-fragment flag on pings"
    )
    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium", description="Headless browser engine"
    )
    browser_viewport: tuple[int, int] | None = Field(
        default=None, description="Browser viewport as (width, height)"
    )
    user_agent: str | None = Field(default=None, description="User agent override")
    strict_start_date: bool = Field(
        default=False,
        description="Reject steps whose start date precedes today (UTC)",
    )

    @classmethod
    def for_http_client(cls) -> "TestSettings":
        """Return defaults for runs that use the HTTP client."""
        return cls()

    @classmethod
    def for_browser(cls) -> "TestSettings":
        """Return defaults for runs that use the headless browser."""
        return cls(retry_http_request_when_failed=False)
