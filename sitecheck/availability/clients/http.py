"""HTTP transport used by the request sender.

The sender only depends on ``HttpClientFactory``/``HttpClient`` and the
``HttpRequest``/``HttpResponse`` shapes; ``AiohttpClientFactory`` is the
default aiohttp-backed implementation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from types import TracebackType
from typing import ClassVar

import aiohttp
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from sitecheck.availability.models.settings import TestSettings

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class HttpRequest(BaseModel):
    """Request sent by the HTTP request sender."""

    url: str = Field(..., description="Absolute request URL")
    method: str = Field(default="GET", description="HTTP method")
    headers: dict[str, list[str]] = Field(
        default_factory=dict, description="Request headers"
    )
    content: bytes | None = Field(default=None, description="Request body")


class HttpResponse(BaseModel):
    """Response received from a server or reported by a browser."""

    url: str = Field(..., description="URL that produced the response")
    status: int = Field(..., description="HTTP status code")
    reason: str | None = Field(default=None, description="Reason phrase")
    version: str | None = Field(default=None, description="HTTP version")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Response headers"
    )
    content: bytes = Field(default=b"", description="Response body")

    def header(self, name: str) -> str | None:
        """Return a header value, matching the name case-insensitively."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class HttpClientConfiguration(BaseModel):
    """Named client configurations and their retry policy."""

    WITH_RETRY_AND_FOLLOW_REDIRECT: ClassVar[str] = (
        "HttpClientWithRetryAndFollowRedirect"
    )
    WITH_RETRY_AND_NO_FOLLOW_REDIRECT: ClassVar[str] = (
        "HttpClientWithRetryAndNoFollowRedirect"
    )
    WITH_NO_RETRY_AND_FOLLOW_REDIRECT: ClassVar[str] = (
        "HttpClientWithNoRetryAndFollowRedirect"
    )
    WITH_NO_RETRY_AND_NO_FOLLOW_REDIRECT: ClassVar[str] = (
        "HttpClientWithNoRetryAndNoFollowRedirect"
    )

    sleep_durations: list[float] = Field(
        default_factory=lambda: [1.0, 5.0, 10.0],
        description="Seconds to wait before each retry",
    )

    def is_known(self, name: str) -> bool:
        """Return whether ``name`` is one of the named configurations."""
        return name in {
            self.WITH_RETRY_AND_FOLLOW_REDIRECT,
            self.WITH_RETRY_AND_NO_FOLLOW_REDIRECT,
            self.WITH_NO_RETRY_AND_FOLLOW_REDIRECT,
            self.WITH_NO_RETRY_AND_NO_FOLLOW_REDIRECT,
        }

    @classmethod
    def for_settings(cls, settings: TestSettings) -> str:
        """Pick the no-follow configuration matching the retry setting.

        Redirects are followed by the sender itself, never by the client.
        """
        if settings.retry_http_request_when_failed:
            return cls.WITH_RETRY_AND_NO_FOLLOW_REDIRECT
        return cls.WITH_NO_RETRY_AND_NO_FOLLOW_REDIRECT


class HttpClient(ABC):
    """Client able to send a request and return its response."""

    @abstractmethod
    async def send(self, request: HttpRequest) -> HttpResponse:
        """Send ``request`` and return the response."""

    async def close(self) -> None:  # noqa: B027
        """Release client resources."""

    async def __aenter__(self) -> "HttpClient":
        """Use the client as an async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the client on exit."""
        await self.close()


class HttpClientFactory(ABC):
    """Creates HTTP clients for a named configuration."""

    @abstractmethod
    def create_client(self, name: str, settings: TestSettings) -> HttpClient:
        """Create a client for configuration ``name``."""


def _join_headers(headers: Mapping[str, str]) -> dict[str, str]:
    joined: dict[str, str] = {}
    for key, value in headers.items():
        if key in joined:
            joined[key] = f"{joined[key]};{value}"
        else:
            joined[key] = value
    return joined


def _is_transient(response: HttpResponse) -> bool:
    return response.status in TRANSIENT_STATUSES


def _return_last_result(retry_state: RetryCallState) -> HttpResponse:
    # Re-raises the last exception when the final attempt raised.
    if retry_state.outcome is None:
        raise RuntimeError("Retry finished without an outcome")
    result: HttpResponse = retry_state.outcome.result()
    return result


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        f"HTTP request attempt {retry_state.attempt_number} failed, retrying"
    )


class AiohttpClient(HttpClient):
    """HTTP client backed by an ``aiohttp.ClientSession``."""

    def __init__(
        self,
        timeout: float,
        follow_redirects: bool,
        sleep_durations: list[float] | None = None,
    ) -> None:
        """Initialize client.

        Args:
            timeout: Total request timeout in seconds
            follow_redirects: Let aiohttp follow redirects itself
            sleep_durations: Waits between retries; None or empty disables retry

        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._follow_redirects = follow_redirects
        self._sleep_durations = list(sleep_durations or [])
        self._session: aiohttp.ClientSession | None = None

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Send ``request``, retrying transient failures if configured."""
        if not self._sleep_durations:
            return await self._send_once(request)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(len(self._sleep_durations) + 1),
            wait=wait_chain(*[wait_fixed(delay) for delay in self._sleep_durations]),
            retry=(
                retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError))
                | retry_if_result(_is_transient)
            ),
            before_sleep=_log_retry,
            retry_error_callback=_return_last_result,
        )
        response: HttpResponse = await retrying(self._send_once, request)
        return response

    async def _send_once(self, request: HttpRequest) -> HttpResponse:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

        headers = [
            (name, value)
            for name, values in request.headers.items()
            for value in values
        ]
        logger.debug(f"{request.method} {request.url}")
        async with self._session.request(
            request.method,
            request.url,
            headers=headers,
            data=request.content,
            allow_redirects=self._follow_redirects,
        ) as response:
            body = await response.read()
            version = (
                f"{response.version.major}.{response.version.minor}"
                if response.version is not None
                else None
            )
            return HttpResponse(
                url=str(response.url),
                status=response.status,
                reason=response.reason,
                version=version,
                headers=_join_headers(response.headers),
                content=body,
            )

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None:
            await self._session.close()
            self._session = None


class AiohttpClientFactory(HttpClientFactory):
    """Creates ``AiohttpClient`` instances for the named configurations."""

    def __init__(self, configuration: HttpClientConfiguration | None = None) -> None:
        """Initialize factory with an optional retry configuration."""
        self.configuration = configuration or HttpClientConfiguration()

    def create_client(self, name: str, settings: TestSettings) -> HttpClient:
        """Create a client for configuration ``name``.

        Raises:
            ValueError: If ``name`` is not a known configuration

        """
        config = self.configuration
        if not config.is_known(name):
            raise ValueError(f"Unknown HTTP client configuration: {name}")

        retry = name in {
            config.WITH_RETRY_AND_FOLLOW_REDIRECT,
            config.WITH_RETRY_AND_NO_FOLLOW_REDIRECT,
        }
        follow = name in {
            config.WITH_RETRY_AND_FOLLOW_REDIRECT,
            config.WITH_NO_RETRY_AND_FOLLOW_REDIRECT,
        }
        return AiohttpClient(
            timeout=settings.http_request_timeout.total_seconds(),
            follow_redirects=follow,
            sleep_durations=config.sleep_durations if retry else None,
        )
