"""Headless browser used by the browser request sender.

``PlaywrightBrowserFactory`` is the default implementation; the sender only
depends on ``HeadlessBrowserFactory``/``HeadlessBrowserClient``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import timedelta
from types import TracebackType
from typing import Literal

from playwright.async_api import Browser, Playwright, Response, async_playwright
from pydantic import BaseModel, Field

from sitecheck.availability.clients.http import HttpResponse
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.redirects import is_redirect

logger = logging.getLogger(__name__)

RedirectHandler = Callable[[HttpResponse], None]


class BrowserContext(BaseModel):
    """Browser launch and page options for one run."""

    type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium", description="Browser engine"
    )
    timeout: timedelta = Field(
        default=timedelta(seconds=30), description="Navigation timeout"
    )
    user_agent: str | None = Field(default=None, description="User agent override")
    viewport: tuple[int, int] | None = Field(
        default=None, description="Viewport as (width, height)"
    )

    @classmethod
    def from_settings(cls, settings: TestSettings) -> "BrowserContext":
        """Build the context from run settings."""
        return cls(
            type=settings.browser_type,
            timeout=settings.http_request_timeout,
            user_agent=settings.user_agent,
            viewport=settings.browser_viewport,
        )


class WebPage(BaseModel):
    """Page loaded by the browser."""

    response: HttpResponse = Field(..., description="Final navigation response")


class HeadlessBrowserClient(ABC):
    """Browser session able to navigate to a URL."""

    @abstractmethod
    async def get(
        self, url: str, on_redirect: RedirectHandler | None = None
    ) -> WebPage:
        """Navigate to ``url``.

        Args:
            url: Absolute URL to load
            on_redirect: Called synchronously for every redirect response the
                browser follows while navigating

        Returns:
            The loaded page

        """

    async def close(self) -> None:  # noqa: B027
        """Release browser resources."""

    async def __aenter__(self) -> "HeadlessBrowserClient":
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


class HeadlessBrowserFactory(ABC):
    """Creates browser clients; must be safe to call concurrently."""

    @abstractmethod
    async def create_client(self, context: BrowserContext) -> HeadlessBrowserClient:
        """Launch a browser for ``context``."""

    async def close(self) -> None:  # noqa: B027
        """Release factory resources."""


def _to_http_response(response: Response, headers: dict[str, str]) -> HttpResponse:
    return HttpResponse(
        url=response.url,
        status=response.status,
        reason=response.status_text or None,
        headers=headers,
    )


class PlaywrightBrowserClient(HeadlessBrowserClient):
    """Browser client backed by a Playwright ``Browser``."""

    def __init__(self, browser: Browser, context: BrowserContext) -> None:
        """Initialize client with a launched browser."""
        self._browser = browser
        self.context = context

    @property
    def name(self) -> str:
        """Browser engine name."""
        return self._browser.browser_type.name

    async def get(
        self, url: str, on_redirect: RedirectHandler | None = None
    ) -> WebPage:
        """Navigate to ``url`` and return the final response."""
        viewport = None
        if self.context.viewport is not None:
            width, height = self.context.viewport
            viewport = {"width": width, "height": height}

        page = await self._browser.new_page(
            user_agent=self.context.user_agent,
            viewport=viewport,  # type: ignore[arg-type]
        )

        # Fires before the follow-up request exists, so redirected_to is unset.
        def handle_response(response: Response) -> None:
            if (
                on_redirect is not None
                and is_redirect(response.status)
                and response.request.is_navigation_request()
                and response.frame == page.main_frame
            ):
                on_redirect(_to_http_response(response, response.headers))

        page.on("response", handle_response)
        try:
            response = await page.goto(
                url, timeout=self.context.timeout.total_seconds() * 1000
            )
            if response is None:
                raise RuntimeError(f"No response received when navigating to {url}")

            headers = await response.all_headers()
            body = await response.body()
        finally:
            await page.close()

        final = _to_http_response(response, headers).model_copy(
            update={"content": body}
        )
        return WebPage(response=final)

    async def close(self) -> None:
        """Close the browser."""
        await self._browser.close()


class PlaywrightBrowserFactory(HeadlessBrowserFactory):
    """Launches headless Playwright browsers, starting Playwright on first use."""

    def __init__(self) -> None:
        """Initialize factory without starting Playwright."""
        self._playwright: Playwright | None = None
        self._start_lock = asyncio.Lock()

    async def create_client(self, context: BrowserContext) -> HeadlessBrowserClient:
        """Launch a headless browser of ``context.type``."""
        async with self._start_lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            playwright = self._playwright

        browser_type = getattr(playwright, context.type)
        logger.info(f"Launching headless {context.type}")
        browser = await browser_type.launch(headless=True)
        return PlaywrightBrowserClient(browser, context)

    async def close(self) -> None:
        """Stop Playwright."""
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
