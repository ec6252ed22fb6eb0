"""HTTP request sender that navigates with a headless browser."""

import logging

from sitecheck.availability.actions.response_properties import (
    build_response_properties,
)
from sitecheck.availability.clients.browser import (
    BrowserContext,
    HeadlessBrowserFactory,
)
from sitecheck.availability.clients.http import HttpResponse
from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext
from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.redirects import RedirectAction, RedirectChase
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)

# Browser navigations are always GET requests.
NAVIGATION_METHOD = "GET"


class HeadlessBrowserRequestSender(TestComponent):
    """Loads the URL in a headless browser and records the redirects it follows.

    The browser follows redirects itself; each one is reported through a
    callback and checked against the same cycle and limit rules as the
    HTTP client sender.
    """

    STEP_NAME = "Http request sender (HeadlessBrowser)"

    def __init__(self, name: str | None = None) -> None:
        """Initialize sender with an optional step name."""
        super().__init__(name or self.STEP_NAME, TestStepType.ACTION)
        self._chase = RedirectChase()

    @property
    def visited_urls(self) -> list[str]:
        """URLs visited by the most recent run, in order."""
        return list(self._chase.visited)

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Navigate to ``url`` and record one step per redirect and the page.

        Raises:
            MissingServiceError: If no ``HeadlessBrowserFactory`` is registered

        """
        factory = services.get_required(
            HeadlessBrowserFactory, Errors.headless_browser_not_found()
        )
        builder = context.session_builder
        self._chase.start(url, settings.max_redirections)
        instrumentation = InstrumentationLog()
        redirect_error: Error | None = None

        def on_redirect(response: HttpResponse) -> None:
            nonlocal redirect_error
            if redirect_error is not None:
                return
            if not self._chase.can_follow:
                redirect_error = self._chase.limit_error()
                return

            build_response_properties(
                builder, NAVIGATION_METHOD, response, final=False
            )
            context.report(builder.build(self, instrumentation))
            instrumentation.restart()

            outcome = self._chase.follow(response)
            if outcome.action is RedirectAction.FAILED:
                redirect_error = outcome.error

        error: Error | Exception | None = None
        try:
            browser_context = BrowserContext.from_settings(settings)
            async with await factory.create_client(browser_context) as client:
                page = await client.get(
                    url,
                    on_redirect=(
                        on_redirect
                        if settings.follow_http_redirection_responses
                        else None
                    ),
                )
            if redirect_error is None:
                build_response_properties(
                    builder, NAVIGATION_METHOD, page.response, final=True
                )
        except Exception as e:
            logger.error(f"{self.name}: navigation to {url} failed: {e}")
            error = e

        # A redirect failure explains a navigation error that followed it.
        if redirect_error is not None:
            builder.property_bag.clear()
            error = redirect_error

        step = builder.build(self, instrumentation, error)
        context.report(step)
