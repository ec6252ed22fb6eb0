"""HTTP request sender that follows redirects by re-sending requests."""

import logging
from http import HTTPStatus

from sitecheck.availability.actions.response_properties import (
    build_response_properties,
)
from sitecheck.availability.clients.http import (
    HttpClient,
    HttpClientConfiguration,
    HttpClientFactory,
    HttpRequest,
)
from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext
from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.redirects import RedirectAction, RedirectChase, is_redirect
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)


def build_request(url: str, settings: TestSettings) -> HttpRequest:
    """Build the initial request for ``url`` from the run settings."""
    headers = {
        name: list(values) for name, values in settings.http_request_headers.items()
    }
    if settings.user_agent and not any(
        name.lower() == "user-agent" for name in headers
    ):
        headers["User-Agent"] = [settings.user_agent]

    return HttpRequest(
        url=url,
        method=settings.http_method,
        headers=headers,
        content=settings.http_content,
    )


def redirect_request(request: HttpRequest, status: int, url: str) -> HttpRequest:
    """Build the request that follows a redirect to ``url``.

    A 303 response switches the method to GET and drops the body.
    """
    if status == HTTPStatus.SEE_OTHER and request.method.upper() != "HEAD":
        return request.model_copy(
            update={"url": url, "method": "GET", "content": None}
        )
    return request.model_copy(update={"url": url})


class HttpClientRequestSender(TestComponent):
    """Sends the request through an ``HttpClient`` and chases redirects.

    Every followed redirect produces its own step, timed independently, and
    the terminal response produces the final step.
    """

    STEP_NAME = "Http request sender (HttpClient)"

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
        """Send the request and record one step per hop.

        Raises:
            MissingServiceError: If no ``HttpClientFactory`` is registered

        """
        factory = services.get_required(
            HttpClientFactory, Errors.http_clients_not_found()
        )
        self._chase.start(url, settings.max_redirections)
        instrumentation = InstrumentationLog()

        error: Error | Exception | None
        try:
            client_name = HttpClientConfiguration.for_settings(settings)
            async with factory.create_client(client_name, settings) as client:
                error = await self._send(
                    client,
                    build_request(url, settings),
                    settings,
                    context,
                    instrumentation,
                )
        except Exception as e:
            logger.error(f"{self.name}: request to {url} failed: {e}")
            error = e

        step = context.session_builder.build(self, instrumentation, error)
        context.report(step)

    async def _send(
        self,
        client: HttpClient,
        request: HttpRequest,
        settings: TestSettings,
        context: TestContext,
        instrumentation: InstrumentationLog,
    ) -> Error | None:
        builder = context.session_builder
        response = await client.send(request)

        if settings.follow_http_redirection_responses:
            while is_redirect(response.status) and self._chase.can_follow:
                build_response_properties(
                    builder, request.method, response, final=False
                )
                context.report(builder.build(self, instrumentation))
                instrumentation.restart()

                outcome = self._chase.follow(response)
                if outcome.action is RedirectAction.STOP:
                    break
                if outcome.action is RedirectAction.FAILED:
                    return outcome.error

                request = redirect_request(
                    request, response.status, outcome.url or request.url
                )
                response = await client.send(request)

            if is_redirect(response.status):
                limit_error = self._chase.limit_error()
                if limit_error is not None:
                    build_response_properties(
                        builder, request.method, response, final=False
                    )
                    return limit_error

        build_response_properties(builder, request.method, response, final=True)
        return None
