"""HTTP request sender that delegates to the client chosen at construction."""

import logging
from enum import Enum

from sitecheck.availability.actions.headless_browser_request_sender import (
    HeadlessBrowserRequestSender,
)
from sitecheck.availability.actions.http_client_request_sender import (
    HttpClientRequestSender,
)
from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext
from sitecheck.availability.models.errors import Errors
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)


class Client(str, Enum):
    """Transport used to send the HTTP request."""

    HTTP_CLIENT = "http"
    HEADLESS_BROWSER = "browser"


def create_request_sender(client: Client) -> TestComponent:
    """Return the sender implementation for ``client``.

    Raises:
        ValueError: If ``client`` is not a supported client type

    """
    if client == Client.HTTP_CLIENT:
        return HttpClientRequestSender()
    if client == Client.HEADLESS_BROWSER:
        return HeadlessBrowserRequestSender()
    raise ValueError(Errors.incorrect_client_type(client).message)


class HttpRequestSender(TestComponent):
    """Sends the HTTP request through an HTTP client or a headless browser."""

    STEP_NAME = "Http request sender"

    def __init__(self, client: Client = Client.HTTP_CLIENT) -> None:
        """Initialize sender for ``client``.

        Raises:
            ValueError: If ``client`` is not a supported client type

        """
        super().__init__(self.STEP_NAME, TestStepType.ACTION)
        self.client = Client(client)
        self.sender = create_request_sender(self.client)

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Delegate to the selected sender; its steps carry its own name."""
        logger.info(f"Sending {settings.http_method} {url} via {self.client.value}")
        await self.sender.handle(url, settings, context, services)
