"""Runs a component tree against a URL and returns the sealed session."""

import logging
from datetime import UTC, datetime

from sitecheck.availability.actions.dns_lookup import DnsResolver, SystemDnsResolver
from sitecheck.availability.actions.ip_address_accessibility_check import (
    PingSender,
    SubprocessPingSender,
)
from sitecheck.availability.clients.browser import (
    HeadlessBrowserFactory,
    PlaywrightBrowserFactory,
)
from sitecheck.availability.clients.http import AiohttpClientFactory, HttpClientFactory
from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import Progress, TestContext
from sitecheck.availability.models.errors import Errors
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_session import TestSession
from sitecheck.availability.services import MissingServiceError, ServiceProvider
from sitecheck.availability.session_builder import TestSessionBuilder

logger = logging.getLogger(__name__)


def build_default_services() -> ServiceProvider:
    """Register the default DNS, ping, HTTP and browser implementations."""
    return (
        ServiceProvider()
        .add(DnsResolver, SystemDnsResolver())
        .add(PingSender, SubprocessPingSender())
        .add(HttpClientFactory, AiohttpClientFactory())
        .add(HeadlessBrowserFactory, PlaywrightBrowserFactory())
    )


class TestAgent:
    """Entry point that runs one test session per call."""

    __test__ = False

    def __init__(
        self,
        services: ServiceProvider,
        container: TestComponent | None = None,
        progress: Progress | None = None,
    ) -> None:
        """Initialize agent.

        Args:
            services: Collaborators available to the components
            container: Root component, usually a ``Pipeline``
            progress: Called with every step as soon as it is built

        """
        self.services = services
        self.container = container
        self.progress = progress

    async def run(self, url: str, settings: TestSettings) -> TestSession:
        """Run the container against ``url``.

        A fatal error raised by a component declines the session instead of
        propagating; cancellation still propagates.

        Returns:
            The completed or declined session

        """
        builder = TestSessionBuilder(
            strict_start_date=settings.strict_start_date
        ).initiate(url, datetime.now(UTC))

        if self.container is None:
            builder.decline(self, Errors.no_test_step_handlers())
            return builder.get_session()

        context = TestContext(builder, self.progress)
        logger.info(f"Running {self.container.name} against {url}")
        try:
            await self.container.handle(url, settings, context, self.services)
        except MissingServiceError as e:
            builder.decline(self, e.error)
        except Exception as e:
            logger.exception(f"Test run against {url} failed")
            builder.decline(self, Errors.exception_error(e))

        session = builder.get_session()
        logger.info(f"Test run finished: {session.state.value}")
        return session

    async def probe(self, url: str, settings: TestSettings) -> bool:
        """Run the container once and return whether every step succeeded."""
        if self.container is None:
            return False
        try:
            return await self.container.probe(url, settings, self.services)
        except Exception as e:
            logger.warning(f"Probe of {url} failed: {e}")
            return False
