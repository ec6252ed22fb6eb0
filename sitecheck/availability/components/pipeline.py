"""Sequential composite of test components."""

import logging
from collections.abc import Iterable

from sitecheck.availability.components.base import CompositeTests, TestComponent
from sitecheck.availability.context import TestContext
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)


class Pipeline(CompositeTests):
    """Runs its children one after another, optionally stopping at a failure."""

    STEP_NAME = "Pipeline"

    def __init__(
        self,
        name: str | None = None,
        components: Iterable[TestComponent] | None = None,
    ) -> None:
        """Initialize pipeline with optional name and children."""
        super().__init__(name or self.STEP_NAME, components)

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Run every child in order.

        Stops after the first child that leaves the session failed unless
        ``settings.continue_on_failure`` is set.
        """
        for component in self.components:
            logger.info(f"{self.name}: running {component.name}")
            await component.handle(url, settings, context, services)

            if not settings.continue_on_failure and context.session_builder.has_failed:
                logger.info(f"{self.name}: stopping after failed {component.name}")
                break
