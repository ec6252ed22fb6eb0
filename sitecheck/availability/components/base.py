"""Abstract base classes for test components."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from sitecheck.availability.context import TestContext
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.services import ServiceProvider
from sitecheck.availability.session_builder import TestSessionBuilder


class TestComponent(ABC):
    """Unit of work that appends one or more steps to a test session."""

    __test__ = False

    def __init__(self, name: str, type: TestStepType) -> None:
        """Initialize component with its display name and step type."""
        if not name:
            raise ValueError("Component name cannot be empty")
        self.name = name
        self.type = type

    def __repr__(self) -> str:
        """Show the component class and name."""
        return f"{type(self).__name__}({self.name!r})"

    @abstractmethod
    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Run the component and record its outcome in ``context``.

        Args:
            url: Absolute URL under test
            settings: Run settings
            context: Per-run session builder and progress sink
            services: Registry of external collaborators

        Raises:
            MissingServiceError: If a required collaborator is not registered

        """

    async def probe(
        self,
        url: str,
        settings: TestSettings,
        services: ServiceProvider,
    ) -> bool:
        """Run the component in a throwaway context.

        Returns:
            True if no step failed

        """
        context = TestContext(
            TestSessionBuilder(strict_start_date=settings.strict_start_date)
        )
        await self.handle(url, settings, context, services)
        return not context.session_builder.has_failed


class CompositeTests(TestComponent):
    """Component that owns an ordered list of child components."""

    def __init__(
        self, name: str, components: Iterable[TestComponent] | None = None
    ) -> None:
        """Initialize composite with optional initial children."""
        super().__init__(name, TestStepType.COMPOSITE)
        self._components: list[TestComponent] = list(components or [])

    @property
    def components(self) -> tuple[TestComponent, ...]:
        """Children in run order."""
        return tuple(self._components)

    def add_component(self, component: TestComponent) -> None:
        """Append a child component."""
        self._components.append(component)

    def remove_component(self, component: TestComponent) -> None:
        """Remove a child component.

        Raises:
            ValueError: If ``component`` is not a child

        """
        self._components.remove(component)
