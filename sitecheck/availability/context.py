"""Per-run carrier passed to every test component."""

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from sitecheck.availability.models.property_bag import PropertyBagKey, unwrap
from sitecheck.availability.models.test_step import TestStep
from sitecheck.availability.session_builder import TestSessionBuilder

logger = logging.getLogger(__name__)

T = TypeVar("T")

Progress = Callable[[TestStep], None]


class TestContext:
    """Session builder and optional progress sink for one run."""

    __test__ = False

    def __init__(
        self, session_builder: TestSessionBuilder, progress: Progress | None = None
    ) -> None:
        """Initialize context with a builder and an optional progress sink."""
        self.session_builder = session_builder
        self.progress = progress

    def report(self, step: TestStep) -> None:
        """Forward a finalized step to the progress sink, if any."""
        logger.debug(f"Step finished: {step}")
        if self.progress is not None:
            self.progress(step)


def get_property_bag_value(
    steps: Sequence[TestStep], key: PropertyBagKey, value_type: type[T]
) -> T | None:
    """Return the most recent value stored under ``key`` by any step.

    ``NonSerializable`` wrappers are unwrapped. Values of another type are
    ignored.
    """
    for step in reversed(steps):
        if step.property_bag is None:
            continue

        found, value = step.property_bag.try_get(key)
        if not found:
            continue

        value = unwrap(value)
        if isinstance(value, value_type):
            return value
    return None
