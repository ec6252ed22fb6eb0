"""Accumulates test steps and assembles the final test session."""

import logging
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.property_bag import PropertyBag, PropertyBagKey
from sitecheck.availability.models.test_session import TestSession, TestSessionState
from sitecheck.availability.models.test_step import TestStep, TestStepResult

if TYPE_CHECKING:
    from sitecheck.availability.components.base import TestComponent

logger = logging.getLogger(__name__)

# Tolerates a step started just before midnight and built just after it.
START_DATE_TOLERANCE = timedelta(seconds=60)


def is_start_date_in_past(start_date: datetime) -> bool:
    """Return whether ``start_date`` precedes today's UTC midnight."""
    if start_date.tzinfo is None:
        start_date = start_date.replace(tzinfo=UTC)
    today = datetime.combine(datetime.now(UTC).date(), time(), tzinfo=UTC)
    return start_date < today - START_DATE_TOLERANCE


class TestSessionBuilder:
    """Turns component outcomes into test steps and seals the session.

    Properties staged with ``build_property`` are attached to the next step
    built and then cleared.
    """

    __test__ = False

    def __init__(self, strict_start_date: bool = False) -> None:
        """Initialize an empty builder.

        Args:
            strict_start_date: Raise instead of warning when a step starts
                before today (UTC)

        """
        self._strict_start_date = strict_start_date
        self._steps: list[TestStep] = []
        self._iterations: dict["TestComponent", int] = {}
        self._property_bag: PropertyBag[Any] = PropertyBag()
        self._url: str | None = None
        self._start_date: datetime | None = None
        self._error: Error | None = None

    @property
    def has_failed(self) -> bool:
        """Whether any step built so far failed."""
        return any(step.result == TestStepResult.FAILED for step in self._steps)

    @property
    def steps(self) -> list[TestStep]:
        """Snapshot of the steps built so far."""
        return list(self._steps)

    @property
    def property_bag(self) -> PropertyBag[Any]:
        """Properties staged for the next step."""
        return self._property_bag

    def initiate(
        self, url: str | None, start_date: datetime | None
    ) -> "TestSessionBuilder":
        """Set the tested URL and run start time; may be called again."""
        self._url = url
        self._start_date = start_date
        if start_date is not None and is_start_date_in_past(start_date):
            if self._strict_start_date:
                self._error = Errors.incorrect_start_date()
            else:
                logger.warning(f"Test session start date {start_date} is in the past")
        return self

    def decline(self, agent: object, error: Error) -> None:
        """Record a fatal error; the session will be declined with it."""
        logger.error(f"{type(agent).__name__} declined the test session: {error}")
        self._error = error

    def build_property(self, key: PropertyBagKey, value: Any) -> "TestSessionBuilder":
        """Stage a property for the next step."""
        self._property_bag.add_or_update(key, value)
        return self

    def build(
        self,
        component: "TestComponent",
        instrumentation: InstrumentationLog,
        error: Error | BaseException | None = None,
    ) -> TestStep:
        """Close a step for ``component`` and append it to the session.

        Args:
            component: Component that produced the step
            instrumentation: Timing of the step
            error: Failure cause; None for a succeeded step

        Returns:
            The appended step

        Raises:
            ValueError: If strict start dates are enabled and the step start
                precedes today (UTC)

        """
        start_date = instrumentation.start_time
        if is_start_date_in_past(start_date):
            message = Errors.incorrect_start_date().message
            if self._strict_start_date:
                raise ValueError(message)
            logger.warning(f"{component.name}: {message} ({start_date})")

        iteration = self._iterations.get(component, 0) + 1
        self._iterations[component] = iteration

        if error is None:
            result = TestStepResult.SUCCEEDED
            error_message = None
        elif isinstance(error, Error):
            result = TestStepResult.FAILED
            error_message = error.message
        else:
            result = TestStepResult.FAILED
            error_message = Errors.exception_error(error).message

        step = TestStep(
            name=component.name,
            iteration=iteration,
            start_date=start_date,
            duration=instrumentation.elapsed_time,
            type=component.type,
            result=result,
            property_bag=self._property_bag.freeze() if self._property_bag else None,
            error_message=error_message,
        )
        self._property_bag.clear()
        self._steps.append(step)

        return step

    def get_session(self) -> TestSession:
        """Return the sealed session.

        The session is declined when a fatal error was recorded or the run
        was never initiated with a URL and start time; otherwise completed.
        """
        decline_reason: str | None = None
        if self._error is not None:
            decline_reason = self._error.message
        elif not self._url:
            decline_reason = Errors.missing_url_in_test_session().message
        elif self._start_date is None:
            decline_reason = Errors.missing_start_time_in_test_session().message

        if decline_reason is not None:
            return TestSession(
                url=self._url,
                start_date=self._start_date,
                steps=tuple(self._steps),
                state=TestSessionState.DECLINED,
                decline_reason=decline_reason,
            )

        return TestSession(
            url=self._url,
            start_date=self._start_date,
            steps=tuple(self._steps),
            state=TestSessionState.COMPLETED,
        )
