"""Tests for test context and property lookups across steps."""

from datetime import UTC, datetime, timedelta

from sitecheck.availability.context import TestContext, get_property_bag_value
from sitecheck.availability.models.property_bag import (
    NonSerializable,
    PropertyBag,
    PropertyBagKeys,
)
from sitecheck.availability.models.test_step import (
    TestStep,
    TestStepResult,
    TestStepType,
)
from sitecheck.availability.session_builder import TestSessionBuilder


def _step(bag: PropertyBag[object] | None) -> TestStep:
    return TestStep(
        name="Step",
        start_date=datetime.now(UTC),
        duration=timedelta(),
        type=TestStepType.ACTION,
        result=TestStepResult.SUCCEEDED,
        property_bag=bag,
    )


def test_report_forwards_to_progress() -> None:
    """report passes the step to the progress sink."""
    received: list[TestStep] = []
    context = TestContext(TestSessionBuilder(), received.append)
    step = _step(None)

    context.report(step)

    assert received == [step]


def test_report_without_progress() -> None:
    """report works without a progress sink."""
    TestContext(TestSessionBuilder()).report(_step(None))


def test_get_property_bag_value_returns_latest() -> None:
    """The most recent step holding the key wins."""
    steps = [
        _step(PropertyBag({PropertyBagKeys.HTTP_STATUS: "302"})),
        _step(None),
        _step(PropertyBag({PropertyBagKeys.HTTP_STATUS: "200"})),
        _step(PropertyBag({PropertyBagKeys.HTTP_METHOD: "GET"})),
    ]

    assert get_property_bag_value(steps, PropertyBagKeys.HTTP_STATUS, str) == "200"


def test_get_property_bag_value_unwraps_and_checks_type() -> None:
    """Wrapped values are unwrapped and values of another type skipped."""
    marker = object()
    steps = [
        _step(PropertyBag({PropertyBagKeys.HTTP_RESPONSE_MESSAGE: NonSerializable(1)})),
        _step(PropertyBag({PropertyBagKeys.HTTP_CONTENT: NonSerializable(marker)})),
    ]

    assert get_property_bag_value(steps, PropertyBagKeys.HTTP_CONTENT, object) is marker
    assert get_property_bag_value(steps, PropertyBagKeys.HTTP_CONTENT, bytes) is None
    assert (
        get_property_bag_value(steps, PropertyBagKeys.HTTP_RESPONSE_MESSAGE, int) == 1
    )
    assert get_property_bag_value([], PropertyBagKeys.HTTP_STATUS, str) is None
