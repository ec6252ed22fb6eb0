"""Data models for test steps, sessions, settings and property bags."""

from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.property_bag import (
    NonSerializable,
    PropertyBag,
    PropertyBagKey,
    PropertyBagKeys,
)
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_session import TestSession, TestSessionState
from sitecheck.availability.models.test_step import (
    TestStep,
    TestStepResult,
    TestStepType,
)

__all__ = [
    "Error",
    "Errors",
    "NonSerializable",
    "PropertyBag",
    "PropertyBagKey",
    "PropertyBagKeys",
    "TestSession",
    "TestSessionState",
    "TestSettings",
    "TestStep",
    "TestStepResult",
    "TestStepType",
]
