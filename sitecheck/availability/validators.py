"""Validation steps over the HTTP response recorded by earlier steps."""

import logging
from abc import abstractmethod
from collections.abc import Callable
from typing import Generic, TypeVar

from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext, get_property_bag_value
from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.property_bag import PropertyBagKey, PropertyBagKeys
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseValidator(TestComponent, Generic[T]):
    """Runs a predicate over one value recorded by an earlier step.

    Subclasses choose the property key and convert the stored value to the
    type the predicate expects.
    """

    KEY: PropertyBagKey
    STEP_NAME: str

    def __init__(
        self,
        is_valid: Callable[[T], bool],
        error_message: str | None = None,
        name: str | None = None,
    ) -> None:
        """Initialize validator.

        Args:
            is_valid: Predicate that accepts a valid value
            error_message: Message recorded when the predicate rejects
            name: Step name; defaults to the validator's step name

        """
        super().__init__(name or self.STEP_NAME, TestStepType.VALIDATE)
        self.is_valid = is_valid
        self.error_message = error_message

    @abstractmethod
    def convert(self, value: object) -> T | None:
        """Convert the stored value; None when it has the wrong shape."""

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Validate the latest recorded value."""
        builder = context.session_builder
        instrumentation = InstrumentationLog()

        raw = get_property_bag_value(builder.steps, self.KEY, object)
        value = self.convert(raw) if raw is not None else None

        error: Error | Exception | None = None
        if value is None:
            error = Errors.insufficient_data(self)
        else:
            try:
                if not self.is_valid(value):
                    error = Errors.validation_failed(self, self.error_message)
            except Exception as e:
                logger.error(f"{self.name}: validator raised: {e}")
                error = e

        step = builder.build(self, instrumentation, error)
        context.report(step)


class HttpStatusCodeValidator(ResponseValidator[int]):
    """Validates the status code of the final HTTP response."""

    KEY = PropertyBagKeys.HTTP_STATUS
    STEP_NAME = "Http status code validator"

    def convert(self, value: object) -> int | None:
        """Parse the stored status string."""
        try:
            return int(str(value))
        except ValueError:
            return None


class HttpResponseHeadersValidator(ResponseValidator[dict[str, str]]):
    """Validates the headers of the final HTTP response.

    Header names are passed to the predicate upper-cased.
    """

    KEY = PropertyBagKeys.HTTP_RESPONSE_HEADERS
    STEP_NAME = "Http response headers validator"

    def convert(self, value: object) -> dict[str, str] | None:
        """Return the stored headers mapping."""
        if isinstance(value, dict):
            return dict(value)
        return None


class HttpResponseContentValidator(ResponseValidator[bytes]):
    """Validates the raw body of the final HTTP response."""

    KEY = PropertyBagKeys.HTTP_CONTENT
    STEP_NAME = "Http response content validator"

    def convert(self, value: object) -> bytes | None:
        """Return the stored body."""
        if isinstance(value, bytes):
            return value
        return None
