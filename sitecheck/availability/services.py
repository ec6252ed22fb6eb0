"""Service lookup used by components to reach their external collaborators."""

import logging
from typing import Any, TypeVar, cast

from sitecheck.availability.models.errors import Error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MissingServiceError(RuntimeError):
    """A component's required collaborator is not registered."""

    def __init__(self, error: Error) -> None:
        """Initialize from the catalog error describing the missing service."""
        self.error = error
        super().__init__(error.message)


class ServiceProvider:
    """Registry of collaborator instances keyed by their base type."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._services: dict[type, Any] = {}

    def add(self, service_type: type[T], instance: T) -> "ServiceProvider":
        """Register ``instance`` as the implementation of ``service_type``."""
        if not isinstance(instance, service_type):
            raise TypeError(
                f"{type(instance).__name__} is not a {service_type.__name__}"
            )
        logger.debug(
            f"Registered {type(instance).__name__} for {service_type.__name__}"
        )
        self._services[service_type] = instance
        return self

    def get(self, service_type: type[T]) -> T | None:
        """Return the registered implementation of ``service_type``, or None."""
        return cast("T | None", self._services.get(service_type))

    def get_required(self, service_type: type[T], error: Error) -> T:
        """Return the implementation of ``service_type``.

        Raises:
            MissingServiceError: If nothing is registered for ``service_type``

        """
        service = self.get(service_type)
        if service is None:
            raise MissingServiceError(error)
        return service
