"""Typed side-channel storage shared between test steps."""

import base64
from collections.abc import Iterator, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

V = TypeVar("V")
T = TypeVar("T")


class PropertyBagKey(BaseModel):
    """Key of a ``PropertyBag`` entry, compared and hashed by name."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Key name")

    def __init__(self, name: str) -> None:
        """Create a key from its name."""
        super().__init__(name=name)

    def __str__(self) -> str:
        """Return the key name."""
        return self.name


class NonSerializable(Generic[T]):
    """Wrapper for property values that are kept in memory only.

    Serializers skip entries holding a ``NonSerializable`` value.
    """

    __slots__ = ("value",)

    def __init__(self, value: T) -> None:
        """Wrap a value."""
        self.value = value

    def __repr__(self) -> str:
        """Show the wrapped value type."""
        return f"NonSerializable({type(self.value).__name__})"


class PropertyBag(Generic[V]):
    """Mapping of ``PropertyBagKey`` to values that never stores ``None``.

    A missing key is the only way to express absence of a value.
    """

    def __init__(self, properties: Mapping[PropertyBagKey, V] | None = None) -> None:
        """Initialize the bag, optionally copying ``properties``."""
        self._properties: dict[PropertyBagKey, V] = {}
        if properties is not None:
            self.add_or_update_many(properties)

    def __len__(self) -> int:
        """Return the number of stored entries."""
        return len(self._properties)

    def __contains__(self, key: object) -> bool:
        """Return whether ``key`` is present."""
        return key in self._properties

    def __iter__(self) -> Iterator[PropertyBagKey]:
        """Iterate keys in insertion order."""
        return iter(self._properties)

    def __eq__(self, other: object) -> bool:
        """Compare stored entries."""
        if not isinstance(other, PropertyBag):
            return NotImplemented
        return self._properties == other._properties

    def __repr__(self) -> str:
        """Show the stored keys."""
        keys = ", ".join(key.name for key in self._properties)
        return f"PropertyBag({keys})"

    @property
    def count(self) -> int:
        """Number of stored entries."""
        return len(self._properties)

    @property
    def keys(self) -> list[PropertyBagKey]:
        """Snapshot of the stored keys."""
        return list(self._properties)

    def items(self) -> list[tuple[PropertyBagKey, V]]:
        """Snapshot of the stored entries."""
        return list(self._properties.items())

    def contains(self, key: PropertyBagKey) -> bool:
        """Return whether ``key`` is present."""
        return key in self._properties

    def add_or_update(self, key: PropertyBagKey, value: V) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            TypeError: If ``key`` is not a ``PropertyBagKey`` or ``value`` is None

        """
        if not isinstance(key, PropertyBagKey):
            raise TypeError(f"Expected PropertyBagKey, got {type(key).__name__}")
        if value is None:
            raise TypeError(f"Property bag value for '{key}' cannot be None")

        self._properties[key] = value

    def add_or_update_many(self, properties: Mapping[PropertyBagKey, V]) -> None:
        """Store every entry of ``properties``."""
        for key, value in properties.items():
            self.add_or_update(key, value)

    def try_get(self, key: PropertyBagKey) -> tuple[bool, V | None]:
        """Look up ``key`` without raising.

        Returns:
            Tuple of (found, value); value is None when not found

        """
        if key in self._properties:
            return True, self._properties[key]
        return False, None

    def get(self, key: PropertyBagKey) -> V:
        """Return the value stored under ``key``.

        Raises:
            KeyError: If ``key`` is not present

        """
        try:
            return self._properties[key]
        except KeyError:
            raise KeyError(f"Property '{key}' not found") from None

    def try_get_as(
        self, key: PropertyBagKey, value_type: type[T]
    ) -> tuple[bool, T | None]:
        """Look up ``key`` and check the stored value is a ``value_type``.

        A type mismatch reports not-found instead of raising.

        Returns:
            Tuple of (found, value); value is None when not found

        """
        found, value = self.try_get(key)
        if found and isinstance(value, value_type):
            return True, value
        return False, None

    def get_as(self, key: PropertyBagKey, value_type: type[T]) -> T:
        """Return the value under ``key`` as a ``value_type``.

        Raises:
            KeyError: If ``key`` is not present
            TypeError: If the stored value is not a ``value_type``

        """
        value = self.get(key)
        if not isinstance(value, value_type):
            raise TypeError(
                f"Property '{key}' holds {type(value).__name__}, "
                f"not {value_type.__name__}"
            )
        return value

    def clear(self) -> None:
        """Remove all entries."""
        self._properties.clear()

    def copy(self) -> "PropertyBag[V]":
        """Return a shallow copy."""
        return PropertyBag(self._properties)

    def freeze(self) -> "FrozenPropertyBag[V]":
        """Return a read-only snapshot of the stored entries."""
        return FrozenPropertyBag(self._properties)


class FrozenPropertyBag(PropertyBag[V]):
    """Read-only bag attached to built test steps.

    Mutating methods raise ``TypeError``; use ``copy`` for an editable bag.
    """

    def __init__(self, properties: Mapping[PropertyBagKey, V] | None = None) -> None:
        """Initialize the snapshot from ``properties``."""
        self._frozen = False
        super().__init__(properties)
        self._frozen = True

    def add_or_update(self, key: PropertyBagKey, value: V) -> None:
        """Reject updates once the snapshot is built."""
        if self._frozen:
            raise TypeError("Property bag of a built test step is read-only")
        super().add_or_update(key, value)

    def clear(self) -> None:
        """Reject clearing."""
        raise TypeError("Property bag of a built test step is read-only")

    def freeze(self) -> "FrozenPropertyBag[V]":
        """Return this snapshot."""
        return self


class PropertyBagKeys:
    """Well-known keys written by the built-in test components."""

    # Network information
    IP_ADDRESS = PropertyBagKey("IPAddress")
    IP_STATUS = PropertyBagKey("IPStatus")

    # DNS lookup
    DNS_RESOLVED_IP_ADDRESSES = PropertyBagKey("DnsResolvedIPAddresses")

    # Ping
    PING_ROUNDTRIP_TIME = PropertyBagKey("PingRoundtripTime")

    # HTTP
    HTTP_RESPONSE_MESSAGE = PropertyBagKey("HttpResponseMessage")
    HTTP_METHOD = PropertyBagKey("HttpMethod")
    HTTP_STATUS = PropertyBagKey("HttpStatus")
    HTTP_REASON_PHRASE = PropertyBagKey("HttpReasonPhrase")
    HTTP_VERSION = PropertyBagKey("HttpVersion")
    HTTP_CONTENT = PropertyBagKey("HttpContent")
    HTTP_CONTENT_HEADERS = PropertyBagKey("HttpContentHeaders")
    HTTP_RESPONSE_HEADERS = PropertyBagKey("HttpResponseHeaders")
    HTTP_REDIRECT_LOCATION = PropertyBagKey("HttpRedirectLocation")


def unwrap(value: Any) -> Any:
    """Return the value held by a ``NonSerializable`` wrapper, or ``value``."""
    if isinstance(value, NonSerializable):
        return value.value
    return value


SERIALIZABLE_TYPE_TAGS = ("str", "bytes", "list[str]", "dict[str,str]")


def _type_tag(key: PropertyBagKey, value: Any) -> str:
    if isinstance(value, str):
        return "str"
    if isinstance(value, bytes):
        return "bytes"
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return "list[str]"
    if isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        return "dict[str,str]"
    raise TypeError(
        f"Property '{key}' holds {type(value).__name__}. Only str, bytes, "
        "list[str] and dict[str, str] values can be serialized."
    )


def dump_property_bag(bag: PropertyBag[Any]) -> dict[str, dict[str, Any]]:
    """Convert a bag to a JSON-compatible dict with a type tag per value.

    ``NonSerializable`` entries are skipped.

    Raises:
        TypeError: If a value is not one of the serializable kinds

    """
    document: dict[str, dict[str, Any]] = {}
    for key, value in bag.items():
        if isinstance(value, NonSerializable):
            continue

        tag = _type_tag(key, value)
        if tag == "bytes":
            encoded: Any = base64.b64encode(value).decode("ascii")
        elif tag == "list[str]":
            encoded = list(value)
        else:
            encoded = value
        document[key.name] = {"type": tag, "value": encoded}
    return document


def load_property_bag(document: Mapping[str, Mapping[str, Any]]) -> PropertyBag[Any]:
    """Rebuild a bag from the output of ``dump_property_bag``.

    Raises:
        ValueError: If an entry carries an unknown type tag

    """
    bag: PropertyBag[Any] = PropertyBag()
    for name, entry in document.items():
        tag = entry.get("type")
        if tag not in SERIALIZABLE_TYPE_TAGS:
            raise ValueError(f"Unknown property type tag '{tag}' for '{name}'")

        raw = entry.get("value")
        if tag == "bytes":
            value: Any = base64.b64decode(raw)
        elif tag == "list[str]":
            value = [str(item) for item in raw]
        elif tag == "dict[str,str]":
            value = {str(k): str(v) for k, v in raw.items()}
        else:
            value = str(raw)
        bag.add_or_update(PropertyBagKey(name), value)
    return bag
