"""JSON persistence of test sessions."""

import logging
from pathlib import Path
from typing import IO

from sitecheck.availability.models.test_session import TestSession

logger = logging.getLogger(__name__)


class TestSessionSerializer:
    """Reads and writes test sessions as JSON documents.

    Property bag values are written with a type tag so they load back as the
    same kind of value; ``NonSerializable`` values are left out.
    """

    __test__ = False

    def __init__(self, indent: int | None = 2) -> None:
        """Initialize serializer with the JSON indentation to write."""
        self.indent = indent

    def serialize(self, session: TestSession) -> str:
        """Return ``session`` as a JSON string.

        Raises:
            pydantic_core.PydanticSerializationError: If a property bag holds a
                value that cannot be serialized

        """
        return session.model_dump_json(indent=self.indent)

    def deserialize(self, document: str | bytes) -> TestSession:
        """Load a session from a JSON string.

        Raises:
            pydantic.ValidationError: If the document is not a valid session

        """
        return TestSession.model_validate_json(document)

    def write(self, session: TestSession, stream: IO[str]) -> None:
        """Write ``session`` to a text stream."""
        stream.write(self.serialize(session))

    def read(self, stream: IO[str]) -> TestSession:
        """Read a session from a text stream."""
        return self.deserialize(stream.read())

    def save(self, session: TestSession, path: Path) -> None:
        """Write ``session`` to ``path``."""
        path.write_text(self.serialize(session), encoding="utf-8")
        logger.info(f"Test session saved to {path}")

    def load(self, path: Path) -> TestSession:
        """Read a session from ``path``."""
        return self.deserialize(path.read_text(encoding="utf-8"))
