"""Redirect chain tracking shared by the HTTP client and browser senders."""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from urllib.parse import urljoin, urlsplit

from sitecheck.availability.clients.http import HttpResponse
from sitecheck.availability.models.errors import Error, Errors

logger = logging.getLogger(__name__)

# Statuses whose Location header is followed. Other 3xx codes (300, 304,
# 305, 308) are not treated as followable redirects.
REDIRECT_STATUSES = frozenset(
    {
        HTTPStatus.MOVED_PERMANENTLY,
        HTTPStatus.FOUND,
        HTTPStatus.SEE_OTHER,
        HTTPStatus.TEMPORARY_REDIRECT,
    }
)


def is_redirect(status: int) -> bool:
    """Return whether ``status`` is a followable redirect status."""
    return status in REDIRECT_STATUSES


def is_absolute_url(url: str) -> bool:
    """Return whether ``url`` has both a scheme and a host."""
    parts = urlsplit(url)
    return bool(parts.scheme and parts.netloc)


class OrderedHttpRedirections:
    """Insertion-ordered set of URLs visited during one redirect chase."""

    def __init__(self) -> None:
        """Initialize an empty set."""
        self._urls: dict[str, None] = {}

    def __len__(self) -> int:
        """Return the number of visited URLs."""
        return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        """Iterate URLs in visiting order."""
        return iter(self._urls)

    def __contains__(self, url: object) -> bool:
        """Return whether ``url`` was visited."""
        return url in self._urls

    def add(self, url: str) -> bool:
        """Add ``url``; return False if it was already present."""
        if url in self._urls:
            return False
        self._urls[url] = None
        return True

    def find_last_matching(self, predicate: Callable[[str], bool]) -> str | None:
        """Return the most recently added URL matching ``predicate``."""
        for url in reversed(self._urls):
            if predicate(url):
                return url
        return None

    def clear(self) -> None:
        """Forget every visited URL."""
        self._urls.clear()


class RedirectAction(str, Enum):
    """What the sender should do after inspecting a response."""

    FOLLOW = "follow"
    STOP = "stop"
    FAILED = "failed"


@dataclass(frozen=True)
class RedirectOutcome:
    """Decision taken for one redirect response."""

    action: RedirectAction
    url: str | None = None
    error: Error | None = None

    @classmethod
    def follow(cls, url: str) -> "RedirectOutcome":
        """Send the next request to ``url``."""
        return cls(RedirectAction.FOLLOW, url=url)

    @classmethod
    def stop(cls) -> "RedirectOutcome":
        """Treat the current response as terminal."""
        return cls(RedirectAction.STOP)

    @classmethod
    def failed(cls, error: Error) -> "RedirectOutcome":
        """Abort the chase with ``error``."""
        return cls(RedirectAction.FAILED, error=error)


class RedirectChase:
    """State of one redirect chase: visited URLs and the hop limit.

    ``start`` must be called at the beginning of every request so nothing
    carries over between runs.
    """

    def __init__(self, max_redirections: int = 50) -> None:
        """Initialize chase with the configured redirect limit."""
        self.max_redirections = max_redirections
        self.visited = OrderedHttpRedirections()
        self._url: str | None = None

    def start(self, url: str, max_redirections: int | None = None) -> None:
        """Reset the visited set and record the initial URL."""
        if max_redirections is not None:
            self.max_redirections = max_redirections
        self.visited.clear()
        self.visited.add(url)
        self._url = url

    @property
    def can_follow(self) -> bool:
        """Whether another redirect may be followed within the limit."""
        return len(self.visited) <= self.max_redirections

    def follow(self, response: HttpResponse) -> RedirectOutcome:
        """Decide how to continue after ``response``.

        Relative locations resolve against the last absolute URL visited.
        A location visited before fails the chase as circular.
        """
        if not is_redirect(response.status):
            return RedirectOutcome.stop()

        location = response.header("Location")
        if not location:
            logger.debug(f"Redirect {response.status} without Location header")
            return RedirectOutcome.stop()

        if not is_absolute_url(location):
            base = self.visited.find_last_matching(is_absolute_url)
            if base is None:
                return RedirectOutcome.failed(
                    Errors.invalid_redirection_target(location)
                )
            location = urljoin(base, location)

        if not self.visited.add(location):
            chain = [*self.visited, location]
            return RedirectOutcome.failed(Errors.circular_redirection(location, chain))

        logger.debug(f"Following {response.status} redirect to {location}")
        return RedirectOutcome.follow(location)

    def limit_error(self) -> Error | None:
        """Return a too-many-redirects error if the limit was exceeded."""
        if len(self.visited) <= self.max_redirections:
            return None

        last_url = self.visited.find_last_matching(bool)
        return Errors.too_many_redirects(
            self.max_redirections, self._url or "", last_url
        )
