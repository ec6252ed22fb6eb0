"""Shared fakes for the external collaborators used by test components."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from sitecheck.availability.actions.dns_lookup import DnsResolver
from sitecheck.availability.actions.ip_address_accessibility_check import (
    PingReply,
    PingSender,
)
from sitecheck.availability.clients.browser import (
    BrowserContext,
    HeadlessBrowserClient,
    HeadlessBrowserFactory,
    RedirectHandler,
    WebPage,
)
from sitecheck.availability.clients.http import (
    HttpClient,
    HttpClientFactory,
    HttpRequest,
    HttpResponse,
)
from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext
from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStep, TestStepType
from sitecheck.availability.services import ServiceProvider
from sitecheck.availability.session_builder import TestSessionBuilder

TEST_URL = "https://example.com/a"

Script = HttpResponse | BaseException


class FakeHttpClient(HttpClient):
    """Client answering from the routes of its factory."""

    def __init__(self, factory: "FakeHttpClientFactory") -> None:
        """Initialize client bound to ``factory``."""
        self.factory = factory

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Record the request and return the scripted response."""
        self.factory.requests.append(request)
        route = self.factory.routes.get(request.url)
        if route is None:
            raise ConnectionError(f"No route to {request.url}")
        if isinstance(route, BaseException):
            raise route
        return route.model_copy(update={"url": request.url})

    async def close(self) -> None:
        """Count closed clients."""
        self.factory.closed += 1


class FakeHttpClientFactory(HttpClientFactory):
    """Factory whose clients answer from a URL-keyed route table."""

    def __init__(self) -> None:
        """Initialize factory without routes."""
        self.routes: dict[str, HttpResponse | BaseException] = {}
        self.requests: list[HttpRequest] = []
        self.client_names: list[str] = []
        self.closed = 0

    @property
    def requested_urls(self) -> list[str]:
        """URLs requested so far, in order."""
        return [request.url for request in self.requests]

    def respond(
        self,
        url: str,
        status: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        """Answer requests to ``url`` with a plain response."""
        self.routes[url] = HttpResponse(
            url=url,
            status=status,
            reason="OK" if status == 200 else None,
            version="1.1",
            headers=headers or {},
            content=content,
        )

    def redirect(self, url: str, location: str | None, status: int = 302) -> None:
        """Answer requests to ``url`` with a redirect to ``location``."""
        headers = {"Location": location} if location is not None else {}
        self.routes[url] = HttpResponse(
            url=url, status=status, reason="Found", version="1.1", headers=headers
        )

    def fail(self, url: str, exception: BaseException) -> None:
        """Raise ``exception`` for requests to ``url``."""
        self.routes[url] = exception

    def create_client(self, name: str, settings: TestSettings) -> HttpClient:
        """Create a client answering from the route table."""
        self.client_names.append(name)
        return FakeHttpClient(self)


class FakeBrowserClient(HeadlessBrowserClient):
    """Browser that replays the navigation scripted on its factory."""

    def __init__(self, factory: "FakeBrowserFactory") -> None:
        """Initialize client bound to ``factory``."""
        self.factory = factory

    async def get(
        self, url: str, on_redirect: RedirectHandler | None = None
    ) -> WebPage:
        """Fire the scripted redirects, then return or raise the final result."""
        self.factory.navigations.append(url)
        redirects, final = self.factory.scripts[url]
        for response in redirects:
            if on_redirect is not None:
                on_redirect(response)
        if isinstance(final, BaseException):
            raise final
        return WebPage(response=final)

    async def close(self) -> None:
        """Count closed clients."""
        self.factory.closed += 1


class FakeBrowserFactory(HeadlessBrowserFactory):
    """Factory whose browsers replay scripted navigations."""

    def __init__(self) -> None:
        """Initialize factory without scripts."""
        self.scripts: dict[str, tuple[list[HttpResponse], Script]] = {}
        self.navigations: list[str] = []
        self.contexts: list[BrowserContext] = []
        self.closed = 0

    def script(
        self,
        url: str,
        redirects: list[tuple[str, str]],
        final: Script,
    ) -> None:
        """Script a navigation to ``url``.

        Args:
            url: Navigated URL
            redirects: (response URL, Location) pairs reported as 302s
            final: Final page response, or the exception navigation raises

        """
        self.scripts[url] = (
            [
                HttpResponse(
                    url=source, status=302, reason="Found", headers={"location": target}
                )
                for source, target in redirects
            ],
            final,
        )

    async def create_client(self, context: BrowserContext) -> HeadlessBrowserClient:
        """Create a browser replaying the scripts."""
        self.contexts.append(context)
        return FakeBrowserClient(self)


class FakeDnsResolver(DnsResolver):
    """Resolver answering from a host-keyed table."""

    def __init__(self) -> None:
        """Initialize resolver without hosts."""
        self.hosts: dict[str, list[str] | Exception] = {}

    async def resolve(self, hostname: str) -> list[str]:
        """Return the scripted addresses of ``hostname``."""
        result = self.hosts.get(hostname, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakePingSender(PingSender):
    """Ping sender answering only for reachable addresses."""

    def __init__(self) -> None:
        """Initialize sender with nothing reachable."""
        self.reachable: dict[str, timedelta] = {}
        self.pinged: list[tuple[str, timedelta, int, bool]] = []

    async def ping(
        self, address: str, timeout: timedelta, ttl: int, dont_fragment: bool
    ) -> PingReply:
        """Record the ping and answer if ``address`` is reachable."""
        self.pinged.append((address, timeout, ttl, dont_fragment))
        if address in self.reachable:
            return PingReply(success=True, roundtrip_time=self.reachable[address])
        return PingReply(success=False)


class RecordingComponent(TestComponent):
    """Leaf component that builds one step and counts its runs."""

    def __init__(self, name: str, error: Error | None = None) -> None:
        """Initialize component; ``error`` makes every step fail."""
        super().__init__(name, TestStepType.ACTION)
        self.error = error
        self.calls = 0

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Build one step."""
        self.calls += 1
        step = context.session_builder.build(self, InstrumentationLog(), self.error)
        context.report(step)


@pytest.fixture
def http_factory() -> FakeHttpClientFactory:
    """Create an HTTP client factory without routes."""
    return FakeHttpClientFactory()


@pytest.fixture
def browser_factory() -> FakeBrowserFactory:
    """Create a browser factory without scripts."""
    return FakeBrowserFactory()


@pytest.fixture
def dns_resolver() -> FakeDnsResolver:
    """Create a resolver without hosts."""
    return FakeDnsResolver()


@pytest.fixture
def ping_sender() -> FakePingSender:
    """Create a ping sender with nothing reachable."""
    return FakePingSender()


@pytest.fixture
def services(
    http_factory: FakeHttpClientFactory,
    browser_factory: FakeBrowserFactory,
    dns_resolver: FakeDnsResolver,
    ping_sender: FakePingSender,
) -> ServiceProvider:
    """Register every fake collaborator."""
    return (
        ServiceProvider()
        .add(HttpClientFactory, http_factory)
        .add(HeadlessBrowserFactory, browser_factory)
        .add(DnsResolver, dns_resolver)
        .add(PingSender, ping_sender)
    )


@pytest.fixture
def reported() -> list[TestStep]:
    """Collect steps passed to the progress sink."""
    return []


@pytest.fixture
def context(reported: list[TestStep]) -> TestContext:
    """Create a context initiated for ``TEST_URL`` that records progress."""
    builder = TestSessionBuilder().initiate(TEST_URL, datetime.now(UTC))
    return TestContext(builder, reported.append)


@pytest.fixture
def make_component() -> Callable[..., RecordingComponent]:
    """Return a constructor for recording leaf components."""
    return RecordingComponent
