"""Tests for test agent."""

from collections.abc import Callable

from conftest import FakeHttpClientFactory

from sitecheck.availability.actions.dns_lookup import DnsResolver, SystemDnsResolver
from sitecheck.availability.actions.http_request_sender import HttpRequestSender
from sitecheck.availability.agent import TestAgent, build_default_services
from sitecheck.availability.clients.browser import (
    HeadlessBrowserFactory,
    PlaywrightBrowserFactory,
)
from sitecheck.availability.clients.http import AiohttpClientFactory, HttpClientFactory
from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.components.pipeline import Pipeline
from sitecheck.availability.models.errors import Errors
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_session import TestSessionState
from sitecheck.availability.models.test_step import TestStep
from sitecheck.availability.services import ServiceProvider

URL = "https://example.com/a"

ComponentFactory = Callable[..., TestComponent]


async def test_run_completes_session(
    make_component: ComponentFactory, services: ServiceProvider
) -> None:
    """A run yields a completed session with the URL and every step."""
    progress: list[TestStep] = []
    agent = TestAgent(
        services,
        Pipeline(components=[make_component("A"), make_component("B")]),
        progress=progress.append,
    )

    session = await agent.run(URL, TestSettings())

    assert session.state == TestSessionState.COMPLETED
    assert session.url == URL
    assert session.start_date is not None
    assert [step.name for step in session.steps] == ["A", "B"]
    assert progress == list(session.steps)


async def test_run_keeps_failed_steps_in_completed_session(
    make_component: ComponentFactory, services: ServiceProvider
) -> None:
    """Probe failures complete the session with failures."""
    agent = TestAgent(
        services, Pipeline(components=[make_component("A", Errors.dns_lookup_failed())])
    )

    session = await agent.run(URL, TestSettings())

    assert session.state == TestSessionState.COMPLETED
    assert len(session.failures) == 1


async def test_run_without_container_is_declined() -> None:
    """An agent without components declines the session."""
    session = await TestAgent(ServiceProvider()).run(URL, TestSettings())

    assert session.state == TestSessionState.DECLINED
    assert session.decline_reason == Errors.no_test_step_handlers().message


async def test_run_declines_on_missing_service(
    make_component: ComponentFactory,
) -> None:
    """A missing collaborator declines the session with its error."""
    agent = TestAgent(
        ServiceProvider(),
        Pipeline(components=[make_component("A"), HttpRequestSender()]),
    )

    session = await agent.run(URL, TestSettings())

    assert session.state == TestSessionState.DECLINED
    assert session.decline_reason == Errors.http_clients_not_found().message
    assert [step.name for step in session.steps] == ["A"]


async def test_run_declines_on_unexpected_error(services: ServiceProvider) -> None:
    """An unexpected exception declines the session with its message."""

    class Broken(Pipeline):
        async def handle(self, *args: object) -> None:  # type: ignore[override]
            raise RuntimeError("boom")

    session = await TestAgent(services, Broken()).run(URL, TestSettings())

    assert session.state == TestSessionState.DECLINED
    assert session.decline_reason == "Message: boom"


async def test_run_twice_reuses_components(
    http_factory: FakeHttpClientFactory, services: ServiceProvider
) -> None:
    """Each run gets a fresh session and redirect state."""
    http_factory.redirect(URL, "/b")
    http_factory.respond("https://example.com/b")
    agent = TestAgent(services, Pipeline(components=[HttpRequestSender()]))

    first = await agent.run(URL, TestSettings())
    second = await agent.run(URL, TestSettings())

    assert first.is_valid
    assert second.is_valid
    assert [step.iteration for step in second.steps] == [1, 2]


async def test_probe(
    make_component: ComponentFactory, services: ServiceProvider
) -> None:
    """probe reports success, failure and fatal errors as booleans."""
    passing = TestAgent(services, Pipeline(components=[make_component("A")]))
    failing = TestAgent(
        services, Pipeline(components=[make_component("A", Errors.dns_lookup_failed())])
    )
    fatal = TestAgent(ServiceProvider(), Pipeline(components=[HttpRequestSender()]))

    assert await passing.probe(URL, TestSettings())
    assert not await failing.probe(URL, TestSettings())
    assert not await fatal.probe(URL, TestSettings())
    assert not await TestAgent(services).probe(URL, TestSettings())


def test_build_default_services() -> None:
    """Default services register the real collaborators."""
    services = build_default_services()

    assert isinstance(services.get(DnsResolver), SystemDnsResolver)
    assert isinstance(services.get(HttpClientFactory), AiohttpClientFactory)
    assert isinstance(services.get(HeadlessBrowserFactory), PlaywrightBrowserFactory)
