"""End-to-end tests for the HTTP request sender against a local aiohttp server."""

from collections.abc import AsyncGenerator

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from sitecheck.availability.actions.http_request_sender import HttpRequestSender
from sitecheck.availability.agent import TestAgent
from sitecheck.availability.clients.http import AiohttpClientFactory, HttpClientFactory
from sitecheck.availability.components.pipeline import Pipeline
from sitecheck.availability.models.property_bag import PropertyBagKeys
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_session import TestSessionState
from sitecheck.availability.services import ServiceProvider
from sitecheck.availability.validators import HttpStatusCodeValidator


def _redirect(location: str, status: int = 302) -> web.Response:
    return web.Response(status=status, headers={"Location": location})


async def _start(request: web.Request) -> web.Response:
    return _redirect("/middle")


async def _middle(request: web.Request) -> web.Response:
    return _redirect("/end", status=301)


async def _end(request: web.Request) -> web.Response:
    return web.Response(text="done")


async def _loop_a(request: web.Request) -> web.Response:
    return _redirect("/loop-b")


async def _loop_b(request: web.Request) -> web.Response:
    return _redirect("/loop-a")


async def _form(request: web.Request) -> web.Response:
    return _redirect("/echo-method", status=303)


async def _echo_method(request: web.Request) -> web.Response:
    return web.Response(text=request.method)


@pytest.fixture
async def server() -> AsyncGenerator[TestServer, None]:
    """Serve a redirect chain, a redirect loop and a 303 form target."""
    app = web.Application()
    app.router.add_get("/start", _start)
    app.router.add_get("/middle", _middle)
    app.router.add_get("/end", _end)
    app.router.add_get("/loop-a", _loop_a)
    app.router.add_get("/loop-b", _loop_b)
    app.router.add_post("/form", _form)
    app.router.add_route("*", "/echo-method", _echo_method)

    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
def agent() -> TestAgent:
    """Create an agent sending real requests and expecting a 2xx status."""
    services = ServiceProvider().add(HttpClientFactory, AiohttpClientFactory())
    pipeline = Pipeline(
        components=[
            HttpRequestSender(),
            HttpStatusCodeValidator(lambda status: 200 <= status < 300),
        ]
    )
    return TestAgent(services, pipeline)


async def test_redirect_chain_is_followed(server: TestServer, agent: TestAgent) -> None:
    """A chain of redirects records one step per hop and succeeds."""
    url = str(server.make_url("/start"))

    session = await agent.run(url, TestSettings(retry_http_request_when_failed=False))

    assert session.state == TestSessionState.COMPLETED
    assert not session.failures
    statuses = [
        step.property_bag.get(PropertyBagKeys.HTTP_STATUS)
        for step in session.steps
        if step.name == "Http request sender (HttpClient)" and step.property_bag
    ]
    assert statuses == ["302", "301", "200"]
    final = session.steps[-2]
    assert final.property_bag is not None
    assert final.property_bag.get(PropertyBagKeys.HTTP_CONTENT) == b"done"


async def test_redirect_loop_fails(server: TestServer, agent: TestAgent) -> None:
    """A redirect loop fails the sender and stops the pipeline."""
    url = str(server.make_url("/loop-a"))

    session = await agent.run(url, TestSettings(retry_http_request_when_failed=False))

    assert session.failures
    last = session.steps[-1]
    assert last.name == "Http request sender (HttpClient)"
    assert last.error_message is not None
    assert "loop-a -> " in last.error_message


async def test_redirect_limit_fails(server: TestServer, agent: TestAgent) -> None:
    """Exceeding the redirect limit fails the sender."""
    url = str(server.make_url("/start"))

    session = await agent.run(
        url,
        TestSettings(max_redirections=1, retry_http_request_when_failed=False),
    )

    assert session.failures
    assert "exceeded 1" in (session.steps[-1].error_message or "")


async def test_see_other_switches_to_get(server: TestServer, agent: TestAgent) -> None:
    """A 303 response is followed with a GET request."""
    url = str(server.make_url("/form"))

    session = await agent.run(
        url,
        TestSettings(
            http_method="POST",
            http_content=b"name=value",
            retry_http_request_when_failed=False,
        ),
    )

    assert not session.failures
    final = session.steps[-2]
    assert final.property_bag is not None
    assert final.property_bag.get(PropertyBagKeys.HTTP_METHOD) == "GET"
    assert final.property_bag.get(PropertyBagKeys.HTTP_CONTENT) == b"GET"
