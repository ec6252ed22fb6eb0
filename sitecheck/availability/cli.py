"""CLI entry point for availability tests."""

import asyncio
import json
import logging
import sys

import typer
from pydantic import ValidationError

from sitecheck.availability.actions.dns_lookup import DnsLookup
from sitecheck.availability.actions.http_request_sender import Client, HttpRequestSender
from sitecheck.availability.actions.ip_address_accessibility_check import (
    IPAddressAccessibilityCheck,
)
from sitecheck.availability.agent import TestAgent, build_default_services
from sitecheck.availability.clients.browser import HeadlessBrowserFactory
from sitecheck.availability.components.pipeline import Pipeline
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_session import TestSession, TestSessionState
from sitecheck.availability.models.test_step import TestStep
from sitecheck.availability.serialization import TestSessionSerializer
from sitecheck.availability.validators import HttpStatusCodeValidator

# Configure logging - force reconfiguration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)
logger = logging.getLogger(__name__)

app = typer.Typer()


def build_pipeline(client: Client) -> Pipeline:
    """Build the standard availability pipeline.

    Resolves the host, pings it, sends the request and expects a 2xx status.
    """
    return Pipeline(
        components=[
            DnsLookup(),
            IPAddressAccessibilityCheck(),
            HttpRequestSender(client),
            HttpStatusCodeValidator(
                lambda status: 200 <= status < 300,
                error_message="Expected a 2xx status code.",
            ),
        ]
    )


def _parse_settings(
    settings_json: str | None, continue_on_failure: bool
) -> TestSettings:
    """Parse the settings JSON and apply the CLI overrides.

    Raises:
        ValueError: If the JSON is malformed or holds invalid settings

    """
    try:
        settings_dict = json.loads(settings_json) if settings_json else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in settings: {e}")

    if continue_on_failure:
        settings_dict["continue_on_failure"] = True

    try:
        return TestSettings.model_validate(settings_dict)
    except ValidationError as e:
        raise ValueError(f"Invalid settings: {e}")


def _log_step(step: TestStep) -> None:
    if step.succeeded:
        logger.info(f"✓ {step}")
    else:
        logger.error(f"✗ {step}")


async def run_test(url: str, client: Client, settings: TestSettings) -> TestSession:
    """Run the standard pipeline against ``url`` with the default services."""
    services = build_default_services()
    agent = TestAgent(services, build_pipeline(client), progress=_log_step)
    try:
        return await agent.run(url, settings)
    finally:
        browser_factory = services.get(HeadlessBrowserFactory)
        if browser_factory is not None:
            await browser_factory.close()


@app.command()
def main(
    url: str = typer.Option(..., help="Absolute URL to test"),
    client: Client = typer.Option(
        Client.HTTP_CLIENT, help="Send the request with an HTTP client or a browser"
    ),
    settings: str | None = typer.Option(
        None, help="Test settings as JSON, e.g. '{\"max_redirections\": 5}'"
    ),
    continue_on_failure: bool = typer.Option(
        False, help="Keep running steps after a failed step"
    ),
) -> None:
    """Run an availability test against a URL and print the session as JSON."""
    try:
        test_settings = _parse_settings(settings, continue_on_failure)
    except ValueError as e:
        logger.error(f"Failed to parse settings: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    logger.info(f"Testing {url} with {client.value} client")
    try:
        session = asyncio.run(run_test(url, client, test_settings))
    except Exception as e:
        logger.exception("Test execution failed")
        typer.echo(f"Error running tests: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(TestSessionSerializer().serialize(session))

    if session.state == TestSessionState.DECLINED:
        logger.error(f"Test session declined: {session.decline_reason}")
        raise typer.Exit(code=1)

    if session.failures:
        logger.error(f"Steps failed: {len(session.failures)}/{len(session.steps)}")
        raise typer.Exit(code=1)

    logger.info(str(session))


if __name__ == "__main__":  # pragma: no cover
    app()
