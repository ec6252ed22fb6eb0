"""Categorized errors reported by test components and the session builder."""

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from sitecheck.availability.components.base import TestComponent


class Error(BaseModel):
    """Error code with a human-readable message.

    Two errors are equal when their codes are equal, regardless of message.
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1, description="Error category code")
    message: str = Field(..., min_length=1, description="Human-readable message")

    def __eq__(self, other: object) -> bool:
        """Compare errors by code only."""
        if not isinstance(other, Error):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        """Hash by code only."""
        return hash(self.code)

    def __str__(self) -> str:
        """Format as ``Error <code>: <message>``."""
        return f"Error {self.code}: {self.message}"


class Errors:
    """Catalog of well-known errors.

    Every member builds a fresh ``Error``; the catalog holds no state.
    """

    @staticmethod
    def exception_error(exception: BaseException) -> Error:
        """Wrap an exception raised by a collaborator."""
        return Error(code="1000", message=f"Message: {exception}")

    @staticmethod
    def http_clients_not_found() -> Error:
        """No HTTP client factory is registered."""
        return Error(
            code="1010",
            message=(
                "The service provider does not have any HTTP client factory "
                "registered. Register an HttpClientFactory before sending "
                "HTTP requests."
            ),
        )

    @staticmethod
    def headless_browser_not_found() -> Error:
        """No headless browser factory is registered."""
        return Error(
            code="1011",
            message=(
                "The service provider does not have any headless browser "
                "factory registered. Register a HeadlessBrowserFactory before "
                "sending browser requests."
            ),
        )

    @staticmethod
    def ping_sender_not_found() -> Error:
        """No ping sender is registered."""
        return Error(
            code="1012",
            message=(
                "The service provider does not have any ping sender registered."
            ),
        )

    @staticmethod
    def dns_resolver_not_found() -> Error:
        """No DNS resolver is registered."""
        return Error(
            code="1013",
            message=(
                "The service provider does not have any DNS resolver registered."
            ),
        )

    @staticmethod
    def incorrect_client_type(client: object) -> Error:
        """Unsupported request client selected."""
        return Error(code="1020", message=f"Unsupported client type: {client}.")

    @staticmethod
    def insufficient_data(component: "TestComponent") -> Error:
        """Upstream steps did not produce the data this step needs."""
        return Error(
            code="1100",
            message=f'Insufficient data to perform "{component.name}" test step.',
        )

    @staticmethod
    def validation_failed(
        component: "TestComponent", error_message: str | None = None
    ) -> Error:
        """A validator rejected the data it inspected."""
        message = f'Validation failed to perform "{component.name}" test step.'
        if error_message:
            message = f"{message} {error_message}"
        return Error(code="1101", message=message)

    @staticmethod
    def dns_lookup_failed() -> Error:
        """Hostname resolved to no addresses."""
        return Error(
            code="1110", message="Could not resolve the hostname to any IP address."
        )

    @staticmethod
    def ping_request_failed() -> Error:
        """No address answered the ping request."""
        return Error(
            code="1111", message="An error occurred while sending the ping request."
        )

    @staticmethod
    def no_test_step_handlers() -> Error:
        """Nothing to run; the session is declined."""
        return Error(
            code="1200",
            message=(
                "No test step handlers were found to perform any steps. "
                "The test session has been marked as declined."
            ),
        )

    @staticmethod
    def missing_url_in_test_session() -> Error:
        """Session was never initiated with a URL."""
        return Error(code="1201", message="Missing URL in test session.")

    @staticmethod
    def missing_start_time_in_test_session() -> Error:
        """Session was never initiated with a start time."""
        return Error(code="1202", message="Missing start time in test session.")

    @staticmethod
    def incorrect_start_date() -> Error:
        """Start date lies before today (UTC)."""
        return Error(code="1300", message="StartDate cannot be in the past.")

    @staticmethod
    def circular_redirection(url: str, chain: list[str]) -> Error:
        """Redirect target was already visited in this chase."""
        return Error(
            code="1400",
            message=(
                f"A circular dependency was detected for the URL {url}. "
                f"The redirection chain is: {' -> '.join(chain)}"
            ),
        )

    @staticmethod
    def too_many_redirects(
        max_redirections: int, url: str, last_url: str | None
    ) -> Error:
        """Redirect chain is longer than the configured limit."""
        return Error(
            code="1401",
            message=(
                f"The number of redirects exceeded {max_redirections} for the "
                f"URL {url}. The last redirect URL was {last_url}."
            ),
        )

    @staticmethod
    def invalid_redirection_target(location: str) -> Error:
        """Relative redirect with no absolute URL to resolve it against."""
        return Error(
            code="1402",
            message=(
                f"Invalid redirection attempt detected. The server attempted to "
                f"redirect to an invalid or unrecognized location: {location}."
            ),
        )
