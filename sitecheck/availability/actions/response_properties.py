"""Stages HTTP response data on the session builder for the next step."""

from sitecheck.availability.clients.http import HttpResponse
from sitecheck.availability.models.property_bag import (
    NonSerializable,
    PropertyBagKeys,
)
from sitecheck.availability.session_builder import TestSessionBuilder


def build_response_properties(
    builder: TestSessionBuilder,
    method: str,
    response: HttpResponse,
    final: bool,
) -> None:
    """Stage status, headers and, for the final response, the body.

    Args:
        builder: Session builder the properties are staged on
        method: HTTP method of the request that produced ``response``
        response: Response to describe
        final: Whether ``response`` ends the redirect chase

    """
    builder.build_property(PropertyBagKeys.HTTP_METHOD, method)
    builder.build_property(PropertyBagKeys.HTTP_STATUS, str(response.status))
    if response.reason:
        builder.build_property(PropertyBagKeys.HTTP_REASON_PHRASE, response.reason)
    if response.version:
        builder.build_property(PropertyBagKeys.HTTP_VERSION, response.version)
    builder.build_property(
        PropertyBagKeys.HTTP_RESPONSE_HEADERS,
        {name.upper(): value for name, value in response.headers.items()},
    )

    if final:
        builder.build_property(PropertyBagKeys.HTTP_CONTENT, response.content)
        builder.build_property(
            PropertyBagKeys.HTTP_RESPONSE_MESSAGE, NonSerializable(response)
        )
    else:
        location = response.header("Location")
        if location:
            builder.build_property(PropertyBagKeys.HTTP_REDIRECT_LOCATION, location)
