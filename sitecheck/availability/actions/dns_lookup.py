"""Resolves the host of the tested URL to IP addresses."""

import asyncio
import logging
import socket
from abc import ABC, abstractmethod
from urllib.parse import urlsplit

from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext
from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.property_bag import PropertyBagKeys
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)


class DnsResolver(ABC):
    """Resolves host names to IP addresses."""

    @abstractmethod
    async def resolve(self, hostname: str) -> list[str]:
        """Return the addresses of ``hostname``; empty if none were found."""


class SystemDnsResolver(DnsResolver):
    """Resolver backed by the event loop's ``getaddrinfo``."""

    async def resolve(self, hostname: str) -> list[str]:
        """Resolve ``hostname`` with the system resolver."""
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
        addresses: list[str] = []
        for _family, _type, _proto, _canonname, sockaddr in infos:
            address = str(sockaddr[0])
            if address not in addresses:
                addresses.append(address)
        return addresses


class DnsLookup(TestComponent):
    """Resolves the URL host and stores the addresses for later steps."""

    STEP_NAME = "DNS lookup"

    def __init__(self, name: str | None = None) -> None:
        """Initialize lookup with an optional step name."""
        super().__init__(name or self.STEP_NAME, TestStepType.ACTION)

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Resolve the host of ``url``.

        Raises:
            MissingServiceError: If no ``DnsResolver`` is registered

        """
        resolver = services.get_required(DnsResolver, Errors.dns_resolver_not_found())
        builder = context.session_builder
        instrumentation = InstrumentationLog()

        error: Error | Exception | None = None
        try:
            hostname = urlsplit(url).hostname
            if not hostname:
                raise ValueError(f"URL has no host name: {url}")

            addresses = await resolver.resolve(hostname)
            if addresses:
                logger.info(f"{hostname} resolved to {', '.join(addresses)}")
                builder.build_property(
                    PropertyBagKeys.DNS_RESOLVED_IP_ADDRESSES, addresses
                )
            else:
                error = Errors.dns_lookup_failed()
        except Exception as e:
            logger.error(f"{self.name}: lookup for {url} failed: {e}")
            error = e

        step = builder.build(self, instrumentation, error)
        context.report(step)
