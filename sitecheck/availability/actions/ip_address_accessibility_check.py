"""Checks that one of the resolved IP addresses answers a ping."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import timedelta

from pydantic import BaseModel, Field

from sitecheck.availability.components.base import TestComponent
from sitecheck.availability.context import TestContext, get_property_bag_value
from sitecheck.availability.instrumentation import InstrumentationLog
from sitecheck.availability.models.errors import Error, Errors
from sitecheck.availability.models.property_bag import PropertyBagKeys
from sitecheck.availability.models.settings import TestSettings
from sitecheck.availability.models.test_step import TestStepType
from sitecheck.availability.services import ServiceProvider

logger = logging.getLogger(__name__)

_ROUNDTRIP_PATTERN = re.compile(r"time[=<]\s*([\d.]+)\s*ms")


class PingReply(BaseModel):
    """Outcome of one ping."""

    success: bool = Field(..., description="Whether an echo reply was received")
    roundtrip_time: timedelta | None = Field(
        default=None, description="Measured round-trip time"
    )


class PingSender(ABC):
    """Sends ICMP echo requests."""

    @abstractmethod
    async def ping(
        self, address: str, timeout: timedelta, ttl: int, dont_fragment: bool
    ) -> PingReply:
        """Ping ``address`` once."""


class SubprocessPingSender(PingSender):
    """Ping sender that runs the system ``ping`` binary (iputils syntax)."""

    def __init__(self, executable: str = "ping") -> None:
        """Initialize sender with the ping executable to run."""
        self.executable = executable

    def build_command(
        self, address: str, timeout: timedelta, ttl: int, dont_fragment: bool
    ) -> list[str]:
        """Build the command line for one echo request."""
        wait = max(1, int(timeout.total_seconds()))
        command = [self.executable, "-c", "1", "-W", str(wait), "-t", str(ttl)]
        if dont_fragment:
            command.extend(["-M", "do"])
        command.append(address)
        return command

    async def ping(
        self, address: str, timeout: timedelta, ttl: int, dont_fragment: bool
    ) -> PingReply:
        """Run ``ping`` and parse the round-trip time from its output."""
        process = await asyncio.create_subprocess_exec(
            *self.build_command(address, timeout, ttl, dont_fragment),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            logger.debug(f"ping {address} exited with {process.returncode}: {stderr!r}")
            return PingReply(success=False)

        match = _ROUNDTRIP_PATTERN.search(stdout.decode(errors="replace"))
        roundtrip = timedelta(milliseconds=float(match.group(1))) if match else None
        return PingReply(success=True, roundtrip_time=roundtrip)


class IPAddressAccessibilityCheck(TestComponent):
    """Pings the addresses resolved by an earlier DNS lookup."""

    STEP_NAME = "IPAddress accessibility check"

    def __init__(self, name: str | None = None) -> None:
        """Initialize check with an optional step name."""
        super().__init__(name or self.STEP_NAME, TestStepType.ACTION)

    async def handle(
        self,
        url: str,
        settings: TestSettings,
        context: TestContext,
        services: ServiceProvider,
    ) -> None:
        """Ping each resolved address until one answers.

        Raises:
            MissingServiceError: If no ``PingSender`` is registered

        """
        sender = services.get_required(PingSender, Errors.ping_sender_not_found())
        builder = context.session_builder
        instrumentation = InstrumentationLog()

        addresses = get_property_bag_value(
            builder.steps, PropertyBagKeys.DNS_RESOLVED_IP_ADDRESSES, list
        )

        error: Error | Exception | None = None
        if not addresses:
            error = Errors.insufficient_data(self)
        else:
            try:
                error = await self._ping_any(addresses, sender, settings, context)
            except Exception as e:
                logger.error(f"{self.name}: ping failed: {e}")
                error = e

        step = builder.build(self, instrumentation, error)
        context.report(step)

    async def _ping_any(
        self,
        addresses: list[str],
        sender: PingSender,
        settings: TestSettings,
        context: TestContext,
    ) -> Error | None:
        for address in addresses:
            reply = await sender.ping(
                address,
                settings.http_request_timeout,
                settings.ping_ttl,
                settings.ping_dont_fragment,
            )
            if not reply.success:
                logger.info(f"{address} did not answer the ping")
                continue

            builder = context.session_builder
            builder.build_property(PropertyBagKeys.IP_ADDRESS, address)
            builder.build_property(PropertyBagKeys.IP_STATUS, "Success")
            if reply.roundtrip_time is not None:
                builder.build_property(
                    PropertyBagKeys.PING_ROUNDTRIP_TIME,
                    f"{reply.roundtrip_time.total_seconds() * 1000:g}",
                )
            return None

        return Errors.ping_request_failed()
