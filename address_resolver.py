"""Best-effort discovery of the host's primary IPv4 address."""

from __future__ import annotations

import ipaddress
import logging
import re
import subprocess
from collections.abc import Callable, Sequence

from config import ADDRESS_COMMAND_TIMEOUT_SECS, ADDRESS_COMMANDS

logger = logging.getLogger(__name__)

# Matches both "inet 10.0.0.5" (ifconfig, ip addr) and "inet addr:10.0.0.5" (old net-tools).
_INET_TOKEN = re.compile(r"\binet\s+(?:addr:)?([^\s]+)")

CommandRunner = Callable[[Sequence[str]], str]


class AddressUnavailableError(Exception):
    """Raised when no usable IPv4 address could be discovered."""


def extract_ipv4(output: str) -> str | None:
    """Return the first non-loopback, non-link-local IPv4 token in command output."""
    if not output:
        return None

    for match in _INET_TOKEN.finditer(output):
        token = match.group(1).strip(" \t,;")
        token = token.split("/", 1)[0]
        try:
            address = ipaddress.IPv4Address(token)
        except ValueError:
            continue
        if address.is_loopback or address.is_link_local or address.is_unspecified:
            continue
        return str(address)
    return None


def run_command(command: Sequence[str]) -> str:
    completed = subprocess.run(
        list(command),
        capture_output=True,
        text=True,
        errors="replace",
        timeout=ADDRESS_COMMAND_TIMEOUT_SECS,
        check=True,
    )
    return completed.stdout


class AddressResolver:
    def discover_ipv4(self) -> str:
        raise NotImplementedError


class StaticAddressResolver(AddressResolver):
    def __init__(self, address: str) -> None:
        self._address = address

    def discover_ipv4(self) -> str:
        return self._address


class CommandAddressResolver(AddressResolver):
    """Scrape network-configuration tools for an address, trying each command in turn."""

    def __init__(
        self,
        commands: Sequence[Sequence[str]] = ADDRESS_COMMANDS,
        *,
        runner: CommandRunner = run_command,
    ) -> None:
        if not commands:
            raise ValueError("commands cannot be empty")
        self._commands = [tuple(command) for command in commands]
        self._runner = runner

    def discover_ipv4(self) -> str:
        for command in self._commands:
            name = " ".join(command)
            try:
                output = self._runner(command)
            except (OSError, subprocess.SubprocessError, UnicodeError) as exc:
                logger.debug("Address command %r failed: %s", name, exc)
                continue

            address = extract_ipv4(output or "")
            if address is not None:
                logger.debug("Discovered IPv4 address %s via %r", address, name)
                return address
            logger.debug("Address command %r produced no usable IPv4 token", name)

        raise AddressUnavailableError("Could not discover a non-loopback IPv4 address")
