"""
Error taxonomy — every failure the installer knows how to report.

Errors are raised by components and caught at the dependency or phase
boundary (the pipeline and the bootstrap use case), never deeper.
"""

from __future__ import annotations


class InstallerError(Exception):
    """Base class for all installer failures."""


class ConfigError(InstallerError):
    """Raised when the installer configuration is invalid or unreadable."""


class PrivilegeError(InstallerError):
    """Not running with the elevation needed to mutate the host."""


class UnsupportedPlatform(InstallerError):
    """Wrong operating system or CPU architecture."""


class UnsupportedArchitecture(UnsupportedPlatform):
    """The host CPU has no artifact in the release channel."""

    def __init__(self, machine: str):
        super().__init__(f"Unsupported architecture: {machine}")
        self.machine = machine


class ParseError(InstallerError, ValueError):
    """A version string has a non-numeric component."""


class ReleaseLookupError(InstallerError):
    """Release metadata could not be obtained."""


class NetworkError(ReleaseLookupError):
    """Transport failure or timeout talking to a remote endpoint."""


class NotFound(ReleaseLookupError):
    """The upstream reports no published release."""


class MalformedResponse(ReleaseLookupError):
    """The release metadata lacks required fields."""


class NoMatchingAsset(InstallerError):
    """No release asset matched any of the candidate names."""

    def __init__(self, patterns: list[str], available: list[str]):
        listing = ", ".join(available) if available else "(none)"
        super().__init__(
            f"No asset matching {patterns} — available assets: {listing}"
        )
        self.patterns = patterns
        self.available = available


class InstallFailure(InstallerError):
    """An install strategy did not complete."""


class ServiceStartFailure(InstallerError):
    """The supervised service did not reach a running state in time."""

    def __init__(self, service: str, log_tail: list[str]):
        super().__init__(f"Service '{service}' failed to start")
        self.service = service
        self.log_tail = log_tail
