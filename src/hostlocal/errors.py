"""
Exception classes for host-local IPAM.

Every error maps to a CNI error code so the plugin entry point can report it
as a structured error object. Codes follow the CNI specification:

    1    incompatible CNI version
    4    invalid necessary environment variables
    5    I/O failure
    7    invalid network config
    11   try again later
    999  generic / plugin specific
"""

from __future__ import annotations

from typing import Any

# CNI well-known error codes
ERR_INCOMPATIBLE_VERSION = 1
ERR_INVALID_ENV = 4
ERR_IO_FAILURE = 5
ERR_INVALID_NETWORK_CONFIG = 7
ERR_TRY_AGAIN_LATER = 11
ERR_INTERNAL = 999


class IPAMError(Exception):
    """Base exception for all plugin failures."""

    code: int = ERR_INTERNAL

    def __init__(self, msg: str, details: str = ""):
        self.msg = msg
        self.details = details
        super().__init__(msg)

    def to_dict(self, cni_version: str) -> dict[str, Any]:
        """Build the CNI error object printed on stdout."""
        data: dict[str, Any] = {
            "cniVersion": cni_version,
            "code": self.code,
            "msg": self.msg,
        }
        if self.details:
            data["details"] = self.details
        return data


class VersionError(IPAMError):
    """Unsupported or incompatible CNI version."""

    code = ERR_INCOMPATIBLE_VERSION


class EnvError(IPAMError):
    """Missing or invalid CNI_* environment variables."""

    code = ERR_INVALID_ENV


class ConfigError(IPAMError):
    """Malformed network configuration."""

    code = ERR_INVALID_NETWORK_CONFIG


class ResolvConfError(IPAMError):
    """resolv.conf could not be read."""

    code = ERR_IO_FAILURE

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"failed to read resolv.conf {path}: {reason}")


class StoreError(IPAMError):
    """The lease store could not be locked or opened."""

    code = ERR_TRY_AGAIN_LATER


class AllocationError(IPAMError):
    """A single range set could not hand out (or take back) an address."""

    pass


class RangeAllocationError(IPAMError):
    """ADD failed while allocating from one range set."""

    def __init__(
        self,
        range_index: int,
        cause: Exception,
        rollback_errors: list[Exception] | None = None,
    ):
        self.range_index = range_index
        self.cause = cause
        self.rollback_errors = list(rollback_errors or [])
        super().__init__(f"failed to allocate for range {range_index}: {cause}")


class UnsatisfiableRequestError(IPAMError):
    """One or more requested addresses fall inside no configured range set."""

    def __init__(
        self,
        addresses: list[str],
        rollback_errors: list[Exception] | None = None,
    ):
        self.addresses = list(addresses)
        self.rollback_errors = list(rollback_errors or [])
        super().__init__(
            "failed to allocate all requested IPs: " + " ".join(self.addresses)
        )


class ReleaseError(IPAMError):
    """DEL could not release the leases of one or more range sets."""

    def __init__(self, errors: list[Exception]):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


class NotFoundError(IPAMError):
    """CHECK found no lease for the container interface."""

    def __init__(self, container_id: str, ifname: str):
        self.container_id = container_id
        self.ifname = ifname
        super().__init__(
            f"host-local: Failed to find address added by container {container_id}"
        )
