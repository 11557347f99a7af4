"""
Allocation result models and versioned rendering.

The handlers accumulate a Result (addresses, routes, DNS) while allocating.
Once allocation is complete, ``render_result`` converts it into the JSON shape
of the CNI version the runtime asked for.

Result shapes by version:
    - 1.0.0:        ips[] of {address, gateway}
    - 0.3.x/0.4.0:  ips[] of {version, address, gateway}
    - 0.1.0/0.2.0:  ip4/ip6 objects of {ip, gateway, routes}
                    (first address per family; routes of a family without an
                    address are dropped)
"""

from __future__ import annotations

import ipaddress
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from hostlocal.errors import VersionError
from hostlocal.models.enums import IPVersion

IPInterface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


# =============================================================================
# Versions
# =============================================================================

SUPPORTED_VERSIONS = ["0.1.0", "0.2.0", "0.3.0", "0.3.1", "0.4.0", "1.0.0"]
LATEST_VERSION = SUPPORTED_VERSIONS[-1]
LEGACY_VERSIONS = {"0.1.0", "0.2.0"}
TAGGED_VERSIONS = {"0.3.0", "0.3.1", "0.4.0"}


def parse_version(version: str) -> tuple[int, int, int]:
    """
    Parse a semantic version string into a comparable tuple.

    Raises:
        VersionError: If the string is not MAJOR.MINOR.PATCH.
    """
    parts = version.split(".")
    if len(parts) != 3:
        raise VersionError(f"invalid version {version!r}: expected MAJOR.MINOR.PATCH")
    try:
        major, minor, patch = (int(p) for p in parts)
    except ValueError:
        raise VersionError(f"invalid version {version!r}: components must be integers")
    return major, minor, patch


def version_at_least(version: str, minimum: str) -> bool:
    """Check ``version >= minimum``."""
    return parse_version(version) >= parse_version(minimum)


# =============================================================================
# Result Models
# =============================================================================


class IPConfig(BaseModel):
    """One allocated address with its prefix length and gateway."""

    model_config = ConfigDict(frozen=True)

    address: IPInterface
    gateway: IPAddress | None = None

    @property
    def version(self) -> IPVersion:
        return IPVersion.V4 if self.address.version == 4 else IPVersion.V6


class Route(BaseModel):
    """A static route handed to the container."""

    model_config = ConfigDict(frozen=True)

    dst: IPNetwork
    gw: IPAddress | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"dst": str(self.dst)}
        if self.gw is not None:
            data["gw"] = str(self.gw)
        return data


class DNS(BaseModel):
    """DNS settings, usually parsed from a resolv.conf file."""

    nameservers: list[str] = Field(default_factory=list)
    domain: str = ""
    search: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.nameservers or self.domain or self.search or self.options)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.nameservers:
            data["nameservers"] = list(self.nameservers)
        if self.domain:
            data["domain"] = self.domain
        if self.search:
            data["search"] = list(self.search)
        if self.options:
            data["options"] = list(self.options)
        return data


class Result(BaseModel):
    """Everything ADD hands back to the runtime."""

    ips: list[IPConfig] = Field(default_factory=list)
    routes: list[Route] = Field(default_factory=list)
    dns: DNS = Field(default_factory=DNS)


# =============================================================================
# Rendering
# =============================================================================


def _render_current(result: Result, cni_version: str, tagged: bool) -> dict[str, Any]:
    ips = []
    for ip in result.ips:
        entry: dict[str, str] = {}
        if tagged:
            entry["version"] = ip.version.value
        entry["address"] = str(ip.address)
        if ip.gateway is not None:
            entry["gateway"] = str(ip.gateway)
        ips.append(entry)

    data: dict[str, Any] = {"cniVersion": cni_version}
    if ips:
        data["ips"] = ips
    if result.routes:
        data["routes"] = [route.to_dict() for route in result.routes]
    if not result.dns.is_empty():
        data["dns"] = result.dns.to_dict()
    return data


def _render_legacy(result: Result, cni_version: str) -> dict[str, Any]:
    # Only the first address of each family fits; routes without an address
    # of their family are dropped.
    families: dict[int, dict[str, Any]] = {}
    for ip in result.ips:
        family = ip.address.version
        if family in families:
            continue
        entry: dict[str, Any] = {"ip": str(ip.address)}
        if ip.gateway is not None:
            entry["gateway"] = str(ip.gateway)
        families[family] = entry

    for route in result.routes:
        section = families.get(route.dst.version)
        if section is None:
            continue
        section.setdefault("routes", []).append(route.to_dict())

    data: dict[str, Any] = {"cniVersion": cni_version}
    if 4 in families:
        data["ip4"] = families[4]
    if 6 in families:
        data["ip6"] = families[6]
    if not result.dns.is_empty():
        data["dns"] = result.dns.to_dict()
    return data


def render_result(result: Result, cni_version: str) -> dict[str, Any]:
    """
    Convert a Result into the wire representation of a CNI version.

    Raises:
        VersionError: If the version is unsupported.
    """
    if cni_version not in SUPPORTED_VERSIONS:
        raise VersionError(
            f"unsupported CNI result version {cni_version!r}",
            details=f"supported versions: {', '.join(SUPPORTED_VERSIONS)}",
        )
    if cni_version in LEGACY_VERSIONS:
        return _render_legacy(result, cni_version)
    return _render_current(result, cni_version, tagged=cni_version in TAGGED_VERSIONS)
