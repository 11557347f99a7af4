"""
Network configuration loading.

Turns the CNI network configuration read from stdin, plus the CNI_ARGS
environment string, into an immutable IPAMConfig.

Accepted input (only the fields used by host-local are shown):

    {
      "cniVersion": "1.0.0",
      "name": "mynet",
      "ipam": {
        "type": "host-local",
        "ranges": [[{"subnet": "10.0.0.0/24", "gateway": "10.0.0.1"}]],
        "routes": [{"dst": "0.0.0.0/0"}],
        "dataDir": "/var/lib/cni/networks",
        "resolvConf": "/etc/resolv.conf"
      },
      "args": {"cni": {"ips": ["10.0.0.5"]}},
      "runtimeConfig": {"ips": ["10.0.0.5/24"]}
    }

The legacy single-range form (``ipam.subnet`` / ``rangeStart`` / ``rangeEnd``
/ ``gateway``) is accepted and becomes the first range set.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hostlocal.config import config
from hostlocal.errors import ConfigError
from hostlocal.models.ranges import IPAddress, Range, RangeSet, parse_ip
from hostlocal.models.result import Route, version_at_least

DEFAULT_CNI_VERSION = "0.1.0"

# Keys understood in CNI_ARGS
KNOWN_ENV_ARGS = {"IP", "IgnoreUnknown"}


# =============================================================================
# Raw Input Schema
# =============================================================================


class RawRange(BaseModel):
    """A range as written in the network configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subnet: str
    range_start: str | None = Field(default=None, alias="rangeStart")
    range_end: str | None = Field(default=None, alias="rangeEnd")
    gateway: str | None = None


class RawRoute(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dst: str
    gw: str | None = None


class RawIPAM(BaseModel):
    """The ``ipam`` section of the network configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = ""
    ranges: list[list[RawRange]] = Field(default_factory=list)
    routes: list[RawRoute] = Field(default_factory=list)
    data_dir: str = Field(default="", alias="dataDir")
    resolv_conf: str = Field(default="", alias="resolvConf")

    # Legacy single-range form
    subnet: str | None = None
    range_start: str | None = Field(default=None, alias="rangeStart")
    range_end: str | None = Field(default=None, alias="rangeEnd")
    gateway: str | None = None


class RawCNIArgs(BaseModel):
    """The ``args.cni`` section: conventions shared by CNI plugins."""

    model_config = ConfigDict(extra="ignore")

    ips: list[str] = Field(default_factory=list)


class RawArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cni: RawCNIArgs | None = None


class RawRuntimeConfig(BaseModel):
    """Capabilities passed by the runtime (only ``ips`` is used)."""

    model_config = ConfigDict(extra="ignore")

    ips: list[str] = Field(default_factory=list)


class RawNetConf(BaseModel):
    """Top-level network configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cni_version: str = Field(default="", alias="cniVersion")
    name: str = ""
    ipam: RawIPAM | None = None
    args: RawArgs | None = None
    runtime_config: RawRuntimeConfig | None = Field(default=None, alias="runtimeConfig")


# =============================================================================
# Loaded Configuration
# =============================================================================


@dataclass(frozen=True)
class IPAMConfig:
    """
    Network configuration for one plugin invocation.

    Attributes:
        name: Network name; scopes the lease ledger.
        data_dir: Root directory of the lease ledgers.
        ranges: Range sets in declared order (index is significant).
        requested_ips: Addresses the caller insists on, deduplicated, in order.
        resolv_conf: Optional resolv.conf path to report DNS settings from.
        routes: Static routes copied into the result.
        cni_version: Version the result must be rendered in.
    """

    name: str
    data_dir: str
    ranges: tuple[RangeSet, ...]
    requested_ips: tuple[IPAddress, ...] = ()
    resolv_conf: str = ""
    routes: tuple[Route, ...] = field(default_factory=tuple)
    cni_version: str = DEFAULT_CNI_VERSION


# =============================================================================
# Loader
# =============================================================================


def parse_env_args(env_args: str) -> dict[str, str]:
    """
    Parse a CNI_ARGS string of the form ``K1=V1;K2=V2``.

    Raises:
        ConfigError: On a malformed pair, or an unknown key when
            ``IgnoreUnknown`` is not set.
    """
    pairs: dict[str, str] = {}
    if not env_args:
        return pairs

    for item in env_args.split(";"):
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep:
            raise ConfigError(f"ARGS: invalid pair {item!r}")
        pairs[key.strip()] = value.strip()

    ignore_unknown = pairs.get("IgnoreUnknown", "").lower() in ("1", "true")
    if not ignore_unknown:
        unknown = sorted(set(pairs) - KNOWN_ENV_ARGS)
        if unknown:
            raise ConfigError(f"ARGS: unknown args {unknown}")

    return pairs


def _collect_requested_ips(raw: RawNetConf, env: dict[str, str]) -> list[IPAddress]:
    candidates: list[str] = []

    if env.get("IP"):
        candidates.extend(item for item in env["IP"].split(",") if item.strip())

    if raw.args and raw.args.cni:
        candidates.extend(raw.args.cni.ips)
    if raw.runtime_config:
        candidates.extend(raw.runtime_config.ips)

    requested: list[IPAddress] = []
    for candidate in candidates:
        try:
            addr = parse_ip(str(candidate))
        except ValueError as e:
            raise ConfigError(f"cannot understand ip: {e}")
        if addr not in requested:
            requested.append(addr)
    return requested


def _build_range_sets(ipam: RawIPAM) -> list[RangeSet]:
    raw_sets = list(ipam.ranges)
    if ipam.subnet:
        legacy = RawRange(
            subnet=ipam.subnet,
            range_start=ipam.range_start,
            range_end=ipam.range_end,
            gateway=ipam.gateway,
        )
        raw_sets.insert(0, [legacy])

    if not raw_sets:
        raise ConfigError("no IP ranges specified")

    range_sets = []
    for idx, raw_set in enumerate(raw_sets):
        try:
            ranges = [
                Range.canonicalize(r.subnet, r.range_start, r.range_end, r.gateway)
                for r in raw_set
            ]
            range_sets.append(RangeSet.from_ranges(ranges))
        except ConfigError as e:
            raise ConfigError(f"invalid range set {idx}: {e.msg}")

    for i, first in enumerate(range_sets):
        for j in range(i + 1, len(range_sets)):
            if first.overlaps(range_sets[j]):
                raise ConfigError(f"range set {i} overlaps with {j}")

    return range_sets


def _build_routes(ipam: RawIPAM) -> list[Route]:
    routes = []
    for raw in ipam.routes:
        try:
            routes.append(Route(dst=raw.dst, gw=raw.gw or None))
        except ValidationError as e:
            raise ConfigError(f"invalid route {raw.dst!r}: {e.errors()[0]['msg']}")
    return routes


def load_ipam_config(stdin_data: bytes | str, env_args: str = "") -> tuple[IPAMConfig, str]:
    """
    Load the IPAM configuration for one invocation.

    Args:
        stdin_data: Raw network configuration JSON.
        env_args: The CNI_ARGS string.

    Returns:
        Tuple of (IPAMConfig, cni_version).

    Raises:
        ConfigError: If the configuration is malformed or inconsistent.
    """
    try:
        data = json.loads(stdin_data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"failed to load netconf: {e}")
    if not isinstance(data, dict):
        raise ConfigError("failed to load netconf: expected a JSON object")

    try:
        raw = RawNetConf.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"failed to load netconf: {e}")

    if raw.ipam is None:
        raise ConfigError("IPAM config missing 'ipam' key")
    if not raw.name:
        raise ConfigError("network name is required")
    if "/" in raw.name or raw.name in (".", ".."):
        raise ConfigError(f"invalid network name {raw.name!r}")

    cni_version = raw.cni_version or DEFAULT_CNI_VERSION
    env = parse_env_args(env_args)
    requested = _collect_requested_ips(raw, env)
    range_sets = _build_range_sets(raw.ipam)

    num_v4 = sum(1 for rs in range_sets if rs.version == 4)
    num_v6 = len(range_sets) - num_v4
    if (num_v4 > 1 or num_v6 > 1) and not version_at_least(cni_version, "0.3.0"):
        raise ConfigError(
            f"CNI version {cni_version} does not support more than 1 address per family"
        )

    ipam_config = IPAMConfig(
        name=raw.name,
        data_dir=raw.ipam.data_dir or config.DEFAULT_DATA_DIR,
        ranges=tuple(range_sets),
        requested_ips=tuple(requested),
        resolv_conf=raw.ipam.resolv_conf,
        routes=tuple(_build_routes(raw.ipam)),
        cni_version=cni_version,
    )
    return ipam_config, cni_version
