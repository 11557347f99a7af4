"""
Address ranges for host-local allocation.

A Range is a subnet optionally narrowed to a [range_start, range_end]
interval, plus the gateway address that is never handed out. A RangeSet is an
ordered, non-overlapping group of Ranges of one address family that is
allocated from as a single unit: each container interface receives at most
one address per RangeSet.

Defaults applied by canonicalization (e.g. for 10.0.0.0/24):
    - gateway:     10.0.0.1 (first address after the network address)
    - range_start: 10.0.0.1 (the gateway is skipped at allocation time)
    - range_end:   10.0.0.254 (broadcast minus one; IPv6 uses the last address)
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Union

from hostlocal.errors import ConfigError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_ip(value: str) -> IPAddress:
    """
    Parse a plain address, tolerating (and dropping) a CIDR suffix.

    Raises:
        ValueError: If the value is not an IPv4 or IPv6 address.
    """
    value = value.strip()
    if "/" in value:
        return ipaddress.ip_interface(value).ip
    return ipaddress.ip_address(value)


@dataclass(frozen=True)
class Range:
    """
    One allocatable interval inside a subnet.

    Attributes:
        subnet: Network the addresses belong to.
        range_start: First allocatable address (inclusive).
        range_end: Last allocatable address (inclusive).
        gateway: Gateway address, skipped during allocation.
    """

    subnet: IPNetwork
    range_start: IPAddress
    range_end: IPAddress
    gateway: IPAddress | None = None

    @classmethod
    def canonicalize(
        cls,
        subnet: str,
        range_start: str | None = None,
        range_end: str | None = None,
        gateway: str | None = None,
    ) -> Range:
        """
        Validate a range definition and fill in its defaults.

        Raises:
            ConfigError: If the subnet is malformed, too small, has host bits
                set, or a bound lies outside the subnet.
        """
        try:
            network = ipaddress.ip_network(subnet, strict=False)
        except ValueError as e:
            raise ConfigError(f"invalid subnet {subnet!r}: {e}")

        if network.prefixlen > network.max_prefixlen - 2:
            raise ConfigError(f"Network {network} too small to allocate from")

        given_ip = ipaddress.ip_interface(subnet).ip
        if given_ip != network.network_address:
            raise ConfigError(
                f"network has host bits set. For a subnet mask of length "
                f"{network.prefixlen} the network address is {network.network_address}"
            )

        def _bound(value: str | None, label: str) -> IPAddress | None:
            if value is None or value == "":
                return None
            try:
                addr = parse_ip(value)
            except ValueError as e:
                raise ConfigError(f"invalid {label} {value!r}: {e}")
            if addr.version != network.version or addr not in network:
                raise ConfigError(f"{label} {addr} not in network {network}")
            return addr

        gw = _bound(gateway, "Gateway")
        start = _bound(range_start, "RangeStart")
        end = _bound(range_end, "RangeEnd")

        if gw is None:
            gw = network.network_address + 1
        if start is None:
            start = network.network_address + 1
        if end is None:
            end = network.broadcast_address
            if network.version == 4:
                end -= 1

        if start > end:
            raise ConfigError(f"RangeStart {start} is after RangeEnd {end}")

        return cls(subnet=network, range_start=start, range_end=end, gateway=gw)

    @property
    def version(self) -> int:
        return self.subnet.version

    def contains(self, addr: IPAddress) -> bool:
        """Check whether an address lies inside this range's bounds."""
        if addr.version != self.subnet.version or addr not in self.subnet:
            return False
        return self.range_start <= addr <= self.range_end

    def overlaps(self, other: Range) -> bool:
        """Check whether two ranges share at least one address."""
        if self.version != other.version:
            return False
        return (
            self.contains(other.range_start)
            or self.contains(other.range_end)
            or other.contains(self.range_start)
            or other.contains(self.range_end)
        )

    def __str__(self) -> str:
        return f"{self.range_start}-{self.range_end}"


@dataclass(frozen=True)
class RangeSet:
    """An ordered group of ranges allocated from as one unit."""

    ranges: tuple[Range, ...]

    @classmethod
    def from_ranges(cls, ranges: list[Range]) -> RangeSet:
        """
        Build a range set, enforcing its structural invariants.

        Raises:
            ConfigError: If the set is empty, mixes address families, or
                contains overlapping ranges.
        """
        if not ranges:
            raise ConfigError("empty range set")

        family = ranges[0].version
        for r in ranges[1:]:
            if r.version != family:
                raise ConfigError("mixed address families")

        for i, r1 in enumerate(ranges):
            for r2 in ranges[i + 1 :]:
                if r1.overlaps(r2):
                    raise ConfigError(f"subnets {r1.subnet} and {r2.subnet} overlap")

        return cls(ranges=tuple(ranges))

    @property
    def version(self) -> int:
        return self.ranges[0].version

    def range_for(self, addr: IPAddress) -> Range | None:
        """Return the range containing the address, or None."""
        for r in self.ranges:
            if r.contains(addr):
                return r
        return None

    def contains(self, addr: IPAddress) -> bool:
        return self.range_for(addr) is not None

    def overlaps(self, other: RangeSet) -> bool:
        """Check whether any range of this set overlaps any range of the other."""
        return any(r1.overlaps(r2) for r1 in self.ranges for r2 in other.ranges)

    def __iter__(self):
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.ranges)
