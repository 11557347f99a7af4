"""
Single range set allocator.

A RangeAllocator hands out (and takes back) at most one address per container
interface inside one range set, persisting leases in the Store. Free-choice
allocation is round-robin: it continues after the last address reserved in
the range set and wraps around, so recently released addresses are reused as
late as possible.
"""

from __future__ import annotations

from collections.abc import Iterator

from hostlocal.errors import AllocationError
from hostlocal.models.ranges import IPAddress, Range, RangeSet
from hostlocal.models.result import IPConfig
from hostlocal.store import Store
from hostlocal.utils.logger import get_logger

logger = get_logger(__name__)


class RangeAllocator:
    """Allocates addresses from one range set of a network."""

    def __init__(self, range_set: RangeSet, store: Store, range_index: int):
        self.range_set = range_set
        self.store = store
        self.range_index = range_index

    def get(
        self,
        container_id: str,
        ifname: str,
        requested_ip: IPAddress | None = None,
    ) -> IPConfig:
        """
        Lease an address to a container interface.

        Args:
            container_id: Container identity.
            ifname: Interface name inside the container.
            requested_ip: Pin the allocation to this address.

        Returns:
            IPConfig with the address (range prefix length) and gateway.

        Raises:
            AllocationError: If the pinned address is unusable, the identity
                already holds an address here, or the range set is exhausted.
        """
        self._check_duplicate(container_id, ifname)

        if requested_ip is not None:
            return self._get_pinned(container_id, ifname, requested_ip)

        for addr, r in self._iter_candidates():
            if self.store.reserve(container_id, ifname, addr, self.range_index):
                logger.info(
                    f"Allocated {addr} in range {self.range_index} "
                    f"for {container_id}/{ifname}"
                )
                return self._ip_config(addr, r)

        raise AllocationError(
            f"no IP addresses available in range set: {self.range_set}"
        )

    def release(self, container_id: str, ifname: str) -> None:
        """Release this range set's lease of a container interface, if any."""
        removed = self.store.release_by_id(container_id, ifname, self.range_index)
        if removed:
            logger.info(
                f"Released range {self.range_index} lease of {container_id}/{ifname}"
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_duplicate(self, container_id: str, ifname: str) -> None:
        for allocated in self.store.get_by_id(container_id, ifname):
            if self.range_set.contains(allocated):
                raise AllocationError(
                    f"{allocated} has been allocated to {container_id}, "
                    f"duplicate allocation is not allowed"
                )

    def _get_pinned(
        self, container_id: str, ifname: str, requested_ip: IPAddress
    ) -> IPConfig:
        r = self.range_set.range_for(requested_ip)
        if r is None:
            raise AllocationError(
                f"{requested_ip} not in range set {self.range_set}"
            )
        if requested_ip == r.gateway:
            raise AllocationError(f"requested ip {requested_ip} is subnet's gateway")

        if not self.store.reserve(container_id, ifname, requested_ip, self.range_index):
            raise AllocationError(
                f"requested IP address {requested_ip} is not available "
                f"in range set {self.range_set}"
            )

        logger.info(
            f"Allocated requested {requested_ip} in range {self.range_index} "
            f"for {container_id}/{ifname}"
        )
        return self._ip_config(requested_ip, r)

    def _iter_candidates(self) -> Iterator[tuple[IPAddress, Range]]:
        """
        Walk every address of the range set exactly once, skipping gateways.

        Starts right after the last reserved address when it still belongs to
        the range set, otherwise at the start of the first range.
        """
        ranges = self.range_set.ranges
        last = self.store.last_reserved_ip(self.range_index)

        if last is not None and self.range_set.contains(last):
            idx = next(i for i, r in enumerate(ranges) if r.contains(last))
            idx, addr = self._advance(idx, last)
        else:
            idx, addr = 0, ranges[0].range_start

        start = addr
        while True:
            r = ranges[idx]
            if addr != r.gateway:
                yield addr, r
            idx, addr = self._advance(idx, addr)
            if addr == start:
                return

    def _advance(self, idx: int, addr: IPAddress) -> tuple[int, IPAddress]:
        ranges = self.range_set.ranges
        if addr >= ranges[idx].range_end:
            idx = (idx + 1) % len(ranges)
            return idx, ranges[idx].range_start
        return idx, addr + 1

    @staticmethod
    def _ip_config(addr: IPAddress, r: Range) -> IPConfig:
        return IPConfig(
            address=f"{addr}/{r.subnet.prefixlen}",
            gateway=r.gateway,
        )
