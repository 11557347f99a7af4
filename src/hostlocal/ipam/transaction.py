"""
Multi-range allocation transaction.

ADD allocates from each range set in turn. Every allocator that succeeded is
committed to the transaction; if a later step fails, ``rollback`` releases
all of them. Release failures are recorded in ``rollback_errors`` (and logged)
so the caller can attach them to the primary error without replacing it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hostlocal.ipam.allocator import RangeAllocator
from hostlocal.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AllocationTransaction:
    """Tracks committed range allocations of one container interface."""

    container_id: str
    ifname: str
    attempted: list[int] = field(default_factory=list)
    committed: list[RangeAllocator] = field(default_factory=list)
    rollback_errors: list[Exception] = field(default_factory=list)
    rolled_back: bool = False

    def attempt(self, range_index: int) -> None:
        """Record that allocation from a range set is being tried."""
        self.attempted.append(range_index)

    def commit(self, allocator: RangeAllocator) -> None:
        """Record a successful allocation that must be undone on failure."""
        self.committed.append(allocator)

    def rollback(self) -> list[Exception]:
        """
        Release every committed allocation.

        Never raises; each release failure is appended to ``rollback_errors``.

        Returns:
            The release failures of this rollback.
        """
        if self.rolled_back:
            return self.rollback_errors

        self.rolled_back = True
        for allocator in self.committed:
            try:
                allocator.release(self.container_id, self.ifname)
            except Exception as e:
                logger.warning(
                    f"Rollback of range {allocator.range_index} for "
                    f"{self.container_id}/{self.ifname} failed: {e}"
                )
                self.rollback_errors.append(e)

        committed = [allocator.range_index for allocator in self.committed]
        logger.info(
            f"Rolled back {self.container_id}/{self.ifname}: attempted ranges "
            f"{self.attempted}, committed {committed} "
            f"({len(self.rollback_errors)} release error(s))"
        )
        return self.rollback_errors
