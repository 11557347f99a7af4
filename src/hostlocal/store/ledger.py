"""
Lease ledger for one network on this host.

Layout under the data directory:

    <data_dir>/<network>/lock       advisory lock file (flock)
    <data_dir>/<network>/leases.db  SQLite ledger

Opening a Store takes an exclusive ``flock`` on the lock file and holds it
until ``close()``. The lock belongs to the open file description, so the
kernel drops it when the process exits for any reason; a killed invocation can
never wedge later callers.
"""

from __future__ import annotations

import fcntl
import ipaddress
import os
import time
from contextlib import contextmanager

import peewee

from hostlocal.config import config
from hostlocal.errors import StoreError
from hostlocal.models.ranges import IPAddress
from hostlocal.store.models import MODELS, LastReserved, Lease
from hostlocal.utils.logger import get_logger

logger = get_logger(__name__)


def _acquire_lock(fd: int, lock_path: str, timeout: float | None) -> None:
    """Take an exclusive flock, polling until the timeout expires."""
    deadline = None if timeout is None else time.monotonic() + timeout
    waited = False

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            if waited:
                logger.debug(f"Acquired lock {lock_path} after waiting")
            return
        except BlockingIOError:
            if deadline is not None and time.monotonic() >= deadline:
                raise StoreError(
                    f"timed out waiting for lock {lock_path}",
                    details=f"timeout={timeout}s",
                )
            if not waited:
                logger.debug(f"Lock {lock_path} is held, waiting...")
                waited = True
            time.sleep(config.LOCK_POLL_INTERVAL_SECONDS)
        except OSError as e:
            raise StoreError(f"failed to lock {lock_path}: {e}")


class Store:
    """
    Persistent, lockable ledger of leases for one network.

    Use ``Store.open`` (ideally as a context manager) rather than the
    constructor.
    """

    def __init__(self, name: str, network_dir: str, db: peewee.Database, lock_fd: int):
        self.name = name
        self.network_dir = network_dir
        self._db = db
        self._lock_fd: int | None = lock_fd

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @classmethod
    def open(
        cls,
        name: str,
        data_dir: str,
        timeout: float | None = None,
    ) -> Store:
        """
        Open (creating if needed) and lock the ledger of a network.

        Args:
            name: Network name.
            data_dir: Root directory of the ledgers.
            timeout: Seconds to wait for the lock (defaults to
                config.LOCK_TIMEOUT_SECONDS).

        Raises:
            StoreError: If the directory, lock or database cannot be opened.
        """
        if timeout is None:
            timeout = config.LOCK_TIMEOUT_SECONDS

        network_dir = os.path.join(data_dir, name)
        lock_path = os.path.join(network_dir, config.LOCK_FILE_NAME)
        db_path = os.path.join(network_dir, config.DB_FILE_NAME)

        try:
            os.makedirs(network_dir, mode=0o755, exist_ok=True)
            lock_fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise StoreError(f"failed to open store {network_dir}: {e}")

        try:
            _acquire_lock(lock_fd, lock_path, timeout)
        except StoreError:
            os.close(lock_fd)
            raise

        db = peewee.SqliteDatabase(db_path)
        try:
            db.connect()
            with db.bind_ctx(MODELS):
                db.create_tables(MODELS, safe=True)
        except peewee.PeeweeException as e:
            if not db.is_closed():
                db.close()
            fcntl.flock(lock_fd, fcntl.LOCK_UN)
            os.close(lock_fd)
            raise StoreError(f"failed to open lease database {db_path}: {e}")

        logger.debug(f"Opened store {network_dir}")
        return cls(name, network_dir, db, lock_fd)

    def close(self) -> None:
        """Close the database and release the lock. Safe to call repeatedly."""
        if self._lock_fd is None:
            return

        try:
            if not self._db.is_closed():
                self._db.close()
        finally:
            fd, self._lock_fd = self._lock_fd, None
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)
            logger.debug(f"Closed store {self.network_dir}")

    @property
    def closed(self) -> bool:
        return self._lock_fd is None

    def __enter__(self) -> Store:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _bound(self):
        if self.closed:
            raise StoreError(f"store {self.network_dir} is closed")
        try:
            with self._db.bind_ctx(MODELS):
                yield
        except peewee.PeeweeException as e:
            raise StoreError(f"lease database error in {self.network_dir}: {e}")

    # =========================================================================
    # Lease Operations
    # =========================================================================

    def reserve(
        self, container_id: str, ifname: str, ip: IPAddress, range_index: int
    ) -> bool:
        """
        Record a lease for an address.

        Returns:
            True if reserved, False if the address is already leased.

        Raises:
            StoreError: If the identity already holds a lease in this range set.
        """
        address = str(ip)
        with self._bound():
            try:
                with self._db.atomic():
                    taken = (
                        Lease.select()
                        .where((Lease.network == self.name) & (Lease.address == address))
                        .exists()
                    )
                    if taken:
                        return False

                    Lease.create(
                        network=self.name,
                        range_index=range_index,
                        address=address,
                        container_id=container_id,
                        ifname=ifname,
                    )
                    LastReserved.replace(
                        network=self.name, range_index=range_index, address=address
                    ).execute()
            except peewee.IntegrityError as e:
                raise StoreError(
                    f"{container_id}/{ifname} already holds a lease in range {range_index}",
                    details=str(e),
                )

        logger.debug(
            f"Reserved {address} in range {range_index} for {container_id}/{ifname}"
        )
        return True

    def last_reserved_ip(self, range_index: int) -> IPAddress | None:
        """Get the most recently reserved address of a range set."""
        with self._bound():
            row = LastReserved.get_or_none(
                (LastReserved.network == self.name)
                & (LastReserved.range_index == range_index)
            )
        return ipaddress.ip_address(row.address) if row else None

    def release_by_id(
        self, container_id: str, ifname: str, range_index: int | None = None
    ) -> int:
        """
        Delete the leases of a container interface.

        Args:
            range_index: Restrict the release to one range set (None for all).

        Returns:
            Number of leases removed (0 is not an error).
        """
        with self._bound():
            query = Lease.delete().where(
                (Lease.network == self.name)
                & (Lease.container_id == container_id)
                & (Lease.ifname == ifname)
            )
            if range_index is not None:
                query = query.where(Lease.range_index == range_index)
            with self._db.atomic():
                removed = query.execute()

        if removed:
            logger.debug(
                f"Released {removed} lease(s) of {container_id}/{ifname}"
                + (f" in range {range_index}" if range_index is not None else "")
            )
        return removed

    def get_by_id(self, container_id: str, ifname: str) -> list[IPAddress]:
        """Get every address leased to a container interface."""
        with self._bound():
            rows = list(
                Lease.select(Lease.address)
                .where(
                    (Lease.network == self.name)
                    & (Lease.container_id == container_id)
                    & (Lease.ifname == ifname)
                )
                .order_by(Lease.range_index)
            )
        return [ipaddress.ip_address(row.address) for row in rows]

    def find_by_id(self, container_id: str, ifname: str) -> bool:
        """Check whether a container interface holds at least one lease."""
        with self._bound():
            return (
                Lease.select()
                .where(
                    (Lease.network == self.name)
                    & (Lease.container_id == container_id)
                    & (Lease.ifname == ifname)
                )
                .exists()
            )

    def leases(self) -> list[Lease]:
        """List every lease of the network, ordered by range set and address."""
        with self._bound():
            rows = list(
                Lease.select()
                .where(Lease.network == self.name)
                .order_by(Lease.range_index, Lease.created_at)
            )
        return rows
