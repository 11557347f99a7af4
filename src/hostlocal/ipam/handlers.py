"""
ADD, DEL and CHECK command handlers.

ADD is all-or-nothing: leases are taken range set by range set (in declared
order) and, if any range set fails, a requested address cannot be placed, or
the result cannot be rendered, every lease taken so far is released again.

DEL walks every range set and releases the interface's lease in each one,
even when some releases fail; the failures are reported together at the end.

CHECK only asks whether the interface holds at least one lease.

Each handler opens the network's Store as a context manager, so the ledger
lock is released on every exit path.
"""

from __future__ import annotations

from typing import Any

from hostlocal.dns import parse_resolv_conf
from hostlocal.errors import (
    NotFoundError,
    RangeAllocationError,
    ReleaseError,
    UnsatisfiableRequestError,
    VersionError,
)
from hostlocal.ipam.allocator import RangeAllocator
from hostlocal.ipam.transaction import AllocationTransaction
from hostlocal.models.args import CmdArgs
from hostlocal.models.config import load_ipam_config
from hostlocal.models.ranges import IPAddress, RangeSet
from hostlocal.models.result import Result, render_result
from hostlocal.store import Store
from hostlocal.utils.logger import get_logger

logger = get_logger(__name__)


def take_requested_ip(range_set: RangeSet, remaining: list[IPAddress]) -> IPAddress | None:
    """
    Pick the requested address to pin on a range set, removing it from
    ``remaining``.

    When several requested addresses fall in the same range set the
    numerically smallest one wins; the others stay in ``remaining``.
    """
    candidates = [ip for ip in remaining if range_set.contains(ip)]
    if not candidates:
        return None
    chosen = min(candidates)
    remaining.remove(chosen)
    return chosen


# =============================================================================
# ADD
# =============================================================================


def cmd_add(args: CmdArgs, log=None) -> dict[str, Any]:
    """
    Allocate one address per range set to a container interface.

    Args:
        args: Invocation arguments.
        log: Invocation-scoped logger (module logger when omitted).

    Returns:
        The result rendered in the configuration's CNI version.

    Raises:
        ConfigError: Malformed configuration (nothing allocated).
        ResolvConfError: resolv.conf unreadable (nothing allocated).
        StoreError: Ledger could not be opened (nothing allocated).
        RangeAllocationError: A range set failed; all leases rolled back.
        UnsatisfiableRequestError: A requested address matched no range set;
            all leases rolled back.
        VersionError: The result cannot be rendered; all leases rolled back.
    """
    log = log or logger
    log.debug(
        f"ADD container={args.container_id} netns={args.netns} "
        f"ifname={args.ifname} args={args.args!r} path={args.path!r}"
    )

    ipam_conf, cni_version = load_ipam_config(args.stdin_data, args.args)
    log.debug(
        f"Loaded network {ipam_conf.name} (cniVersion={cni_version}, "
        f"{len(ipam_conf.ranges)} range set(s), "
        f"requested={[str(ip) for ip in ipam_conf.requested_ips]})"
    )

    result = Result()
    if ipam_conf.resolv_conf:
        result.dns = parse_resolv_conf(ipam_conf.resolv_conf)

    with Store.open(ipam_conf.name, ipam_conf.data_dir) as store:
        txn = AllocationTransaction(args.container_id, args.ifname)
        remaining = list(ipam_conf.requested_ips)

        for idx, range_set in enumerate(ipam_conf.ranges):
            allocator = RangeAllocator(range_set, store, idx)
            requested_ip = take_requested_ip(range_set, remaining)

            txn.attempt(idx)
            try:
                ip_conf = allocator.get(args.container_id, args.ifname, requested_ip)
            except Exception as e:
                log.warning(f"Allocation from range {idx} failed: {e}")
                rollback_errors = txn.rollback()
                raise RangeAllocationError(idx, e, rollback_errors) from e

            txn.commit(allocator)
            result.ips.append(ip_conf)
            log.info(f"Range {idx}: assigned {ip_conf.address}")

        if remaining:
            unmatched = [str(ip) for ip in remaining]
            log.warning(f"Requested addresses match no range set: {unmatched}")
            rollback_errors = txn.rollback()
            raise UnsatisfiableRequestError(unmatched, rollback_errors)

        result.routes = list(ipam_conf.routes)

        try:
            rendered = render_result(result, cni_version)
        except VersionError as e:
            log.warning(f"Cannot render result as {cni_version}: {e}")
            txn.rollback()
            raise

    log.info(
        f"ADD {args.container_id}/{args.ifname} on {ipam_conf.name}: "
        f"{[str(ip.address) for ip in result.ips]}"
    )
    return rendered


# =============================================================================
# DEL
# =============================================================================


def cmd_del(args: CmdArgs, log=None) -> None:
    """
    Release every lease of a container interface, range set by range set.

    Releasing an interface without leases succeeds. A failing range set does
    not stop the others.

    Raises:
        ConfigError: Malformed configuration.
        StoreError: Ledger could not be opened.
        ReleaseError: One or more range sets could not be released, raised
            after all range sets were attempted.
    """
    log = log or logger
    log.debug(f"DEL container={args.container_id} ifname={args.ifname}")

    ipam_conf, _ = load_ipam_config(args.stdin_data, args.args)

    errors: list[Exception] = []
    with Store.open(ipam_conf.name, ipam_conf.data_dir) as store:
        for idx, range_set in enumerate(ipam_conf.ranges):
            allocator = RangeAllocator(range_set, store, idx)
            try:
                allocator.release(args.container_id, args.ifname)
            except Exception as e:
                log.warning(f"Release from range {idx} failed: {e}")
                errors.append(e)

    if errors:
        raise ReleaseError(errors)

    log.info(f"DEL {args.container_id}/{args.ifname} on {ipam_conf.name}")


# =============================================================================
# CHECK
# =============================================================================


def cmd_check(args: CmdArgs, log=None) -> None:
    """
    Verify that a container interface holds at least one lease.

    Does not check that the leased addresses still belong to a configured
    range set, nor that every range set has one.

    Raises:
        ConfigError: Malformed configuration.
        StoreError: Ledger could not be opened.
        NotFoundError: No lease exists.
    """
    log = log or logger

    ipam_conf, _ = load_ipam_config(args.stdin_data, args.args)

    with Store.open(ipam_conf.name, ipam_conf.data_dir) as store:
        found = store.find_by_id(args.container_id, args.ifname)

    if not found:
        log.info(f"CHECK {args.container_id}/{args.ifname}: no lease")
        raise NotFoundError(args.container_id, args.ifname)

    log.debug(f"CHECK {args.container_id}/{args.ifname}: lease found")
