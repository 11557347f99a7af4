import ipaddress
import os

import pytest

from hostlocal.errors import StoreError
from hostlocal.store import Store


def ip(value):
    return ipaddress.ip_address(value)


def test_open_creates_layout(data_dir):
    with Store.open("net", data_dir) as store:
        assert not store.closed

    network_dir = os.path.join(data_dir, "net")
    assert os.path.isfile(os.path.join(network_dir, "lock"))
    assert os.path.isfile(os.path.join(network_dir, "leases.db"))
    assert store.closed


def test_reserve_and_lookup(data_dir):
    with Store.open("net", data_dir) as store:
        assert store.reserve("c1", "eth0", ip("10.0.0.2"), 0)
        assert store.reserve("c1", "eth0", ip("10.0.1.2"), 1)

        assert not store.reserve("c2", "eth0", ip("10.0.0.2"), 0)

        assert store.find_by_id("c1", "eth0")
        assert not store.find_by_id("c1", "eth1")
        assert store.get_by_id("c1", "eth0") == [ip("10.0.0.2"), ip("10.0.1.2")]
        assert store.last_reserved_ip(0) == ip("10.0.0.2")
        assert store.last_reserved_ip(2) is None


def test_reserve_rejects_second_lease_in_same_range(data_dir):
    with Store.open("net", data_dir) as store:
        store.reserve("c1", "eth0", ip("10.0.0.2"), 0)

        with pytest.raises(StoreError, match="already holds a lease in range 0"):
            store.reserve("c1", "eth0", ip("10.0.0.3"), 0)

        assert store.get_by_id("c1", "eth0") == [ip("10.0.0.2")]


def test_release_by_id_scoping(data_dir):
    with Store.open("net", data_dir) as store:
        store.reserve("c1", "eth0", ip("10.0.0.2"), 0)
        store.reserve("c1", "eth0", ip("10.0.1.2"), 1)
        store.reserve("c2", "eth0", ip("10.0.0.3"), 0)

        assert store.release_by_id("c1", "eth0", range_index=1) == 1
        assert store.get_by_id("c1", "eth0") == [ip("10.0.0.2")]

        assert store.release_by_id("c1", "eth0") == 1
        assert store.release_by_id("c1", "eth0") == 0
        assert not store.find_by_id("c1", "eth0")
        assert store.find_by_id("c2", "eth0")


def test_last_reserved_survives_release(data_dir):
    with Store.open("net", data_dir) as store:
        store.reserve("c1", "eth0", ip("10.0.0.7"), 0)
        store.release_by_id("c1", "eth0")

        assert store.last_reserved_ip(0) == ip("10.0.0.7")


def test_leases_persist_across_opens(data_dir):
    with Store.open("net", data_dir) as store:
        store.reserve("c1", "eth0", ip("10.0.0.2"), 0)

    with Store.open("net", data_dir) as store:
        leases = store.leases()

    assert [(lease.address, lease.container_id) for lease in leases] == [("10.0.0.2", "c1")]


def test_networks_are_isolated(data_dir):
    with Store.open("net-a", data_dir) as store:
        store.reserve("c1", "eth0", ip("10.0.0.2"), 0)

    with Store.open("net-b", data_dir) as store:
        assert not store.find_by_id("c1", "eth0")
        assert store.reserve("c2", "eth0", ip("10.0.0.2"), 0)


def test_close_is_idempotent_and_final(data_dir):
    store = Store.open("net", data_dir)
    store.close()
    store.close()

    with pytest.raises(StoreError, match="closed"):
        store.find_by_id("c1", "eth0")


def test_lock_is_exclusive(data_dir):
    holder = Store.open("net", data_dir)
    try:
        with pytest.raises(StoreError, match="timed out waiting for lock"):
            Store.open("net", data_dir, timeout=0.1)
    finally:
        holder.close()

    with Store.open("net", data_dir, timeout=0.1) as store:
        assert not store.closed


def test_open_failure_is_store_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")

    with pytest.raises(StoreError) as exc_info:
        Store.open("net", str(blocker))

    assert exc_info.value.code == 11
