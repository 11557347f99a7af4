import json

import pytest

from hostlocal.models.args import CmdArgs
from hostlocal.store import Store

TWO_RANGES = [
    [{"subnet": "10.0.0.0/24"}],
    [{"subnet": "10.0.1.0/24"}],
]


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "networks")


@pytest.fixture
def netconf(data_dir):
    """Build network configuration bytes for the test data directory."""

    def _make(ranges=None, cni_version="1.0.0", name="testnet", **extra) -> bytes:
        ipam = {
            "type": "hostlocal",
            "ranges": TWO_RANGES if ranges is None else ranges,
            "dataDir": data_dir,
        }
        top = {}
        for key, value in extra.items():
            if key in ("args", "runtimeConfig"):
                top[key] = value
            else:
                ipam[key] = value
        conf = {"cniVersion": cni_version, "name": name, "ipam": ipam, **top}
        return json.dumps(conf).encode()

    return _make


@pytest.fixture
def cmd_args():
    def _make(stdin_data: bytes, container_id="c1", ifname="eth0", args="") -> CmdArgs:
        return CmdArgs(
            container_id=container_id,
            ifname=ifname,
            stdin_data=stdin_data,
            netns="/var/run/netns/test",
            args=args,
        )

    return _make


@pytest.fixture
def lease_snapshot(data_dir):
    """Read every (range, address, container, ifname) of a network."""

    def _snapshot(name="testnet"):
        with Store.open(name, data_dir) as store:
            return sorted(
                (lease.range_index, lease.address, lease.container_id, lease.ifname)
                for lease in store.leases()
            )

    return _snapshot
