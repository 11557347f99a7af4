import ipaddress
import json

import pytest

from hostlocal.config import PluginConfig, config
from hostlocal.errors import ConfigError
from hostlocal.models.config import load_ipam_config, parse_env_args
from hostlocal.models.enums import LogLevel


def ip(value):
    return ipaddress.ip_address(value)


def test_load_basic(netconf, data_dir):
    conf, version = load_ipam_config(netconf())

    assert version == "1.0.0"
    assert conf.name == "testnet"
    assert conf.data_dir == data_dir
    assert len(conf.ranges) == 2
    assert conf.requested_ips == ()
    assert conf.resolv_conf == ""


def test_default_data_dir_and_version():
    raw = {"name": "net", "ipam": {"subnet": "10.0.0.0/24"}}

    conf, version = load_ipam_config(json.dumps(raw))

    assert version == "0.1.0"
    assert conf.data_dir == config.DEFAULT_DATA_DIR


def test_legacy_subnet_becomes_first_range_set(netconf):
    stdin = netconf(
        ranges=[[{"subnet": "10.0.1.0/24"}]],
        subnet="10.0.0.0/24",
        rangeStart="10.0.0.10",
        gateway="10.0.0.254",
    )

    conf, _ = load_ipam_config(stdin)

    assert [str(rs.ranges[0].subnet) for rs in conf.ranges] == ["10.0.0.0/24", "10.0.1.0/24"]
    assert conf.ranges[0].ranges[0].range_start == ip("10.0.0.10")
    assert conf.ranges[0].ranges[0].gateway == ip("10.0.0.254")


def test_requested_ips_from_all_sources(netconf):
    stdin = netconf(
        args={"cni": {"ips": ["10.0.1.7", "10.0.0.5"]}},
        runtimeConfig={"ips": ["10.0.1.8/24"]},
    )

    conf, _ = load_ipam_config(stdin, "IP=10.0.0.5, 10.0.0.6/24;IgnoreUnknown=1")

    assert conf.requested_ips == (
        ip("10.0.0.5"),
        ip("10.0.0.6"),
        ip("10.0.1.7"),
        ip("10.0.1.8"),
    )


def test_bad_requested_ip(netconf):
    with pytest.raises(ConfigError, match="cannot understand ip"):
        load_ipam_config(netconf(), "IP=10.0.0.300")


def test_env_args_unknown_key():
    with pytest.raises(ConfigError, match="unknown args"):
        parse_env_args("K8S_POD_NAME=web")

    assert parse_env_args("K8S_POD_NAME=web;IgnoreUnknown=true") == {
        "K8S_POD_NAME": "web",
        "IgnoreUnknown": "true",
    }


def test_env_args_malformed_pair():
    with pytest.raises(ConfigError, match="invalid pair"):
        parse_env_args("IP")


@pytest.mark.parametrize(
    "stdin, message",
    [
        (b"{not json", "failed to load netconf"),
        (b"[]", "expected a JSON object"),
        (json.dumps({"name": "net"}).encode(), "missing 'ipam'"),
        (json.dumps({"name": "net", "ipam": {}}).encode(), "no IP ranges"),
        (json.dumps({"ipam": {"subnet": "10.0.0.0/24"}}).encode(), "name is required"),
        (
            json.dumps({"name": "../etc", "ipam": {"subnet": "10.0.0.0/24"}}).encode(),
            "invalid network name",
        ),
        (
            json.dumps(
                {
                    "name": "net",
                    "ipam": {"subnet": "10.0.0.0/24"},
                    "args": {"cni": ["10.0.0.5"]},
                }
            ).encode(),
            "failed to load netconf",
        ),
        (
            json.dumps(
                {
                    "name": "net",
                    "ipam": {"subnet": "10.0.0.0/24"},
                    "args": {"cni": {"ips": "10.0.0.5"}},
                }
            ).encode(),
            "failed to load netconf",
        ),
        (
            json.dumps(
                {"name": "net", "ipam": {"subnet": "10.0.0.0/24"}, "runtimeConfig": []}
            ).encode(),
            "failed to load netconf",
        ),
    ],
)
def test_malformed_configs(stdin, message):
    with pytest.raises(ConfigError, match=message):
        load_ipam_config(stdin)


def test_invalid_range_set_is_indexed(netconf):
    stdin = netconf(ranges=[[{"subnet": "10.0.0.0/24"}], [{"subnet": "10.0.1.3/24"}]])

    with pytest.raises(ConfigError, match="invalid range set 1: network has host bits"):
        load_ipam_config(stdin)


def test_overlapping_range_sets(netconf):
    stdin = netconf(ranges=[[{"subnet": "10.0.0.0/24"}], [{"subnet": "10.0.0.128/25"}]])

    with pytest.raises(ConfigError, match="range set 0 overlaps with 1"):
        load_ipam_config(stdin)


def test_legacy_version_allows_one_address_per_family(netconf):
    with pytest.raises(ConfigError, match="does not support more than 1 address"):
        load_ipam_config(netconf(cni_version="0.2.0"))

    dual_stack = netconf(
        cni_version="0.2.0",
        ranges=[[{"subnet": "10.0.0.0/24"}], [{"subnet": "fd00::/64"}]],
    )
    conf, _ = load_ipam_config(dual_stack)
    assert [rs.version for rs in conf.ranges] == [4, 6]


def test_routes(netconf):
    conf, _ = load_ipam_config(
        netconf(routes=[{"dst": "0.0.0.0/0"}, {"dst": "192.168.0.0/16", "gw": "10.0.0.254"}])
    )

    assert [r.to_dict() for r in conf.routes] == [
        {"dst": "0.0.0.0/0"},
        {"dst": "192.168.0.0/16", "gw": "10.0.0.254"},
    ]


def test_bad_route(netconf):
    with pytest.raises(ConfigError, match="invalid route"):
        load_ipam_config(netconf(routes=[{"dst": "nowhere"}]))


def test_plugin_config_from_env():
    cfg = PluginConfig()

    cfg.load_from_env(
        {
            "HOSTLOCAL_DATA_DIR": "/srv/cni",
            "HOSTLOCAL_LOG_FILE": "/tmp/hostlocal.log",
            "HOSTLOCAL_LOG_LEVEL": "DEBUG",
            "HOSTLOCAL_LOCK_TIMEOUT": "2.5",
        }
    )

    assert cfg.DEFAULT_DATA_DIR == "/srv/cni"
    assert cfg.LOG_FILE == "/tmp/hostlocal.log"
    assert cfg.LOG_LEVEL is LogLevel.DEBUG
    assert cfg.LOCK_TIMEOUT_SECONDS == 2.5
    assert cfg.CONSOLE_LOG_LEVEL is LogLevel.WARNING
