import pytest

from hostlocal.dns import parse_resolv_conf
from hostlocal.errors import ResolvConfError

RESOLV_CONF = """\
# generated by test
nameserver 10.0.0.53
nameserver 10.0.0.54
; another comment

domain example.com
search svc.cluster.local cluster.local
options ndots:5 timeout:2
sortlist 130.155.160.0/255.255.240.0
"""


def test_parse_resolv_conf(tmp_path):
    path = tmp_path / "resolv.conf"
    path.write_text(RESOLV_CONF)

    dns = parse_resolv_conf(str(path))

    assert dns.nameservers == ["10.0.0.53", "10.0.0.54"]
    assert dns.domain == "example.com"
    assert dns.search == ["svc.cluster.local", "cluster.local"]
    assert dns.options == ["ndots:5", "timeout:2"]


def test_parse_empty_resolv_conf(tmp_path):
    path = tmp_path / "resolv.conf"
    path.write_text("\n# nothing here\n")

    assert parse_resolv_conf(str(path)).is_empty()


def test_missing_resolv_conf(tmp_path):
    with pytest.raises(ResolvConfError) as exc_info:
        parse_resolv_conf(str(tmp_path / "missing.conf"))

    assert exc_info.value.code == 5
    assert "missing.conf" in exc_info.value.msg


def test_undecodable_resolv_conf(tmp_path):
    path = tmp_path / "resolv.conf"
    path.write_bytes(b"nameserver 10.0.0.53\n# \xff\xfe\n")

    with pytest.raises(ResolvConfError) as exc_info:
        parse_resolv_conf(str(path))

    assert exc_info.value.code == 5
    assert "not valid UTF-8" in exc_info.value.msg
