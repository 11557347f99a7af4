import json
import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from hostlocal import __version__
from hostlocal.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    # the CLI points a loguru sink at the runner's captured stderr
    yield
    logger.remove()
    logger.add(sys.stderr)


def plugin_env(command, container_id="c1"):
    return {
        "CNI_COMMAND": command,
        "CNI_CONTAINERID": container_id,
        "CNI_NETNS": "/var/run/netns/test",
        "CNI_IFNAME": "eth0",
        "CNI_ARGS": "",
        "CNI_PATH": "/opt/cni/bin",
    }


def test_version_via_env():
    result = runner.invoke(app, [], env={"CNI_COMMAND": "VERSION"})

    assert result.exit_code == 0
    assert json.loads(result.stdout)["supportedVersions"][-1] == "1.0.0"


def test_add_via_env_and_stdin(netconf):
    result = runner.invoke(app, [], env=plugin_env("ADD"), input=netconf())

    assert result.exit_code == 0
    output = json.loads(result.stdout)
    assert [entry["address"] for entry in output["ips"]] == ["10.0.0.2/24", "10.0.1.2/24"]


def test_failure_prints_error_object(netconf):
    result = runner.invoke(app, [], env=plugin_env("CHECK"), input=netconf())

    assert result.exit_code == 1
    output = json.loads(result.stdout)
    assert output["code"] == 999
    assert "c1" in output["msg"]


def test_leases_table(netconf, data_dir):
    runner.invoke(app, [], env=plugin_env("ADD"), input=netconf())

    result = runner.invoke(app, ["leases", "--name", "testnet", "--data-dir", data_dir])

    assert result.exit_code == 0
    assert "10.0.0.2" in result.stdout
    assert "10.0.1.2" in result.stdout


def test_leases_json(netconf, data_dir):
    runner.invoke(app, [], env=plugin_env("ADD"), input=netconf())

    result = runner.invoke(
        app, ["leases", "-n", "testnet", "-d", data_dir, "--format", "json"]
    )

    assert result.exit_code == 0
    rows = json.loads(result.stdout)
    assert [(row["range"], row["address"], row["containerId"]) for row in rows] == [
        (0, "10.0.0.2", "c1"),
        (1, "10.0.1.2", "c1"),
    ]


def test_leases_empty_network(data_dir):
    result = runner.invoke(app, ["leases", "-n", "empty", "-d", data_dir])

    assert result.exit_code == 0
    assert "No leases" in result.stdout


def test_version_command():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
