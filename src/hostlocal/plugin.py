"""
CNI plugin skeleton.

Validates the CNI_* environment, checks version compatibility, dispatches to
the command handler and turns the outcome into what the runtime expects:

    - success: ADD prints its result, DEL/CHECK print nothing, exit status 0
    - failure: a CNI error object ``{cniVersion, code, msg, details}``,
      exit status 1
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from hostlocal.config import config
from hostlocal.errors import ERR_INTERNAL, EnvError, IPAMError, VersionError
from hostlocal.ipam import cmd_add, cmd_check, cmd_del
from hostlocal.models.args import CmdArgs
from hostlocal.models.config import DEFAULT_CNI_VERSION
from hostlocal.models.enums import Command
from hostlocal.models.result import (
    LATEST_VERSION,
    SUPPORTED_VERSIONS,
    version_at_least,
)
from hostlocal.utils.logger import format_traceback, get_logger, invocation_logger

logger = get_logger(__name__)

HANDLERS: dict[Command, Callable[..., dict[str, Any] | None]] = {
    Command.ADD: cmd_add,
    Command.DEL: cmd_del,
    Command.CHECK: cmd_check,
}

# Environment variables each command needs (besides CNI_COMMAND)
REQUIRED_ENV: dict[Command, tuple[str, ...]] = {
    Command.ADD: ("CNI_CONTAINERID", "CNI_NETNS", "CNI_IFNAME"),
    Command.DEL: ("CNI_CONTAINERID", "CNI_IFNAME"),
    Command.CHECK: ("CNI_CONTAINERID", "CNI_NETNS", "CNI_IFNAME"),
}


def peek_cni_version(stdin_data: bytes) -> str | None:
    """Read cniVersion from the configuration, or None if it is not valid JSON."""
    try:
        data = json.loads(stdin_data)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return str(data.get("cniVersion") or DEFAULT_CNI_VERSION)


def version_info() -> dict[str, Any]:
    """Payload of the VERSION command."""
    return {"cniVersion": LATEST_VERSION, "supportedVersions": list(SUPPORTED_VERSIONS)}


def _check_env(command: Command, env: dict[str, str]) -> None:
    missing = [name for name in REQUIRED_ENV[command] if not env.get(name)]
    if missing:
        raise EnvError(f"required env variables [{','.join(missing)}] missing")


def _check_version(command: Command, cni_version: str | None) -> None:
    if cni_version is None:
        # Undecodable config; the handler reports the decoding error
        return
    if cni_version not in SUPPORTED_VERSIONS:
        raise VersionError(
            "incompatible CNI versions",
            details=f'config is "{cni_version}", plugin supports {SUPPORTED_VERSIONS}',
        )
    if command is Command.CHECK and not version_at_least(cni_version, "0.4.0"):
        raise VersionError("config version does not allow CHECK")


def run_plugin(env: dict[str, str], stdin_data: bytes) -> tuple[int, dict[str, Any] | None]:
    """
    Execute one CNI command.

    Args:
        env: The CNI_* variables (other keys are ignored).
        stdin_data: Raw network configuration.

    Returns:
        Tuple of (exit status, JSON payload to print or None).
    """
    cni_version = peek_cni_version(stdin_data)
    error_version = cni_version or DEFAULT_CNI_VERSION
    raw_command = env.get("CNI_COMMAND", "")

    try:
        if not raw_command:
            raise EnvError("required env variables [CNI_COMMAND] missing")
        try:
            command = Command(raw_command)
        except ValueError:
            raise EnvError(f"unknown CNI_COMMAND: {raw_command}")

        if command is Command.VERSION:
            return 0, version_info()

        _check_env(command, env)
        _check_version(command, cni_version)

        args = CmdArgs(
            container_id=env["CNI_CONTAINERID"],
            ifname=env["CNI_IFNAME"],
            stdin_data=stdin_data,
            netns=env.get("CNI_NETNS", ""),
            args=env.get("CNI_ARGS", ""),
            path=env.get("CNI_PATH", ""),
        )

        with invocation_logger(
            command.value, args.container_id, config.LOG_FILE, config.LOG_LEVEL
        ) as log:
            try:
                output = HANDLERS[command](args, log=log)
            except IPAMError as e:
                log.error(f"{command.value} failed (code {e.code}): {e.msg}")
                raise
            except Exception as e:
                log.error(f"{command.value} crashed: {e}\n{format_traceback(e)}")
                raise IPAMError(str(e), details=type(e).__name__) from e

        return 0, output

    except IPAMError as e:
        return 1, e.to_dict(error_version)
    except Exception as e:
        logger.error(f"Unexpected plugin failure: {format_traceback(e)}")
        return 1, {"cniVersion": error_version, "code": ERR_INTERNAL, "msg": str(e)}
