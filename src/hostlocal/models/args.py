"""Arguments of one CNI plugin invocation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CmdArgs:
    """
    Inputs handed to a command handler.

    Attributes:
        container_id: CNI_CONTAINERID, the container identity.
        netns: CNI_NETNS, path of the container network namespace.
        ifname: CNI_IFNAME, interface name inside the container.
        args: CNI_ARGS, extra ``K=V;K=V`` arguments.
        path: CNI_PATH, plugin search paths.
        stdin_data: Raw network configuration.
    """

    container_id: str
    ifname: str
    stdin_data: bytes
    netns: str = ""
    args: str = ""
    path: str = ""
