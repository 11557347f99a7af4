"""
hostlocal CLI entry point.

Runtimes invoke the plugin without arguments; the command and its inputs
come from the CNI_* environment variables and stdin:

    CNI_COMMAND=ADD CNI_CONTAINERID=c1 CNI_NETNS=/proc/1/ns/net \\
        CNI_IFNAME=eth0 hostlocal < net.conf

Operator commands:
    hostlocal leases --name NAME [--data-dir DIR]   Show a network's leases
    hostlocal version                               Show version information
"""

import json
from typing import Annotated

import typer
from rich.table import Table

from hostlocal.cli.output import console, print_error
from hostlocal.config import config
from hostlocal.errors import IPAMError
from hostlocal.plugin import run_plugin
from hostlocal.store import Store
from hostlocal.utils.logger import configure_logging

app = typer.Typer(
    name="hostlocal",
    help="host-local IPAM plugin for CNI",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    command: Annotated[
        str, typer.Option("--command", envvar="CNI_COMMAND", help="CNI command")
    ] = "",
    container_id: Annotated[
        str, typer.Option("--container-id", envvar="CNI_CONTAINERID")
    ] = "",
    netns: Annotated[str, typer.Option("--netns", envvar="CNI_NETNS")] = "",
    ifname: Annotated[str, typer.Option("--ifname", envvar="CNI_IFNAME")] = "",
    cni_args: Annotated[str, typer.Option("--args", envvar="CNI_ARGS")] = "",
    cni_path: Annotated[str, typer.Option("--path", envvar="CNI_PATH")] = "",
):
    """
    Run the CNI plugin (default) or an operator command.

    Without a subcommand the CNI command is read from CNI_COMMAND and the
    network configuration from stdin.
    """
    config.load_from_env()
    configure_logging(config.CONSOLE_LOG_LEVEL)

    if ctx.invoked_subcommand is not None:
        return

    env = {
        "CNI_COMMAND": command,
        "CNI_CONTAINERID": container_id,
        "CNI_NETNS": netns,
        "CNI_IFNAME": ifname,
        "CNI_ARGS": cni_args,
        "CNI_PATH": cni_path,
    }
    stdin_data = b"" if command == "VERSION" else typer.get_binary_stream("stdin").read()

    exit_code, output = run_plugin(env, stdin_data)
    if output is not None:
        typer.echo(json.dumps(output))
    raise typer.Exit(exit_code)


@app.command("leases")
def show_leases(
    name: Annotated[str, typer.Option("--name", "-n", help="Network name")],
    data_dir: Annotated[
        str | None, typer.Option("--data-dir", "-d", help="Lease ledger root")
    ] = None,
    output_format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: table|json")
    ] = "table",
):
    """Show the leases recorded for a network."""
    try:
        with Store.open(name, data_dir or config.DEFAULT_DATA_DIR) as store:
            leases = store.leases()
    except IPAMError as e:
        print_error(e.msg)
        raise typer.Exit(1)

    if output_format == "json":
        rows = [
            {
                "range": lease.range_index,
                "address": lease.address,
                "containerId": lease.container_id,
                "ifname": lease.ifname,
                "createdAt": lease.created_at.isoformat(),
            }
            for lease in leases
        ]
        typer.echo(json.dumps(rows))
        return

    if not leases:
        console.print(f"[yellow]No leases on network {name}.[/yellow]")
        return

    table = Table(title=f"Leases: {name}")
    table.add_column("Range", justify="right")
    table.add_column("Address")
    table.add_column("Container")
    table.add_column("Interface")
    table.add_column("Created")
    for lease in leases:
        table.add_row(
            str(lease.range_index),
            lease.address,
            lease.container_id,
            lease.ifname,
            lease.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


@app.command("version")
def version():
    """Show version information."""
    from hostlocal import __version__
    from hostlocal.models.result import SUPPORTED_VERSIONS

    console.print(f"hostlocal v{__version__}")
    console.print(f"CNI versions: {', '.join(SUPPORTED_VERSIONS)}")


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
