"""Command-line interface for the statreport agent."""

import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .agent import AgentConfig, run_agent
from .agent.collectors import collect_sys_info, gen_sys_id, get_ip_info
from .agent.config import AGENT_VERSION
from .agent.errors import StatReportError
from .agent.models import DEFAULT_ALIAS
from .utils import setup_logging

app = typer.Typer(
    name="statreport",
    help="Host status reporting agent",
    add_completion=False,
)

console = Console()


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def _split(values: Optional[str]) -> Optional[list[str]]:
    if values is None:
        return None
    return [v.strip() for v in values.split(",") if v.strip()]


def build_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict] = None,
    flags: Optional[dict] = None,
) -> AgentConfig:
    """Layer CLI options over the YAML file, and the file over the environment."""
    config = AgentConfig.from_env()
    if config_path:
        config = AgentConfig.from_yaml(str(config_path), base=config)

    for key, value in (overrides or {}).items():
        if value is not None:
            setattr(config, key, value)
    for key, value in (flags or {}).items():
        # flags can only switch a feature on
        if value:
            setattr(config, key, True)

    return config.normalize()


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file; its keys override SSR_* env vars"),
    addr: Optional[str] = typer.Option(None, "--addr", "-a", help="collector address, http(s):// or grpc://"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="username"),
    password: Optional[str] = typer.Option(None, "--pass", "-p", help="password"),
    gid: Optional[str] = typer.Option(None, "--gid", "-g", help="group id"),
    alias: Optional[str] = typer.Option(None, "--alias", help=f"alias for host, default: {DEFAULT_ALIAS}"),
    weight: Optional[int] = typer.Option(None, "--weight", "-w", help="weight for rank"),
    host_type: Optional[str] = typer.Option(None, "--type", "-t", help="host type"),
    location: Optional[str] = typer.Option(None, "--location", help="location"),
    iface: Optional[str] = typer.Option(None, "--iface", "-i", help="iface list, eg: eth0,eth1"),
    exclude_iface: Optional[str] = typer.Option(None, "--exclude-iface", "-e", help="exclude iface substrings"),
    ct_addr: Optional[str] = typer.Option(None, "--ct", help="China Telecom probe addr"),
    cm_addr: Optional[str] = typer.Option(None, "--cm", help="China Mobile probe addr"),
    cu_addr: Optional[str] = typer.Option(None, "--cu", help="China Unicom probe addr"),
    vnstat: bool = typer.Option(False, "--vnstat", "-n", help="enable vnstat"),
    disable_tupd: bool = typer.Option(False, "--disable-tupd", help="disable t/u/p/d counts"),
    disable_ping: bool = typer.Option(False, "--disable-ping", help="disable ping"),
    disable_extra: bool = typer.Option(False, "--disable-extra", help="disable extra info report"),
    disable_notify: bool = typer.Option(False, "--disable-notify", help="disable notify"),
    use_json: bool = typer.Option(False, "--json", help="use json protocol"),
    ipv6: bool = typer.Option(False, "--ipv6", "-6", help="ipv6 only"),
    debug: bool = typer.Option(False, "--debug", "-d", help="debug mode"),
):
    """Sample metrics and report them every second."""
    debug = debug or settings.debug
    setup_logging("DEBUG" if debug else None)

    try:
        config = build_config(
            config_path,
            overrides={
                "addr": addr,
                "user": user,
                "password": password,
                "gid": gid,
                "alias": alias,
                "weight": weight,
                "host_type": host_type,
                "location": location,
                "iface": _split(iface),
                "exclude_iface": _split(exclude_iface),
            },
            flags={
                "vnstat": vnstat,
                "disable_tupd": disable_tupd,
                "disable_ping": disable_ping,
                "disable_extra": disable_extra,
                "disable_notify": disable_notify,
                "json": use_json,
                "ipv6": ipv6,
                "debug": debug,
            },
        )
        for name, value in (("ct_addr", ct_addr), ("cm_addr", cm_addr), ("cu_addr", cu_addr)):
            if value:
                setattr(config.probes, name, value)

        if config.debug:
            console.print_json(json.dumps(dataclasses.asdict(config)))

        run_agent(config)
    except StatReportError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command("ip-info")
def ip_info(
    ipv6: bool = typer.Option(False, "--ipv6", "-6", help="look up over IPv6"),
):
    """Show geolocation info for this host and exit."""
    try:
        info = run_async(get_ip_info(ipv6))
    except StatReportError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="IP Info")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in info.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("sys-info")
def sys_info():
    """Show the system descriptor and its identity hash."""
    info = collect_sys_info(AGENT_VERSION)
    console.print(f"[bold]sys id:[/bold] {gen_sys_id(info)}")
    console.print_json(json.dumps(info.to_dict()))


if __name__ == "__main__":
    app()
