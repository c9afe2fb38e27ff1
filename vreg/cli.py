"""vreg CLI — drive a local registrar deployment from the shell."""

from __future__ import annotations

import logging
from contextlib import contextmanager

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vreg import __version__
from vreg.config import load_config
from vreg.ledger.local_ledger import LocalLedger
from vreg.registrar.errors import RegistrarError
from vreg.registrar.nodes import namehash, node_from_hex, node_to_hex

console = Console(soft_wrap=True)


def _parse_node(value: str, algorithm: str) -> bytes:
    """Accept either a ``0x`` node id or a dotted name such as ``cork.version.eth``."""
    if value.lower().startswith("0x"):
        return node_from_hex(value)
    return namehash(value, algorithm)


@contextmanager
def _handle_errors():
    try:
        yield
    except (RegistrarError, ValueError, FileNotFoundError, FileExistsError) as e:
        console.print(f"[red]{type(e).__name__}:[/] {e}")
        raise SystemExit(1)


def _open_ledger(ctx: click.Context) -> LocalLedger:
    return LocalLedger.load(ctx.obj["config"])


@click.group()
@click.version_option(version=__version__)
@click.option("--state-dir", "-s", default=None, help="Ledger state directory")
@click.option("--config", "config_path", default=None, help="Path to a vreg.yaml config file")
@click.option("--verbose", "-v", is_flag=True, help="Log registrar activity")
@click.pass_context
def main(ctx: click.Context, state_dir: str | None, config_path: str | None, verbose: bool):
    """vreg — hierarchical naming and versioning registrar.

    Orgs register app identities; each app accumulates numbered versions
    and a ``latest`` alias that always points at the newest one.
    """
    with _handle_errors():
        config = load_config(config_path, state_dir=state_dir)
    logging.basicConfig(
        level="INFO" if verbose else config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# ── Deployment ───────────────────────────────────────────────────────


@main.command()
@click.option("--force", is_flag=True, help="Replace an existing ledger")
@click.pass_context
def init(ctx: click.Context, force: bool):
    """Bootstrap a local deployment (directory, resolver, registrar)."""
    config = ctx.obj["config"]
    with _handle_errors():
        ledger = LocalLedger.bootstrap(config, force=force)

    table = Table(title="Local deployment")
    table.add_column("Component", style="cyan")
    table.add_column("Value")
    table.add_row("Deployer", ledger.deployer)
    table.add_row("Resolver", ledger.resolver.address)
    table.add_row("Registrar", ledger.registrar.address)
    table.add_row(f"{config.base_name} node", node_to_hex(ledger.registrar.base_node))
    table.add_row("State", str(ledger.ledger_path))
    console.print(table)


@main.command(name="deploy-code")
@click.argument("address", required=False)
@click.pass_context
def deploy_code(ctx: click.Context, address: str | None):
    """Mark ADDRESS (or a fresh address) as holding deployed code."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        with ledger.transaction():
            deployed = ledger.environment.deploy(address)
    click.echo(deployed)


# ── Orgs ─────────────────────────────────────────────────────────────


@main.command(name="register-org")
@click.argument("label")
@click.argument("admin")
@click.pass_context
def register_org(ctx: click.Context, label: str, admin: str):
    """Register org LABEL with ADMIN as its administrator."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        with ledger.transaction():
            node = ledger.registrar.register_org(label, admin, caller=admin)
    console.print(f"[green]Registered[/] {label}.{ctx.obj['config'].base_name} {node_to_hex(node)}")


@main.command(name="set-org-admin")
@click.argument("org")
@click.argument("new_admin")
@click.option("--as", "caller", required=True, help="Calling address")
@click.pass_context
def set_org_admin(ctx: click.Context, org: str, new_admin: str, caller: str):
    """Hand ORG (node id or dotted name) to NEW_ADMIN."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        with ledger.transaction():
            ledger.registrar.set_org_admin(_parse_node(org, ledger.config.hash_algorithm), new_admin, caller=caller)
    console.print(f"[green]Org admin set to[/] {new_admin.lower()}")


# ── Apps ─────────────────────────────────────────────────────────────


@main.command(name="register-app")
@click.argument("label")
@click.argument("org")
@click.argument("proxy")
@click.option("--as", "caller", required=True, help="Calling address (the org admin)")
@click.pass_context
def register_app(ctx: click.Context, label: str, org: str, proxy: str, caller: str):
    """Register app LABEL under ORG, resolving to PROXY."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        with ledger.transaction():
            node = ledger.registrar.register_app(
                label, _parse_node(org, ledger.config.hash_algorithm), proxy, caller=caller
            )
    console.print(f"[green]Registered app[/] {label} {node_to_hex(node)}")


@main.command(name="set-app-admin")
@click.argument("app")
@click.argument("new_admin")
@click.option("--as", "caller", required=True, help="Calling address")
@click.pass_context
def set_app_admin(ctx: click.Context, app: str, new_admin: str, caller: str):
    """Hand APP (node id or dotted name) to NEW_ADMIN."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        with ledger.transaction():
            ledger.registrar.set_app_admin(_parse_node(app, ledger.config.hash_algorithm), new_admin, caller=caller)
    console.print(f"[green]App admin set to[/] {new_admin.lower()}")


# ── Versions ─────────────────────────────────────────────────────────


@main.command()
@click.argument("app")
@click.argument("implementation")
@click.option("--as", "caller", required=True, help="Calling address (the app admin)")
@click.pass_context
def publish(ctx: click.Context, app: str, implementation: str, caller: str):
    """Publish IMPLEMENTATION as the next version of APP."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        with ledger.transaction():
            version = ledger.registrar.publish_version(
                _parse_node(app, ledger.config.hash_algorithm), implementation, caller=caller
            )
    console.print(f"[green]Published version {version}[/] -> {implementation.lower()}")


@main.command()
@click.argument("app")
@click.pass_context
def latest(ctx: click.Context, app: str):
    """Show the latest version number and implementation of APP."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        node = _parse_node(app, ledger.config.hash_algorithm)
        version = ledger.registrar.latest_version(node)
        target = ledger.registrar.latest_implementation(node)

    if version == 0:
        console.print("[yellow]No versions published.[/]")
        return
    console.print(f"version {version}: {target}")


@main.command()
@click.argument("node")
@click.pass_context
def resolve(ctx: click.Context, node: str):
    """Print the resolver target and directory owner of NODE."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
        parsed = _parse_node(node, ledger.config.hash_algorithm)
    console.print(f"node:   {node_to_hex(parsed)}")
    console.print(f"owner:  {ledger.directory.owner(parsed)}")
    console.print(f"target: {ledger.resolver.get_target(parsed)}")


@main.command(name="node")
@click.argument("name")
@click.pass_context
def node_cmd(ctx: click.Context, name: str):
    """Compute the node id for a dotted NAME without touching the ledger."""
    with _handle_errors():
        click.echo(node_to_hex(namehash(name, ctx.obj["config"].hash_algorithm)))


@main.command()
@click.option("--kind", "-k", default=None, help="Only show events of this kind")
@click.option("--limit", "-n", default=20, type=click.IntRange(min=0), help="Number of most recent events to show")
@click.pass_context
def events(ctx: click.Context, kind: str | None, limit: int):
    """List recent registrar events."""
    with _handle_errors():
        ledger = _open_ledger(ctx)
    entries = ledger.registrar.events.get_events(kind=kind, limit=limit)

    if not entries:
        console.print("[yellow]No events recorded.[/]")
        return

    table = Table(title=f"Events ({len(entries)})")
    table.add_column("Time", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Details")
    for event in entries:
        data = event.to_dict()
        details = ", ".join(
            f"{k}={v}" for k, v in data.items() if k not in ("kind", "timestamp")
        )
        table.add_row(data["timestamp"], data["kind"], details)
    console.print(table)


if __name__ == "__main__":
    main()
