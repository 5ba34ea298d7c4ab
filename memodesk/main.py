"""MemoDesk CLI entry point."""

import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config
from .llm.errors import RelayError
from .llm.relay import ChatRelay
from .logging import init_logger
from .mdstream import MarkdownStream
from .prompts import with_system_message
from .storage.history import HistoryStore
from .storage.packs import PackFormatError, PackStore, export_pack, import_pack

console = Console()


@click.group()
@click.option("--model", "-m", default="", help="Model to use for this run")
@click.option("--endpoint", "-e", default="", help="LLM API endpoint (base URL)")
@click.option("--debug", "-d", is_flag=True, help="Log every stream event")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, model: str, endpoint: str, debug: bool):
    """MemoDesk - chat assistant with rule packs and memos."""
    config = Config.load()
    if model:
        config.model_id = model
    if endpoint:
        config.base_url = endpoint
    if debug:
        config.debug = True
    ctx.obj = config


def _check_config(config: Config) -> bool:
    errors = config.validate()
    for error in errors:
        console.print(f"[red]Error: {error}[/]")
    return not errors


@cli.command()
@click.pass_obj
def chat(config: Config):
    """Start an interactive chat session."""
    if not _check_config(config):
        return

    logger = init_logger(config.relay_settings().model, home=config.home, debug=config.debug)
    settings = config.relay_settings()
    console.print(f"[bold green]MemoDesk v{__version__}[/]")
    console.print(f"[dim]Model: {settings.model}[/]")
    console.print(f"[dim]Endpoint: {settings.endpoint}[/]")
    console.print(f"[dim]Logs: {logger.log_path}[/]")
    console.print()

    from .repl import MemoDeskREPL
    MemoDeskREPL(config, logger=logger, console=console).run()


@cli.command()
@click.argument("message")
@click.option("--no-pack", is_flag=True, help="Don't send the installed pack's memos")
@click.pass_obj
def ask(config: Config, message: str, no_pack: bool):
    """Ask a single question; the conversation is not saved."""
    if not _check_config(config):
        sys.exit(1)

    pack = None if no_pack else PackStore(config.home).load_current_pack()
    turns = with_system_message([], pack, config.system_prompt)
    stream = MarkdownStream(console, show_reasoning=config.reasoning_enabled)
    logger = init_logger(config.relay_settings().model, home=config.home, debug=config.debug)
    relay = ChatRelay(config.relay_settings(), logger=logger)
    try:
        reply = relay.chat(turns, message, listener=stream)
    except RelayError as e:
        stream.stop()
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)
    if not stream.text.strip():
        console.print(f"[dim]{reply}[/]")


@cli.group(name="config")
def config_group():
    """Show or change settings."""


@config_group.command(name="show")
@click.pass_obj
def config_show(config: Config):
    """Print current settings (API key masked)."""
    table = Table(box=box.SIMPLE, show_header=False)
    for key, value in config.to_dict().items():
        if key == "api_key" and value:
            value = value[:4] + "..." + value[-4:] if len(value) > 8 else "****"
        table.add_row(f"[cyan]{key}[/]", str(value))
    console.print(table)


@config_group.command(name="set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set KEY to VALUE in config.json."""
    # Only file values; CLI and environment overrides are not persisted
    config = Config.load(env=False)
    try:
        config.set_value(key, value)
    except KeyError:
        raise click.BadParameter(f"unknown key {key!r}", param_hint="KEY")
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="VALUE")
    if not config.save():
        console.print(f"[red]Failed to write {config.path}[/]")
        sys.exit(1)
    console.print(f"[green]{key} updated[/]")


@config_group.command(name="path")
@click.pass_obj
def config_path(config: Config):
    """Print the path of config.json."""
    click.echo(str(config.path))


@cli.group()
def packs():
    """Manage rule packs."""


def _get_pack_or_exit(store: PackStore, pack_id: str):
    pack = store.get_pack(pack_id)
    if pack is None:
        console.print(f"[red]No pack {pack_id}[/]")
        sys.exit(1)
    return pack


@packs.command(name="list")
@click.option("--search", "-s", default="", help="Filter by name, description, author or tag")
@click.option("--tag", "-t", default="", help="Only packs with this tag")
@click.pass_obj
def packs_list(config: Config, search: str, tag: str):
    """List packs in the library."""
    store = PackStore(config.home)
    current = store.load_current_pack()
    table = Table(box=box.SIMPLE)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Rules", justify="right")
    table.add_column("Tags")
    for pack in store.search(search, tag):
        name = f"{pack.name} [green](installed)[/]" if current and current.id == pack.id else pack.name
        table.add_row(pack.id, name, pack.version, str(len(pack.rules)), ", ".join(pack.tags))
    console.print(table)


@packs.command(name="show")
@click.argument("pack_id")
@click.pass_obj
def packs_show(config: Config, pack_id: str):
    """Show a pack's prompt, rules and memos."""
    pack = _get_pack_or_exit(PackStore(config.home), pack_id)
    console.print(f"[bold]{pack.name}[/] [dim]v{pack.version} by {pack.author or 'unknown'}[/]")
    if pack.description:
        console.print(pack.description)
    if pack.system_prompt:
        console.print(f"\n[bold]System prompt[/]\n{pack.system_prompt}")
    for rule in pack.rules:
        console.print(f"\n[cyan]{rule.title}[/]\n  {rule.update_rule}")
    for memo in pack.memos:
        console.print(f"\n[magenta]{memo.title}[/]: {memo.content}")


@packs.command(name="install")
@click.argument("pack_id")
@click.pass_obj
def packs_install(config: Config, pack_id: str):
    """Make a pack the active one."""
    store = PackStore(config.home)
    pack = _get_pack_or_exit(store, pack_id)
    if not store.save_current_pack(pack):
        console.print("[red]Failed to install pack[/]")
        sys.exit(1)
    console.print(f"[green]Installed {pack.name}[/]")


@packs.command(name="delete")
@click.argument("pack_id")
@click.pass_obj
def packs_delete(config: Config, pack_id: str):
    """Delete a pack from the library."""
    if not PackStore(config.home).delete_pack(pack_id):
        console.print(f"[red]No pack {pack_id}[/]")
        sys.exit(1)
    console.print(f"[green]Deleted {pack_id}[/]")


@packs.command(name="export")
@click.argument("pack_id")
@click.argument("path", required=False, type=click.Path(path_type=Path))
@click.pass_obj
def packs_export(config: Config, pack_id: str, path):
    """Export a pack to PATH (.json, .yaml or .yml)."""
    pack = _get_pack_or_exit(PackStore(config.home), pack_id)
    try:
        written = export_pack(pack, path)
    except OSError as e:
        console.print(f"[red]Export failed: {e}[/]")
        sys.exit(1)
    console.print(f"[green]Exported to {written}[/]")


@packs.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def packs_import(config: Config, path: Path):
    """Import a pack export or a rules document."""
    try:
        pack = import_pack(path)
    except (PackFormatError, OSError) as e:
        console.print(f"[red]Import failed: {e}[/]")
        sys.exit(1)
    PackStore(config.home).save_pack(pack)
    console.print(f"[green]Imported {pack.name} as {pack.id}[/]")


@cli.group()
def archives():
    """Browse archived conversations."""


@archives.command(name="list")
@click.pass_obj
def archives_list(config: Config):
    """List archived conversations."""
    table = Table(box=box.SIMPLE)
    table.add_column("Archive", style="cyan")
    table.add_column("Created")
    table.add_column("Messages", justify="right")
    for entry in HistoryStore(config.home).list_archives():
        table.add_row(entry.filename, entry.created_at, str(entry.message_count))
    console.print(table)


@archives.command(name="show")
@click.argument("filename")
@click.pass_obj
def archives_show(config: Config, filename: str):
    """Print an archived conversation."""
    for turn in HistoryStore(config.home).load_archive(filename):
        style = "green" if turn.role == "user" else "blue"
        console.print(f"[bold {style}]{turn.role}>[/] {turn.content}")


if __name__ == "__main__":
    cli()
