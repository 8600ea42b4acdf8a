"""
CLI

Command line front-end over the orchestrator.
"""

import asyncio
import functools
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from kiln import __version__
from kiln.config import EngineConfig, KilnSettings, default_registry
from kiln.api import RegistryClient
from kiln.exceptions import KilnError
from kiln.logger import setup_logger
from kiln.models import DirectMod, RegistryMod, is_http_url
from kiln.orchestrator import KilnOrchestrator


def create_registry(settings: KilnSettings) -> RegistryClient:
    return default_registry(settings)


def build_orchestrator(home: Optional[Path]) -> KilnOrchestrator:
    config = EngineConfig.from_environment(home, registry_factory=create_registry)
    return KilnOrchestrator(config)


async def run_async(home: Optional[Path], flow):
    """Build an orchestrator, run ``flow(orchestrator)`` and close the registry"""
    orchestrator = build_orchestrator(home)
    async with orchestrator.config.registry:
        return await flow(orchestrator)


def handle_errors(func):
    """Report errors (Kiln errors with their hint) and exit with status 1"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KilnError as e:
            logger.error(str(e))
            logger.debug(f"error details: {e.to_dict()}")
            raise click.ClickException(e.hint or e.message) from e
        except click.ClickException:
            raise
        except Exception as e:
            logger.exception(f"unexpected error: {e}")
            raise click.ClickException(f"unexpected error: {e}") from e

    return wrapper


@click.group()
@click.option(
    "--home",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="KILN_HOME",
    help="Data directory (default: the platform's app data folder)",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, home: Optional[Path], debug: bool):
    """Kiln - Vintage Story modpack manager"""
    setup_logger(level="DEBUG" if debug else None)
    ctx.obj = home


@main.command()
@click.argument("name")
@click.pass_obj
@handle_errors
def new(home, name: str):
    """Create an empty collection"""
    build_orchestrator(home).new_collection(name)
    click.echo(f"Created collection {name}")


@main.command("list")
@click.pass_obj
@handle_errors
def list_cmd(home):
    """List collections"""
    for name in build_orchestrator(home).list_collections():
        click.echo(name)


@main.command()
@click.argument("name")
@click.pass_obj
@handle_errors
def show(home, name: str):
    """Show the mods of a collection"""
    state = build_orchestrator(home).show(name)
    click.echo(f"{state.name} ({len(state.mods)} mods)")
    for mod in state.mods:
        if isinstance(mod, RegistryMod):
            click.echo(f"  {mod.id} {mod.version}")
        else:
            click.echo(f"  {mod.name} <{mod.source}>")


@main.command()
@click.argument("name")
@click.argument("alias")
@click.option("--version", "version", default="", help="Pin this release instead of the latest")
@click.pass_obj
@handle_errors
def add(home, name: str, alias: str, version: str):
    """Add a mod from the mod database by alias or id"""
    mod = asyncio.run(
        run_async(home, lambda o: o.add_mod(name, RegistryMod(id=alias, version=version)))
    )
    click.echo(f"Added {mod}")


@main.command("add-url")
@click.argument("name")
@click.argument("mod_name")
@click.argument("url")
@click.pass_obj
@handle_errors
def add_url(home, name: str, mod_name: str, url: str):
    """Add a mod downloaded from URL, saved as MOD_NAME.zip"""
    if not is_http_url(url):
        raise click.BadParameter("URL must start with http:// or https://", param_hint="URL")
    mod = asyncio.run(
        run_async(home, lambda o: o.add_mod(name, DirectMod(name=mod_name, source=url)))
    )
    click.echo(f"Added {mod.identifier}")


@main.command()
@click.argument("name")
@click.argument("identifier")
@click.pass_obj
@handle_errors
def remove(home, name: str, identifier: str):
    """Remove a mod by id/alias or name"""
    removed = build_orchestrator(home).remove_mod(name, identifier)
    click.echo(f"Removed {removed.identifier}")


@main.command()
@click.argument("name")
@click.confirmation_option(prompt="Delete the collection and its downloaded mods?")
@click.pass_obj
@handle_errors
def delete(home, name: str):
    """Delete a collection"""
    build_orchestrator(home).delete_collection(name)
    click.echo(f"Deleted collection {name}")


@main.command()
@click.argument("name")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Output file")
@click.option("--check", is_flag=True, help="Check that every release still resolves")
@click.pass_obj
@handle_errors
def export(home, name: str, output: Optional[Path], check: bool):
    """Export a collection to a .kiln file"""
    path = asyncio.run(
        run_async(home, lambda o: o.export_collection(name, output=output, check=check))
    )
    click.echo(f"Exported {name} to {path}")


@main.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", default=None, help="Import under another collection name")
@click.pass_obj
@handle_errors
def import_cmd(home, file: Path, name: Optional[str]):
    """Import a collection from a .kiln file"""
    report = asyncio.run(run_async(home, lambda o: o.import_collection(file, name=name)))
    click.echo(
        f"Imported {report.state.name}: {len(report.resolved)} mods fetched, "
        f"{len(report.failed)} skipped"
    )
    for outcome in report.failed:
        error = outcome.error
        hint = getattr(error, "hint", "")
        click.echo(f"  skipped {outcome.reference}: {error}" + (f" ({hint})" if hint else ""))


if __name__ == "__main__":
    main()
