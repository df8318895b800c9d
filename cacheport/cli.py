"""
CachePort CLI — ``cacheport`` command group.

Commands:
    inspect   Resolve one cache configuration and show it as JSON.
    check     Validate every declared cache factory without starting engines.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional, Tuple

import click

from . import __version__
from .bridge.builders import build_factories, create_engine
from .bridge.faults import CacheBridgeFault
from .bridge.resolver import ConfigurationResolver
from .config import ConfigLoader

_CHECK = "✓"
_CROSS = "✗"


def _fail(fault: CacheBridgeFault) -> None:
    click.echo(click.style(f"{_CROSS} {fault}", fg="red"), err=True)
    sys.exit(1)


def _parse_assignment(assignment: str) -> Tuple[str, str]:
    key, sep, value = assignment.partition("=")
    if not sep or not key.strip():
        raise click.BadParameter(f"expected KEY=VALUE, got '{assignment}'", param_hint="--set")
    return key.strip(), value.strip()


@click.group()
@click.version_option(version=__version__, prog_name="cacheport")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, verbose: bool):
    """CachePort -- inspect and check cache configuration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("inspect")
@click.option("--location", "-l", type=click.Path(), help="Configuration file (.properties, .yaml, .json)")
@click.option("--set", "assignments", multiple=True, metavar="KEY=VALUE", help="Override a property")
@click.option(
    "--engine",
    type=click.Choice(["embedded", "remote"]),
    default="embedded",
    show_default=True,
    help="Engine whose defaults apply to overrides",
)
@click.pass_context
def inspect_cmd(ctx, location: Optional[str], assignments: Tuple[str, ...], engine: str):
    """
    Show the effective configuration as JSON.

    Examples:
      cacheport inspect --location config/users-cache.yaml
      cacheport inspect --set cache_mode=REPL_ASYNC --set eviction.max_entries=500
    """
    cache_engine = create_engine(engine)
    overrides = cache_engine.overrides_type()
    for assignment in assignments:
        key, value = _parse_assignment(assignment)
        overrides.set(key, value)

    resolution = ConfigurationResolver(
        location=location,
        overrides=overrides,
        defaults=cache_engine.default_properties,
    ).try_resolve()
    if not resolution.ok:
        _fail(resolution.fault)

    configuration = resolution.configuration
    if configuration is None:
        click.echo(click.style(f"No configuration set; the {engine} engine uses its defaults.", fg="yellow"))
        return

    indent = 2 if ctx.obj["verbose"] else None
    click.echo(json.dumps(
        {"source": configuration.source.value, "properties": configuration.to_dict()},
        indent=indent,
        sort_keys=True,
        default=str,
    ))


@main.command("check")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Workspace file (default: cacheport.yaml)")
@click.pass_context
def check_cmd(ctx, config_path: Optional[str]):
    """
    Validate every declared cache factory.

    Checks configuration sources, configuration files and names.
    Nothing is created or connected.

    Examples:
      cacheport check
      cacheport check --config deploy/caches.yaml
    """
    try:
        loader = ConfigLoader.load(paths=[config_path] if config_path else None)
        factories = build_factories(loader.get_factory_declarations())
    except CacheBridgeFault as fault:
        _fail(fault)
        return

    if not factories:
        click.echo(click.style(f"{_CROSS} No caches declared.", fg="yellow"))
        click.echo("  Add a 'caches' section to cacheport.yaml")
        return

    click.echo(click.style("Cache Factory Check", fg="cyan", bold=True))
    click.echo("─" * 40)

    failures = 0
    for name, factory in factories.items():
        fault = factory.validate()
        label = f"{name} ({factory.engine.name} {factory.kind.value})"
        if fault is None:
            click.echo(click.style(f"  {_CHECK} {label}", fg="green"))
        else:
            failures += 1
            click.echo(click.style(f"  {_CROSS} {label}: {fault}", fg="red"))
            if ctx.obj["verbose"]:
                click.echo(f"      {json.dumps(fault.to_dict(), default=str)}")

    click.echo()
    if failures:
        click.echo(click.style(f"{_CROSS} {failures} of {len(factories)} cache factories invalid", fg="red"))
        sys.exit(1)
    click.echo(click.style(f"{_CHECK} {len(factories)} cache factories valid", fg="green"))


if __name__ == "__main__":
    main()
