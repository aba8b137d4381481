"""Command-line interface for inspecting the directory as the DAV server does.

Every command connects to the configured directory server, runs one
operation, and prints the result as JSON.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from safir.asyncio import run_with_asyncio
from safir.click import display_help

from .config import Config
from .constants import CONFIG_PATH_ENV, PRINCIPAL_ROOT
from .dependencies.config import config_dependency
from .exceptions import PrincipalNotFoundError, UnknownPropertyError
from .factory import Factory
from .models.enums import FilterTest

__all__ = [
    "check_login",
    "find_principal",
    "group_members",
    "group_membership",
    "help",
    "list_principals",
    "main",
    "search_principals",
    "show_principal",
]


def _config_path_option(func: Any) -> Any:
    return click.option(
        "--config-path",
        envvar=CONFIG_PATH_ENV,
        type=click.Path(path_type=Path),
        default=None,
        help="Application configuration file.",
    )(func)


def _load_config(config_path: Path | None) -> Config:
    if config_path:
        return config_dependency.set_config_path(config_path)
    return config_dependency.config()


def _print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


def _parse_property(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...]
) -> dict[str, str]:
    result = {}
    for prop in value:
        name, sep, search = prop.partition("=")
        if not sep or not name:
            msg = f"property must be NAME=VALUE: {prop}"
            raise click.BadParameter(msg, ctx=ctx, param=param)
        result[name] = search
    return result


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Command-line interface for ipadav."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.argument("prefix", default=PRINCIPAL_ROOT, required=False)
@_config_path_option
@run_with_asyncio
async def list_principals(*, prefix: str, config_path: Path | None) -> None:
    """List the principals under a prefix.

    PREFIX is either ``principals`` or ``principals/<name>``.
    """
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        principal_service = factory.create_principal_service()
        principals = await principal_service.get_principals_by_prefix(prefix)
    _print_json(principals)


@main.command()
@click.argument("path")
@_config_path_option
@run_with_asyncio
async def show_principal(*, path: str, config_path: Path | None) -> None:
    """Show a single principal."""
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        principal_service = factory.create_principal_service()
        principal = await principal_service.get_principal_by_path(path)
    if not principal:
        raise click.ClickException(f"Principal {path} not found")
    _print_json(principal)


@main.command()
@click.argument("prefix", default=PRINCIPAL_ROOT, required=False)
@click.option(
    "--property",
    "-p",
    "search_properties",
    multiple=True,
    callback=_parse_property,
    help="Property to search for, as NAME=VALUE. May be repeated.",
)
@click.option(
    "--test",
    type=click.Choice([t.value for t in FilterTest]),
    default=FilterTest.allof.value,
    show_default=True,
    help="Whether all or any properties must match.",
)
@_config_path_option
@run_with_asyncio
async def search_principals(
    *,
    prefix: str,
    search_properties: dict[str, str],
    test: str,
    config_path: Path | None,
) -> None:
    """Search for principals by property."""
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        principal_service = factory.create_principal_service()
        try:
            uris = await principal_service.search_principals(
                prefix, search_properties, test
            )
        except UnknownPropertyError as e:
            raise click.UsageError(str(e)) from e
    _print_json(uris)


@main.command()
@click.argument("path")
@_config_path_option
@run_with_asyncio
async def group_members(*, path: str, config_path: Path | None) -> None:
    """List the members of a group principal."""
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        principal_service = factory.create_principal_service()
        try:
            members = await principal_service.get_group_member_set(path)
        except PrincipalNotFoundError as e:
            raise click.ClickException(f"{e!s}: {e.name}") from e
    _print_json(members)


@main.command()
@click.argument("path")
@_config_path_option
@run_with_asyncio
async def group_membership(*, path: str, config_path: Path | None) -> None:
    """List the groups of a user principal."""
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        principal_service = factory.create_principal_service()
        try:
            groups = await principal_service.get_group_membership(path)
        except PrincipalNotFoundError as e:
            raise click.ClickException(f"{e!s}: {e.name}") from e
    _print_json(groups)


@main.command()
@click.argument("uri")
@click.option(
    "--principal-prefix",
    default=PRINCIPAL_ROOT,
    show_default=True,
    help="Principal collection to search.",
)
@_config_path_option
@run_with_asyncio
async def find_principal(
    *, uri: str, principal_prefix: str, config_path: Path | None
) -> None:
    """Find a principal by URI, such as ``mailto:user@example.com``."""
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        principal_service = factory.create_principal_service()
        principal = await principal_service.find_by_uri(uri, principal_prefix)
    if not principal:
        raise click.ClickException(f"No principal found for {uri}")
    _print_json(principal)


@main.command()
@click.argument("identity")
@_config_path_option
@run_with_asyncio
async def check_login(*, identity: str, config_path: Path | None) -> None:
    """Check whether an identity would be allowed to log in.

    No default collections are created.
    """
    config = _load_config(config_path)
    async with Factory.standalone(config) as factory:
        auth_service = factory.create_auth_service()
        result = await auth_service.check(identity)
    _print_json(result._asdict())
    if not result.success:
        raise click.ClickException(result.detail)
