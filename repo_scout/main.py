"""CLI entry point for repo-scout."""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import click
import structlog
from pydantic import BaseModel, ValidationError

from repo_scout.api import RepoScout
from repo_scout.config.settings import ScoutSettings
from repo_scout.exceptions import ConfigurationError, RepoScoutError
from repo_scout.git.models import PackageFilterOptions, ScanOptions
from repo_scout.utils.connection_pool import close_all_pools
from repo_scout.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


def _load_settings(config: str | None) -> ScoutSettings:
    if config:
        return ScoutSettings.from_yaml(config)
    try:
        return ScoutSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid REPO_SCOUT_* environment settings: {e}") from e


def _echo_json(value: Any) -> None:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    click.echo(json.dumps(value, indent=2, ensure_ascii=False))


async def _run_and_close(operation: Awaitable[Any]) -> Any:
    try:
        return await operation
    finally:
        await close_all_pools()


def _execute(ctx: click.Context, command: str, operation: Callable[[RepoScout], Awaitable[Any]]) -> None:
    """Run an async operation and print its JSON result, mapping errors to exit codes."""
    try:
        scout: RepoScout = ctx.obj["scout"]
        result = asyncio.run(_run_and_close(operation(scout)))
        _echo_json(result)
    except RepoScoutError as e:
        click.echo(f"Error: {e}", err=True)
        log.debug(f"{command}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error(f"{command}_unexpected", exc_info=True)
        sys.exit(1)


@click.group()
@click.option("--config", default=None, help="Path to YAML configuration file")
@click.option("--log-level", default=None, help="Logging level (defaults to the configured one)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None) -> None:
    """repo-scout: resolve repository identities and discover local repos."""
    try:
        settings = _load_settings(config)
    except ConfigurationError as e:
        configure_logging(log_level or "INFO")
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    configure_logging(log_level or settings.log_level)
    ctx.obj = {"settings": settings, "scout": RepoScout(settings)}


@cli.command()
@click.argument("url")
@click.pass_context
def normalize(ctx: click.Context, url: str) -> None:
    """Print the canonical identity of a Git remote URL."""
    try:
        _echo_json(ctx.obj["scout"].normalize_git_url(url))
    except RepoScoutError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("root", type=click.Path())
@click.option("--loop", is_flag=True, help="Recurse into subdirectories")
@click.option("--max-depth", type=click.IntRange(min=0), default=None, help="Maximum recursion depth")
@click.option("--exclude", "exclude", multiple=True, help="Directory name to skip (repeatable)")
@click.pass_context
def scan(ctx: click.Context, root: str, loop: bool, max_depth: int | None, exclude: tuple[str, ...]) -> None:
    """Find Git working copies under ROOT."""
    defaults = ctx.obj["settings"].scan
    options = ScanOptions(
        loop=loop,
        max_depth=defaults.max_depth if max_depth is None else max_depth,
        exclude_dirs=frozenset(exclude or defaults.exclude_dirs),
    )
    _execute(ctx, "scan", lambda scout: scout.scan_local_repos(root, options))


@cli.group()
def branch() -> None:
    """Resolve default branches."""


@branch.command("local")
@click.argument("path", type=click.Path())
@click.pass_context
def branch_local(ctx: click.Context, path: str) -> None:
    """Print the branch the HEAD of the working copy at PATH points to."""
    _execute(ctx, "branch_local", lambda scout: scout.local_default_branch(path))


@branch.command("remote")
@click.argument("url")
@click.pass_context
def branch_remote(ctx: click.Context, url: str) -> None:
    """Print the default branch of the remote at URL."""
    _execute(ctx, "branch_remote", lambda scout: scout.remote_default_branch(url))


@branch.command("repo")
@click.argument("owner")
@click.argument("repo")
@click.pass_context
def branch_repo(ctx: click.Context, owner: str, repo: str) -> None:
    """Print the default branch of OWNER/REPO, falling back to the REST API."""
    _execute(ctx, "branch_repo", lambda scout: scout.resolve_repo_default_branch(owner, repo))


@cli.command()
@click.argument("name")
@click.option("--project", type=click.Path(), default=None, help="Project directory (defaults to cwd)")
@click.pass_context
def package(ctx: click.Context, name: str, project: str | None) -> None:
    """Print the upstream repository of npm package NAME (null if unknown)."""
    _execute(ctx, "package", lambda scout: scout.resolve_package(name, project))


@cli.command()
@click.argument("directory", type=click.Path())
@click.option("--exclude", "exclude", multiple=True, help="Package name to skip (repeatable)")
@click.option("--prefix", default="", help="Only resolve packages whose name starts with this")
@click.pass_context
def packages(ctx: click.Context, directory: str, exclude: tuple[str, ...], prefix: str) -> None:
    """Resolve the upstream repositories of DIRECTORY's production dependencies."""
    options = PackageFilterOptions(exclude=frozenset(exclude), prefix=prefix)
    _execute(ctx, "packages", lambda scout: scout.resolve_project_packages(directory, options))


if __name__ == "__main__":
    cli()
