# SPDX-License-Identifier: MIT
"""Command-line interface for the sync engine."""

import asyncio
import functools
import json
import sys
import traceback
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from . import __version__
from .config import get_config_manager
from .errors import to_service_error
from .logging_config import get_status_logger, setup_logging
from .service import MatchdaySyncService, create_service


F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


def handle_cli_errors(func: F) -> F:
    """Decorator to handle common CLI error patterns.

    Every error is reported through its ServiceError mapping (code, message
    and, with --verbose, details and traceback) and exits with status 1.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        status_logger = get_status_logger()
        verbose = kwargs.get("verbose", False)

        try:
            return func(*args, **kwargs)
        except (click.Abort, click.ClickException):
            raise
        except Exception as e:
            service_error = to_service_error(e)
            status_logger.error(f"Error: {service_error}")
            if verbose:
                status_logger.error(
                    f"Details: {json.dumps(service_error.details, default=str)}"
                )
                traceback.print_exc()
            sys.exit(1)

    return wrapper  # type: ignore


def _run_with_service(
    action: Callable[[MatchdaySyncService], Awaitable[T]],
) -> T:
    async def runner() -> T:
        async with create_service() as service:
            return await action(service)

    return asyncio.run(runner())


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit if requested."""
    if value:
        # Ensure logging is set up before using it (--version is eager)
        setup_logging()
        status_logger = get_status_logger()
        status_logger.info(f"matchday-sync version {__version__}")
        ctx.exit(0)


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version information and exit",
)
def main() -> None:
    """matchday-sync - Mirror fantasy-football data into a local store and cache."""
    detail_logger, status_logger = setup_logging()
    detail_logger.debug("CLI initialized")


@main.command()
@click.argument("domain")
@click.argument("unit_key", required=False)
@click.option(
    "--retry", "attempts", type=int, default=1, help="Attempts for transient failures"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def sync(domain: str, unit_key: str | None, attempts: int, verbose: bool) -> None:
    """Synchronize one unit of DOMAIN from the upstream.

    Teams and events use the season as UNIT_KEY (default: configured
    season); fixtures use the event id. Use "fixtures all" for every event.

    Examples:
      matchday-sync sync teams
      matchday-sync sync fixtures 27 --retry 3
      matchday-sync sync fixtures all
    """
    if unit_key is None:
        unit_key = get_config_manager().load_config().sync.season

    if domain == "fixtures" and unit_key == "all":
        results = _run_with_service(lambda service: service.sync_season_fixtures())
        _echo_json([r.model_dump(mode="json") for r in results])
        return

    result = _run_with_service(
        lambda service: service.sync(domain, unit_key, max_attempts=attempts)
    )
    _echo_json(result.model_dump(mode="json"))


@main.command()
@click.argument("domain")
@click.argument("unit_key")
@click.option("--member", type=int, help="Show only the member with this id")
@click.option("--group", help="Show one group of an aggregate domain (a team id)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def show(
    domain: str, unit_key: str, member: int | None, group: str | None, verbose: bool
) -> None:
    """Show the projection of DOMAIN for UNIT_KEY, reading cache-aside."""
    if group is not None:
        data: Any = _run_with_service(
            lambda service: service.get_aggregate(domain, unit_key, group)
        )
    elif member is not None:
        data = _run_with_service(
            lambda service: service.get_projection_member(domain, unit_key, member)
        )
    else:
        data = _run_with_service(
            lambda service: service.get_projection(domain, unit_key)
        )
    _echo_json(data)


@main.command()
@click.argument("event_id")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def window(event_id: str, verbose: bool) -> None:
    """Show the temporal window (match day, locks) of EVENT_ID right now."""
    result = _run_with_service(lambda service: service.get_temporal_window(event_id))
    _echo_json(result.model_dump(mode="json"))


@main.command()
@click.argument("domain")
@click.argument("unit_key")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def purge(domain: str, unit_key: str, confirm: bool, verbose: bool) -> None:
    """Delete UNIT_KEY of DOMAIN from the store and the cache."""
    if not confirm:
        click.confirm(
            f"This will delete all stored {domain} for {unit_key}. Continue?",
            abort=True,
        )

    result = _run_with_service(lambda service: service.purge(domain, unit_key))
    get_status_logger().info(
        f"Deleted {result['records_deleted']} record(s) and "
        f"{result['cache_rows_deleted']} cache row(s)."
    )


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def status(verbose: bool) -> None:
    """Show sync status for every unit."""
    status_logger = get_status_logger()
    report = _run_with_service(lambda service: service.get_sync_status())

    status_logger.info("Sync Status")
    status_logger.info("=" * 40)

    if not report["units"]:
        status_logger.info("No units synced yet.")
        return

    for unit in report["units"]:
        line = f"  {unit['domain']}/{unit['unit_key']}: {unit['status']}"
        if unit["status"] == "success":
            line += (
                f" ({unit['records']} records, "
                f"last success {unit['last_success_at']})"
            )
        if unit.get("error_message"):
            line += f" - {unit['error_code']}: {unit['error_message']}"
        if unit["needs_resync"]:
            line += " [needs re-sync]"
        status_logger.info(line)


@main.command()
@handle_cli_errors
def config() -> None:
    """Show the complete current configuration."""
    click.echo(get_config_manager().show_config())


if __name__ == "__main__":
    main()
