"""CLI entrypoint for sambala."""

from collections.abc import Callable
from functools import wraps

import rich_click as click

from sambala import __version__
from sambala.controllers import (
    CommandReport,
    ConnectionOverrides,
    ListCommand,
    QueueCommandsCommand,
    RunCommandsCommand,
    SambalaCliController,
)
from sambala.gardener.pool import MAX_THREADS, PoolInitializationError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = SambalaCliController()


def connection_options(func: Callable[..., None]) -> Callable[..., None]:
    """Shared connection options; unset values fall back to SAMBALA_* variables."""

    @click.option("--host", default=None, help="SMB server host. Defaults to SAMBALA_HOST.")
    @click.option("--share", default=None, help="Share name. Defaults to SAMBALA_SHARE.")
    @click.option("--user", default=None, help="User name. Defaults to SAMBALA_USER.")
    @click.option("--password", default=None, help="Password. Defaults to SAMBALA_PASSWORD.")
    @click.option("--domain", default=None, help="Workgroup. Defaults to SAMBALA_DOMAIN.")
    @click.option(
        "--threads",
        type=click.IntRange(min=1, max=MAX_THREADS),
        default=None,
        help="Number of smbclient sessions. Defaults to SAMBALA_THREADS.",
    )
    @wraps(func)
    def wrapper(  # noqa: PLR0913
        *args,
        host: str | None,
        share: str | None,
        user: str | None,
        password: str | None,
        domain: str | None,
        threads: int | None,
        **kwargs,
    ) -> None:
        overrides = ConnectionOverrides(
            host=host,
            share=share,
            user=user,
            password=password,
            domain=domain,
            threads=threads,
        )
        func(*args, connection=overrides, **kwargs)

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="sambala")
def sambala() -> None:
    """Run smbclient commands against an SMB share, one by one or queued."""


@sambala.command("run")
@connection_options
@click.argument("commands", nargs=-1, required=True)
def run_commands(connection: ConnectionOverrides, commands: tuple[str, ...]) -> None:
    """Run each COMMAND interactively and print its result."""

    _finish(lambda: CONTROLLER.run(RunCommandsCommand(connection=connection, commands=commands)))


@sambala.command("queue")
@connection_options
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0.0),
    default=0.5,
    show_default=True,
    help="Seconds between progress reports.",
)
@click.argument("commands", nargs=-1, required=True)
def queue_commands(
    connection: ConnectionOverrides,
    poll_interval: float,
    commands: tuple[str, ...],
) -> None:
    """Queue every COMMAND, report progress, then print all results."""

    _finish(
        lambda: CONTROLLER.queue(
            QueueCommandsCommand(
                connection=connection,
                commands=commands,
                poll_interval_seconds=poll_interval,
            ),
        ),
    )


@sambala.command("ls")
@connection_options
@click.option(
    "--recursive/--no-recursive",
    default=False,
    show_default=True,
    help="List subdirectories too.",
)
@click.argument("mask", default="")
def list_directory(connection: ConnectionOverrides, recursive: bool, mask: str) -> None:
    """Print a parsed listing of MASK (default: current directory)."""

    _finish(
        lambda: CONTROLLER.listing(
            ListCommand(connection=connection, mask=mask, recursive=recursive),
        ),
    )


def _finish(action: Callable[[], CommandReport]) -> None:
    try:
        report = action()
    except (PoolInitializationError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(report.lines)
    if not report.success:
        raise click.ClickException("One or more smbclient commands failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    sambala()
