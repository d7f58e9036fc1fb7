"""CLI entry point for waitfor."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, Sequence

import click

from .__about__ import __version__
from .config import DEFAULT_TIMEOUT, WaitConfig, parse_target, split_command
from .executor import StrictModeRefusal, execute
from .supervisor import EXIT_CODES, SupervisorState, wait_for

logger = logging.getLogger("waitfor")


def _configure_logging(verbose: int, quiet: bool) -> None:
    level = logging.INFO
    fmt = "%(name)s: %(message)s"
    if verbose >= 1:
        level = logging.DEBUG
        fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr)
    logger.setLevel(logging.CRITICAL + 1 if quiet else level)


def _print_usage(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    click.echo(ctx.get_help(), err=True)
    ctx.exit(1)


@click.command(context_settings={"help_option_names": []})
@click.argument("target", required=False, metavar="HOST:PORT")
@click.option("-h", "--host", help="Host or IP under test")
@click.option("-p", "--port", type=click.IntRange(1, 65535), help="TCP port under test")
@click.option(
    "-t",
    "--timeout",
    type=click.IntRange(min=0),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    envvar="WAITFOR_TIMEOUT",
    help="Timeout in seconds, zero for no timeout",
)
@click.option("-s", "--strict", is_flag=True, envvar="WAITFOR_STRICT", help="Only execute subcommand if the test succeeds")
@click.option("-q", "--quiet", is_flag=True, envvar="WAITFOR_QUIET", help="Don't output any status messages")
@click.option("-v", "--verbose", count=True, help="Increase logging verbosity")
@click.version_option(__version__, prog_name="waitfor")
@click.option(
    "--help",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_print_usage,
    help="Show this message and exit.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    target: Optional[str],
    host: Optional[str],
    port: Optional[int],
    timeout: int,
    strict: bool,
    quiet: bool,
    verbose: int,
) -> int:
    """Wait for HOST:PORT to accept TCP connections, then run an optional command.

    Everything after `--` is executed once the wait is over.
    """

    _configure_logging(verbose, quiet)

    if target is not None:
        try:
            host, port = parse_target(target)
        except ValueError as exc:
            raise click.BadParameter(str(exc), ctx=ctx, param_hint="HOST:PORT") from exc
    if not host or port is None:
        raise click.UsageError("you need to provide a host and port to test.", ctx=ctx)

    command: List[str] = list(ctx.obj or ())
    try:
        config = WaitConfig(host=host, port=port, timeout=timeout, quiet=quiet, strict=strict, command=tuple(command))
    except ValueError as exc:
        raise click.UsageError(str(exc), ctx=ctx) from exc

    result = wait_for(config)
    try:
        return execute(config, result)
    except StrictModeRefusal as exc:
        logger.error("%s", exc)
        return exc.exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return the process exit status."""

    args, command = split_command(sys.argv[1:] if argv is None else argv)
    try:
        return cli.main(args, prog_name="waitfor", standalone_mode=False, obj=command)
    except click.ClickException as exc:
        exc.show()
        return 1
    except click.Abort:
        # KeyboardInterrupt outside the supervised wait.
        return EXIT_CODES[SupervisorState.INTERRUPTED]


__all__ = ["cli", "main", "__version__"]
