# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing
"""The command-line interface for procluster."""

import shlex
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any, Literal

import anyio
from cyclopts import App, Parameter
from rich.console import Console

from procluster.config import ClusterConfig, load_config
from procluster.exceptions import ConfigError, LaunchError
from procluster.supervisor import Supervisor

from ._exit_codes import EXIT_FAILURE

HELP = """Run a pool of worker processes under memory supervision.

Everything after `--` is passed to every worker, e.g.

    $ procluster -N 2 -- -c 10 -q default,12 -l log/worker.log
"""


def build_overrides(  # noqa: PLR0913
    *,
    worker_args: tuple[str, ...] = (),
    name: str | None = None,
    pidfile: str | None = None,
    logfile: str | None = None,
    max_memory: float | None = None,
    num_processes: int | None = None,
    command: str | None = None,
    log_format: str | None = None,
    quiet: bool = False,
    debug: bool = False,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Translate command-line flags into configuration overrides.

    Only flags that were given produce an override, so values from a
    configuration file survive unless explicitly replaced.

    Returns:
        Overrides suitable for ``load_config``.
    """
    overrides: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    logging_overrides: dict[str, object] = {}

    if worker_args:
        overrides["launch_args"] = tuple(worker_args)
    if name is not None:
        overrides["name"] = name
    if pidfile is not None:
        overrides["pid_prefix"] = pidfile
    if max_memory is not None:
        overrides["memory_percent_limit"] = max_memory
    if num_processes is not None:
        overrides["process_count"] = num_processes
    if command is not None:
        overrides["command"] = tuple(shlex.split(command))
    if debug:
        overrides["debug"] = True

    if logfile is not None:
        logging_overrides["file"] = logfile
    if log_format is not None:
        logging_overrides["format"] = log_format
    if quiet:
        logging_overrides["quiet"] = True
    if logging_overrides:
        overrides["logging"] = logging_overrides

    return overrides


async def run_cluster(config: ClusterConfig) -> None:
    """Run a supervisor for ``config`` until it shuts down."""
    supervisor = Supervisor(config)
    await supervisor.run()


def _run(config: ClusterConfig) -> None:
    anyio.run(run_cluster, config)


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="procluster",
        help=HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.default
    def start(  # noqa: PLR0913  # pyright: ignore[reportUnusedFunction]
        *worker_args: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        name: Annotated[
            str | None,
            Parameter(
                name=["--name", "-n"],
                help="The name of this cluster, used when running multiple clusters.",
            ),
        ] = None,
        pidfile: Annotated[
            str | None,
            Parameter(
                name=["--pidfile", "-P"],
                help='Pidfile prefix, eg "/var/www/shared/config/worker.pid".',
            ),
        ] = None,
        logfile: Annotated[
            str | None,
            Parameter(name=["--logfile", "-l"], help="Logfile for the cluster."),
        ] = None,
        max_memory: Annotated[
            float | None,
            Parameter(
                name=["--max-memory", "-M"],
                help="Maximum percent RAM that this cluster should not exceed. "
                "Defaults to 80%.",
            ),
        ] = None,
        num_processes: Annotated[
            int | None,
            Parameter(
                name=["--num-processes", "-N"],
                help="Number of processes to start, defaults to number of cores - 1.",
            ),
        ] = None,
        command: Annotated[
            str | None,
            Parameter(
                name=["--command", "-c"],
                help='Worker command, defaults to "bundle exec sidekiq".',
            ),
        ] = None,
        config: Annotated[
            Path | None,
            Parameter(name="--config", help="Path to a TOML config file."),
        ] = None,
        log_format: Annotated[
            Literal["text", "json"] | None,
            Parameter(name="--log-format", help="Log output format."),
        ] = None,
        quiet: Annotated[
            bool,
            Parameter(name=["--quiet", "-q"], help="Do not log to stdout."),
        ] = False,
        debug: Annotated[
            bool,
            Parameter(
                name=["--debug", "-d"],
                help="Print the effective configuration and log debugging info.",
            ),
        ] = False,
    ) -> None:
        """Start the worker cluster.

        Launches the workers, replaces any that die or outgrow their share
        of memory, and forwards INT, TERM and USR1 to all of them.
        """
        overrides = build_overrides(
            worker_args=worker_args,
            name=name,
            pidfile=pidfile,
            logfile=logfile,
            max_memory=max_memory,
            num_processes=num_processes,
            command=command,
            log_format=log_format,
            quiet=quiet,
            debug=debug,
        )

        try:
            cluster_config = load_config(config, overrides)
        except ConfigError as e:
            error_console.print(f"Error: {e}")
            raise SystemExit(EXIT_FAILURE) from e

        if cluster_config.debug:
            console.print_json(cluster_config.model_dump_json())

        try:
            _run(cluster_config)
        except LaunchError as e:
            error_console.print(f"Error: {e}")
            raise SystemExit(EXIT_FAILURE) from e

    return app


app = create_app()


def main(tokens: Sequence[str] | None = None) -> None:
    """Default entrypoint for the `procluster` CLI.

    Without any arguments the help text is printed instead of starting a
    pool with default settings.

    Args:
        tokens: Command-line arguments. Defaults to ``sys.argv[1:]``.
    """
    if tokens is None:
        tokens = sys.argv[1:]
    app(list(tokens) or ["--help"])


if __name__ == "__main__":
    main()
