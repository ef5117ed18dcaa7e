import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from rich.console import Console

from . import daemon
from .config import load_config, parse_policy, parse_time
from .constants import APP_NAME, CONFIG_FILE, LOG_FILE

logger = logging.getLogger(APP_NAME)
console = Console()

DESCRIPTION = """\
Continuously sync modifications to git-tracked files.

Any changes to tracked files in a local git repository (the "watch dir") are
periodically committed, rebased onto the upstream remote and pushed, keeping
the local repo up to date with the remote and persisting changes quickly.
Conflicts are resolved automatically. The remote must be set up for
password-less push or the automation will fail.
"""


def _duration(value: str) -> int:
    """argparse type for durations such as '30s', '5m' or '1h'."""
    try:
        return parse_time(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _policy(value: str) -> str:
    try:
        parse_policy(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return value


def _version() -> str:
    try:
        return version(APP_NAME)
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    """Builds the command line parser.

    Options default to None so that unset flags fall through to the config
    file and then to the built-in defaults.
    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "watch_dir",
        nargs="?",
        type=Path,
        help="directory to watch (default: current directory)",
    )
    parser.add_argument("--remote", help="remote sync repository (default: origin)")
    parser.add_argument(
        "--branch", help="local branch to sync with remote (default: master)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=None,
        help="just sync with remote once, without entering watch mode",
    )
    parser.add_argument(
        "--interval",
        type=_duration,
        help="time between successive sync attempts, e.g. 30s, 5m (default: 1m)",
    )
    parser.add_argument(
        "--no-notify",
        dest="notify",
        action="store_false",
        default=None,
        help="do not show desktop notifications",
    )
    parser.add_argument(
        "--notify-dedup-interval",
        type=_duration,
        help="time during which duplicate notifications are suppressed (default: 1h)",
    )
    parser.add_argument(
        "--conflict-policy",
        type=_policy,
        metavar="{local,remote}",
        help="side that wins conflicting hunks during a rebase (default: local)",
    )
    parser.add_argument(
        "--command-timeout",
        type=_duration,
        help="kill any single git command running longer than this (default: never)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_FILE,
        help=f"configuration file (default: {CONFIG_FILE})",
    )
    parser.add_argument(
        "--log-file",
        action="store_true",
        help=f"also write a rotating log to {LOG_FILE}",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="print the effective configuration and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=_version())
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the gitdrive CLI."""
    args = build_parser().parse_args(argv)

    daemon.setup_logging(
        verbose=args.verbose, log_file=LOG_FILE if args.log_file else None
    )

    try:
        config = load_config(
            args.config,
            remote=args.remote,
            branch=args.branch,
            watch_dir=args.watch_dir,
            once=args.once,
            interval=args.interval,
            notify=args.notify,
            notify_dedup_interval=args.notify_dedup_interval,
            conflict_policy=args.conflict_policy,
            command_timeout=args.command_timeout,
        )
    except ValueError as e:
        console.print(f"[bold red]Config Error:[/bold red] {e}")
        sys.exit(1)

    if args.print_config:
        console.print_json(config.describe())
        return

    if not config.once:
        console.print(
            f"[bold]Watching[/bold] [cyan]{config.watch_dir}[/cyan] "
            f"({config.remote}/{config.branch}, every {config.interval}s)"
        )
    sys.exit(daemon.run(config))


if __name__ == "__main__":
    main()
