import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from rich.console import Console

from .config import SyncConfig, load_config
from .constants import APP_NAME, LOG_FILE, MAX_LOG_SIZE
from .errors import ValidationError
from .syncer import Synchronizer

logger = logging.getLogger(APP_NAME)

err_console = Console(stderr=True)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool, optional): Log at DEBUG instead of INFO. Defaults to False.
        log_file (Path | None, optional): Also log to this file, with rotation.
            Defaults to None (stderr only).
    """
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to stderr (captured by systemd/launchd).
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_SIZE, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def install_signal_handlers(stop: threading.Event) -> None:
    """Turns SIGTERM and SIGINT into a request to stop after the current cycle.

    A second signal while stopping raises KeyboardInterrupt so a hung git
    command can still be escaped.
    """

    def handler(signum: int, _frame: FrameType | None) -> None:
        if stop.is_set():
            raise KeyboardInterrupt
        logger.info(f"Received {signal.Signals(signum).name}, stopping ...")
        stop.set()

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGINT, handler)


def run(config: SyncConfig, stop: threading.Event | None = None) -> int:
    """Validates the configuration and runs the synchronizer.

    Args:
        config (SyncConfig): The run's settings.
        stop (threading.Event | None, optional): Shutdown signal. When omitted,
            one is created and wired to SIGTERM/SIGINT.

    Returns:
        int: The process exit status (0 on a clean stop, 1 on failure).
    """
    try:
        syncer = Synchronizer.create(config)
    except ValidationError as e:
        logger.error(f"FATAL: {e}")
        err_console.print(f"[bold red]FATAL:[/bold red] {e}")
        return 1

    if stop is None:
        stop = threading.Event()
        install_signal_handlers(stop)

    try:
        cycles = syncer.run(stop)
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return 1
    except Exception:
        logger.exception("LOOP ERROR")
        return 1

    logger.debug(f"stopped after {cycles} cycle(s)")
    return 0


def main() -> None:
    """Runs a watcher from the config file alone, logging to the state directory."""
    setup_logging(log_file=LOG_FILE)
    sys.exit(run(load_config()))


if __name__ == "__main__":
    main()
