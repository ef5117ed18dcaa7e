import logging
import socket
import subprocess
import sys
from pathlib import Path

from .constants import APP_NAME
from .errors import NotificationError

logger = logging.getLogger(APP_NAME)


class NotificationStrategy:
    """Base class defining the interface for OS-level notification delivery.

    Platforms without a known delivery mechanism use this base class directly,
    which refuses every notification.
    """

    def notify(self, title: str, message: str) -> None:
        """Sends a desktop notification.

        Args:
            title (str): The notification title.
            message (str): The notification body text.

        Raises:
            NotificationError: If the notification could not be delivered.
        """
        raise NotificationError(f"Desktop notifications unsupported on {sys.platform}")

    @staticmethod
    def _deliver(cmd: list[str]) -> None:
        try:
            res = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise NotificationError(f"{cmd[0]} unavailable: {e}") from e
        if res.returncode != 0:
            raise NotificationError(
                f"{cmd[0]} exited {res.returncode}: {(res.stderr or '').strip()}"
            )


class MacOSStrategy(NotificationStrategy):
    """Notification delivery for macOS."""

    def notify(self, title: str, message: str) -> None:
        """Sends a notification using AppleScript."""
        # Sanitize quotes to prevent AppleScript syntax errors.
        clean_msg = message.replace('"', "'")
        clean_title = title.replace('"', "'")
        script = f'display notification "{clean_msg}" with title "{clean_title}"'
        self._deliver(["osascript", "-e", script])


class LinuxStrategy(NotificationStrategy):
    """Notification delivery for Linux (libnotify)."""

    def notify(self, title: str, message: str) -> None:
        """Sends a notification using `notify-send`."""
        self._deliver(["notify-send", title, message])


def get_notification_strategy() -> NotificationStrategy:
    """Factory function to retrieve the platform-specific notification strategy.

    Returns:
        NotificationStrategy: An instance of MacOSStrategy, LinuxStrategy, or the
        base NotificationStrategy depending on the operating system.
    """
    if sys.platform == "darwin":
        return MacOSStrategy()
    elif sys.platform.startswith("linux"):
        return LinuxStrategy()
    else:
        return NotificationStrategy()


def get_hostname() -> str:
    """Returns the short host name of this machine."""
    return socket.gethostname().split(".")[0]


def get_watcher_id(watch_dir: Path) -> str:
    """Builds the identity that tags this watcher's commits.

    Format: {hostname}:{watch_dir}
    Example: 'laptop:/home/me/notes'

    Distinguishes watchers of the same repository running on different
    machines (or on different checkouts of one machine).
    """
    return f"{get_hostname()}:{watch_dir}"
