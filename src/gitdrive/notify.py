"""User notifications for gitdrive.

Three notifiers share one capability, `notify(event, message)`:

* `NoOpNotifier` swallows everything.
* `DesktopNotifier` hands the message to the OS notification facility.
* `DedupNotifier` wraps either of them and suppresses an event that already
  fired within its window.

`build_notifier` composes them from a `SyncConfig`.
"""

import logging
import time
from collections.abc import Callable
from typing import NewType, Protocol

from .config import SyncConfig
from .constants import APP_NAME
from .system import NotificationStrategy, get_notification_strategy

logger = logging.getLogger(APP_NAME)

Event = NewType("Event", str)
"""An opaque label identifying a class of notification; the dedup key."""


class Notifier(Protocol):
    def notify(self, event: Event, message: str) -> None:
        """Delivers `message` for `event`.

        Raises:
            NotificationError: If delivery failed.
        """
        ...


class NoOpNotifier:
    """A notifier that always succeeds and does nothing."""

    def notify(self, event: Event, message: str) -> None:
        pass


class DesktopNotifier:
    """Shows notifications through the platform's desktop notification service.

    Attributes:
        strategy (NotificationStrategy): The OS-specific delivery mechanism.
    """

    def __init__(self, strategy: NotificationStrategy | None = None):
        self.strategy = strategy or get_notification_strategy()

    def notify(self, event: Event, message: str) -> None:
        self.strategy.notify(f"{APP_NAME}: {event}", message)


class DedupNotifier:
    """Suppresses repeats of an event within a time window.

    The last time each event actually fired is kept per instance. A suppressed
    call succeeds without delegating or touching that state; a delegated call
    that raises leaves the state untouched, so the next attempt is not held
    back by a notification the user never saw.

    Attributes:
        wrapped (Notifier): The notifier that performs delivery.
        window (float): Seconds during which a fired event is suppressed.
            Zero or less disables suppression.
    """

    def __init__(
        self,
        wrapped: Notifier,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.wrapped = wrapped
        self.window = window
        self._clock = clock
        self._fired: dict[Event, float] = {}

    def last_fired(self, event: Event) -> float | None:
        """Returns the clock reading at which `event` last fired, if ever."""
        return self._fired.get(event)

    def notify(self, event: Event, message: str) -> None:
        last = self._fired.get(event)
        if last is not None:
            now = self._clock()
            until = last + self.window
            if now < until:
                logger.debug(
                    f"Notification dedup: '{event}' suppressed for {until - now:.0f}s"
                )
                return

        self.wrapped.notify(event, message)
        self._fired[event] = self._clock()


def build_notifier(config: SyncConfig) -> DedupNotifier:
    """Composes the notifier chain for a run.

    Returns:
        DedupNotifier: Desktop delivery when notifications are enabled, a
        no-op sink otherwise, wrapped in the dedup window either way.
    """
    sink: Notifier = DesktopNotifier() if config.notify else NoOpNotifier()
    return DedupNotifier(sink, config.notify_dedup_interval)
