import json
import logging
import re
import tomllib
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    DEFAULT_DEDUP_INTERVAL,
    DEFAULT_INTERVAL,
    DEFAULT_REMOTE,
)

logger = logging.getLogger(APP_NAME)


class ConflictPolicy(Enum):
    """Which side wins a conflicting hunk during automatic resolution.

    While rebasing, git records the upstream commit being rebased onto as
    stage 2 ("ours") and the local commit being replayed as stage 3
    ("theirs"). The enum value is therefore the `git merge-file` flag that
    favours the named side.
    """

    PREFER_LOCAL = "--theirs"
    PREFER_REMOTE = "--ours"

    @property
    def merge_flag(self) -> str:
        return self.value


def parse_time(value: int | float | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Negative duration '{value}'")
        return int(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr|d|day)?s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2) or "s"
    multiplier = {
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
        "d": 86400,
        "day": 86400,
    }
    return int(num * multiplier[unit])


def parse_policy(value: str | ConflictPolicy) -> ConflictPolicy:
    """Converts 'local'/'remote' (or an enum member name) to a ConflictPolicy."""
    if isinstance(value, ConflictPolicy):
        return value
    key = str(value).strip().lower().replace("-", "_")
    aliases = {
        "local": ConflictPolicy.PREFER_LOCAL,
        "prefer_local": ConflictPolicy.PREFER_LOCAL,
        "remote": ConflictPolicy.PREFER_REMOTE,
        "prefer_remote": ConflictPolicy.PREFER_REMOTE,
    }
    if key not in aliases:
        raise ValueError(f"Unknown conflict policy '{value}' (use 'local' or 'remote')")
    return aliases[key]


def parse_bool(value: bool | str) -> bool:
    """Accepts real booleans and the usual string spellings."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean '{value}'")


@dataclass(frozen=True)
class SyncConfig:
    """Immutable per-run synchronization settings.

    Attributes:
        remote (str): The remote to fetch from and push to.
        branch (str): The local branch kept in sync with `remote/branch`.
        watch_dir (Path): The working directory being kept live.
        once (bool): Run a single sync cycle and exit.
        interval (int): Seconds to sleep between cycles (at least one).
        notify (bool): Deliver desktop notifications.
        notify_dedup_interval (int): Seconds during which a repeated
            notification event is suppressed.
        conflict_policy (ConflictPolicy): Side that wins conflicting hunks.
        command_timeout (int | None): Per-command timeout in seconds, or None
            to wait for every git command indefinitely.
    """

    remote: str = DEFAULT_REMOTE
    branch: str = DEFAULT_BRANCH
    watch_dir: Path = field(default_factory=Path.cwd)
    once: bool = False
    interval: int = DEFAULT_INTERVAL
    notify: bool = True
    notify_dedup_interval: int = DEFAULT_DEDUP_INTERVAL
    conflict_policy: ConflictPolicy = ConflictPolicy.PREFER_LOCAL
    command_timeout: int | None = None

    def describe(self) -> str:
        """Renders the settings as indented JSON (for debug logging)."""
        data = asdict(self)
        data["watch_dir"] = str(self.watch_dir)
        data["conflict_policy"] = self.conflict_policy.name
        return json.dumps(data, indent=2)


# TOML table -> SyncConfig field for every recognised key.
_TOML_KEYS: dict[str, dict[str, str]] = {
    "sync": {
        "remote": "remote",
        "branch": "branch",
        "watch_dir": "watch_dir",
        "once": "once",
        "interval": "interval",
        "conflict_policy": "conflict_policy",
        "command_timeout": "command_timeout",
    },
    "notify": {
        "enabled": "notify",
        "dedup_interval": "notify_dedup_interval",
    },
}


def _coerce(name: str, value: Any) -> Any:
    """Routes a raw value through the parser matching its field."""
    if name == "command_timeout":
        # 0 disables the timeout
        return parse_time(value) or None
    if name == "interval":
        seconds = parse_time(value)
        if seconds <= 0:
            raise ValueError(f"interval must be at least one second, got '{value}'")
        return seconds
    if name == "notify_dedup_interval":
        return parse_time(value)
    if name in ("once", "notify"):
        return parse_bool(value)
    if name == "conflict_policy":
        return parse_policy(value)
    if name == "watch_dir":
        return Path(value).expanduser().resolve()
    if name in ("remote", "branch"):
        text = str(value).strip()
        if not text:
            raise ValueError("must not be empty")
        return text
    return value


def _read_file(path: Path) -> dict[str, Any]:
    """Parses the TOML config file into SyncConfig field updates.

    Invalid keys and values are reported and skipped; a file that cannot be
    parsed at all is ignored.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Config syntax error in {path}: {e}")
        return {}
    except OSError as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return {}

    updates: dict[str, Any] = {}
    unknown_sections = set(data) - set(_TOML_KEYS)
    if unknown_sections:
        logger.warning(
            f"Unknown config sections in {path}: "
            f"{', '.join(sorted(unknown_sections))}. Ignoring."
        )

    for section, keys in _TOML_KEYS.items():
        table = data.get(section, {})
        if not isinstance(table, dict):
            logger.warning(f"Config error in {path}: [{section}] is not a table.")
            continue

        invalid_keys = set(table) - set(keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for key, name in keys.items():
            if key not in table:
                continue
            try:
                updates[name] = _coerce(name, table[key])
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section}].{key}: {e}. Falling back to default."
                )

    return updates


def load_config(config_file: Path | None = CONFIG_FILE, **overrides: Any) -> SyncConfig:
    """Builds the run's SyncConfig from defaults, the config file and overrides.

    Args:
        config_file (Path | None): TOML file to merge over the defaults. Missing
            files are skipped silently; None skips the file layer entirely.
        **overrides: SyncConfig field values (typically CLI flags). Entries whose
            value is None are treated as "not given".

    Returns:
        SyncConfig: The fully merged, immutable configuration.

    Raises:
        ValueError: If an override is not a valid value for its field.
        TypeError: If an override names an unknown field.
    """
    config = SyncConfig()

    if config_file is not None and config_file.exists():
        config = replace(config, **_read_file(config_file))

    known = {f.name for f in fields(SyncConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown config fields: {', '.join(sorted(unknown))}")

    explicit = {k: _coerce(k, v) for k, v in overrides.items() if v is not None}
    return replace(config, **explicit)
