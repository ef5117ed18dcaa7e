"""Tests for the configuration management subsystem."""

import dataclasses
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from gitdrive.config import (
    ConflictPolicy,
    SyncConfig,
    load_config,
    parse_policy,
    parse_time,
)


def test_config_defaults() -> None:
    """Verifies that the configuration initializes with the documented defaults."""
    conf = SyncConfig()

    assert conf.remote == "origin"
    assert conf.branch == "master"
    assert conf.watch_dir == Path.cwd()
    assert conf.once is False
    assert conf.interval == 60
    assert conf.notify is True
    assert conf.notify_dedup_interval == 3600
    assert conf.conflict_policy is ConflictPolicy.PREFER_LOCAL
    assert conf.command_timeout is None


def test_config_is_immutable() -> None:
    conf = SyncConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        conf.remote = "upstream"  # type: ignore[misc]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (45, 45),
        ("30", 30),
        ("30s", 30),
        ("5m", 300),
        ("5 mins", 300),
        ("1h", 3600),
        ("1.5hr", 5400),
        ("2d", 172800),
    ],
)
def test_parse_time(value: int | str, expected: int) -> None:
    assert parse_time(value) == expected


@pytest.mark.parametrize("value", ["soon", "-5m", "", "10 parsecs", -1, True])
def test_parse_time_rejects_garbage(value: int | str) -> None:
    with pytest.raises(ValueError):
        parse_time(value)


def test_parse_policy_aliases() -> None:
    """Verifies the accepted spellings and the merge-file flag each maps to."""
    assert parse_policy("local") is ConflictPolicy.PREFER_LOCAL
    assert parse_policy("PREFER_REMOTE") is ConflictPolicy.PREFER_REMOTE
    assert parse_policy("prefer-local").merge_flag == "--theirs"
    assert parse_policy("remote").merge_flag == "--ours"
    with pytest.raises(ValueError):
        parse_policy("both")


def test_load_config_merges_file_and_overrides(tmp_path: Path) -> None:
    """Verifies the layering: defaults -> config file -> explicit overrides."""
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[sync]\n"
        'remote = "upstream"\n'
        'branch = "main"\n'
        'interval = "5m"\n'
        'conflict_policy = "remote"\n'
        "\n"
        "[notify]\n"
        "enabled = false\n"
        'dedup_interval = "2h"\n'
    )

    conf = load_config(config_file, branch="notes", interval=None, watch_dir=tmp_path)

    assert conf.remote == "upstream"
    assert conf.branch == "notes"
    assert conf.interval == 300
    assert conf.conflict_policy is ConflictPolicy.PREFER_REMOTE
    assert conf.notify is False
    assert conf.notify_dedup_interval == 7200
    assert conf.watch_dir == tmp_path.resolve()


def test_load_config_missing_file_uses_defaults(tmp_path: Path) -> None:
    conf = load_config(tmp_path / "absent.toml", watch_dir=tmp_path)
    assert conf.remote == "origin"
    assert conf.interval == 60


def test_load_config_warns_and_falls_back(tmp_path: Path, caplog: MagicMock) -> None:
    """Verifies that unknown keys and bad values are reported, not fatal."""
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[sync]\n"
        'interval = "eventually"\n'
        'remot = "typo"\n'
        "[extra]\n"
        "x = 1\n"
    )

    conf = load_config(config_file, watch_dir=tmp_path)

    assert conf.interval == 60
    assert "Unknown config keys in [sync]: remot" in caplog.text
    assert "Unknown config sections" in caplog.text
    assert "Config error in [sync].interval" in caplog.text


def test_load_config_syntax_error_is_logged(tmp_path: Path, caplog: MagicMock) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[sync\nremote = ")

    conf = load_config(config_file, watch_dir=tmp_path)

    assert conf.remote == "origin"
    assert "Config syntax error" in caplog.text


def test_load_config_zero_timeout_disables_it(tmp_path: Path) -> None:
    disabled = load_config(None, command_timeout=0, watch_dir=tmp_path)
    two_minutes = load_config(None, command_timeout="2m", watch_dir=tmp_path)

    assert disabled.command_timeout is None
    assert two_minutes.command_timeout == 120


def test_load_config_rejects_invalid_override(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config(None, interval="whenever", watch_dir=tmp_path)
    with pytest.raises(TypeError):
        load_config(None, colour="blue")


def test_describe_renders_json(tmp_path: Path) -> None:
    text = SyncConfig(watch_dir=tmp_path).describe()
    assert f'"watch_dir": "{tmp_path}"' in text
    assert '"conflict_policy": "PREFER_LOCAL"' in text


@pytest.mark.parametrize("value", [0, "0s", "0.5s"])
def test_interval_below_one_second_is_rejected(
    tmp_path: Path, value: int | str
) -> None:
    """Verifies that an interval that would busy-loop git is refused."""
    with pytest.raises(ValueError, match="at least one second"):
        load_config(None, interval=value, watch_dir=tmp_path)


def test_interval_zero_in_file_falls_back(tmp_path: Path, caplog: MagicMock) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[sync]\ninterval = 0\n\n[notify]\ndedup_interval = 0\n")

    conf = load_config(config_file, watch_dir=tmp_path)

    assert conf.interval == 60
    assert conf.notify_dedup_interval == 0
    assert "Config error in [sync].interval" in caplog.text
