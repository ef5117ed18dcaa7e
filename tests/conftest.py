"""Shared fixtures: a scripted stand-in for the git executable."""

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from gitdrive.config import SyncConfig
from gitdrive.git_wrapper import GitRepo
from gitdrive.syncer import Synchronizer


@dataclass
class Reply:
    """A canned git response."""

    stdout: str = ""
    returncode: int = 0
    stderr: str = ""
    effect: Callable[[list[str]], str | None] | None = None


class FakeGit:
    """Records git invocations and answers them from scripted replies.

    Replies are registered against an argument prefix; the longest matching
    prefix wins. A list of replies is consumed in order, the last one repeating.
    Unscripted commands succeed with empty output, except `rev-list --count`
    which answers "0".
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._rules: dict[tuple[str, ...], list[Reply]] = {}

    def on(
        self, *prefix: str, replies: list[Reply] | None = None, **reply: Any
    ) -> None:
        self._rules[prefix] = list(replies) if replies else [Reply(**reply)]

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        args = list(cmd[1:])
        self.calls.append(args)

        reply = Reply(stdout="0") if args[:2] == ["rev-list", "--count"] else Reply()
        matches = [p for p in self._rules if tuple(args[: len(p)]) == p]
        if matches:
            queue = self._rules[max(matches, key=len)]
            reply = queue.pop(0) if len(queue) > 1 else queue[0]

        stdout = reply.stdout
        if reply.effect is not None:
            computed = reply.effect(args)
            if computed is not None:
                stdout = computed
        return subprocess.CompletedProcess(
            cmd, reply.returncode, stdout=stdout, stderr=reply.stderr
        )

    def issued(self, *prefix: str) -> list[list[str]]:
        """Returns every recorded call starting with `prefix`."""
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


@pytest.fixture
def fake_git(mocker: MagicMock) -> FakeGit:
    """Routes every git command issued by GitRepo to a FakeGit."""
    fake = FakeGit()
    mocker.patch("gitdrive.git_wrapper.subprocess.run", side_effect=fake)
    return fake


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """A watch directory laid out like a clone of origin/master."""
    (tmp_path / ".git" / "refs" / "remotes" / "origin").mkdir(parents=True)
    (tmp_path / ".git" / "refs" / "heads").mkdir(parents=True)
    (tmp_path / ".git" / "refs" / "heads" / "master").write_text("0" * 40 + "\n")
    return tmp_path


@pytest.fixture
def make_syncer(repo_dir: Path) -> Callable[..., Synchronizer]:
    """Builds a Synchronizer over `repo_dir` with a mock notifier."""

    def factory(notifier: Any = None, **overrides: Any) -> Synchronizer:
        config = SyncConfig(watch_dir=repo_dir, **overrides)
        return Synchronizer(
            config=config,
            repo=GitRepo(repo_dir),
            notifier=notifier if notifier is not None else MagicMock(),
            watcher_id="laptop:/home/me/notes",
        )

    return factory
