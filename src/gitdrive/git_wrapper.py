import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME, GIT_ENV
from .errors import CommandError, CountParseError

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for the watch directory.

    Every command is issued as a structured argument vector (no shell), one at
    a time, and awaited to completion. Git is forced into non-interactive mode
    so that a missing credential or an editor prompt fails the command instead
    of hanging the watcher.

    Attributes:
        path (Path): The file system path to the repository root.
        timeout (float | None): Seconds after which a single command is killed,
            or None to wait indefinitely.
    """

    def __init__(self, path: Path, timeout: float | None = None):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            timeout (float | None, optional): Per-command timeout. Defaults to None.
        """
        self.path = path
        self.timeout = timeout
        self._env = {**os.environ, **GIT_ENV}

    def _exec(
        self, args: list[str], merge_stderr: bool = True
    ) -> subprocess.CompletedProcess:
        """Runs `git <args>` in the repository and returns the completed process.

        Args:
            args (list[str]): Arguments passed to git.
            merge_stderr (bool, optional): Fold stderr into stdout. Defaults to True.

        Raises:
            CommandError: If git cannot be spawned or the timeout expires.
        """
        cmd = ["git", *args]
        logger.debug(" ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=self.path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="surrogateescape",
                env=self._env,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output if isinstance(e.output, str) else ""
            raise CommandError(cmd, None, output) from e
        except OSError as e:
            raise CommandError(cmd, None, str(e)) from e

    def _run(self, args: list[str], check: bool = True) -> str:
        """Executes a Git command and returns its combined output.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            check (bool, optional): Raise on a non-zero exit. Defaults to True.

        Returns:
            str: The stripped stdout and stderr of the command.

        Raises:
            CommandError: If the command fails and `check` is True.
        """
        res = self._exec(args)
        output = res.stdout or ""
        if check and res.returncode != 0:
            raise CommandError(["git", *args], res.returncode, output)
        return output.strip()

    def _capture(self, args: list[str]) -> str:
        """Executes a Git command and returns its raw, unstripped stdout.

        Used where stdout is file content; stderr is kept apart so diagnostics
        never leak into the content.

        Raises:
            CommandError: If the command exits non-zero.
        """
        res = self._exec(args, merge_stderr=False)
        if res.returncode != 0:
            raise CommandError(["git", *args], res.returncode, res.stderr or "")
        return res.stdout or ""

    @staticmethod
    def _split_z(output: str) -> list[str]:
        return [p for p in output.split("\0") if p.strip()]

    def checkout(self, branch: str) -> None:
        """Checks out the given branch."""
        self._run(["checkout", branch])

    def modified_files(self) -> list[str]:
        """Lists tracked files whose working copy differs from the index.

        Untracked files are never included.
        """
        files = self._split_z(self._capture(["ls-files", "--modified", "-z"]))
        return list(dict.fromkeys(files))

    def add(self, paths: list[str]) -> None:
        """Stages the given paths."""
        if not paths:
            return
        self._run(["add", "--", *paths])

    def commit(self, message: str) -> None:
        """Creates a commit from the index with the provided message."""
        self._run(["commit", "-m", message])

    def ls_remote_heads(self, remote: str) -> str:
        """Lists the branch heads of a remote; raises if the remote is unreachable."""
        return self._run(["ls-remote", "--exit-code", "--heads", remote])

    def fetch(self, remote: str, branch: str) -> None:
        """Fetches a single branch from the remote."""
        self._run(["fetch", remote, branch])

    def rev_count(self, since: str, until: str) -> int:
        """Counts commits reachable from `until` but not from `since`.

        Raises:
            CountParseError: If git's output is not an integer.
        """
        output = self._run(["rev-list", "--count", f"{since}..{until}"])
        try:
            return int(output)
        except ValueError as e:
            raise CountParseError(
                f"unexpected rev-list output for {since}..{until}: {output!r}"
            ) from e

    def _rebase(self, args: list[str]) -> str | None:
        res = self._exec(["rebase", *args])
        if res.returncode == 0:
            return None
        output = (res.stdout or "").strip()
        logger.debug(f"rebase stopped: {output}")
        return output

    def rebase(self, upstream: str) -> str | None:
        """Rebases the current branch onto `upstream`.

        A rebase that stops (on conflicts, or because git refused to start it)
        is not raised; the caller inspects the unmerged paths and decides.

        Returns:
            str | None: None if the rebase completed, otherwise git's output.
        """
        return self._rebase([upstream])

    def rebase_continue(self) -> str | None:
        """Continues a stopped rebase with the staged resolution.

        Replaying the next commit may stop on a new batch of conflicts, which
        is reported the same way as by `rebase`.

        Returns:
            str | None: None if the rebase completed, otherwise git's output.
        """
        return self._rebase(["--continue"])

    def rebase_abort(self) -> None:
        """Aborts the rebase in progress, restoring the pre-rebase branch."""
        self._run(["rebase", "--abort"])

    def rebase_in_progress(self) -> bool:
        """Reports whether a stopped rebase is waiting in the repository."""
        git_dir = self.path / ".git"
        return (git_dir / "rebase-merge").exists() or (
            git_dir / "rebase-apply"
        ).exists()

    def unmerged_files(self) -> list[str]:
        """Lists paths currently marked as unmerged (conflicted)."""
        return self._split_z(
            self._capture(["diff", "--name-only", "--diff-filter=U", "-z"])
        )

    def conflict_stages(self, path: str) -> set[int]:
        """Returns the merge stages (1, 2 and/or 3) recorded for `path`.

        Add/add conflicts have no stage 1; modify/delete conflicts lack the
        side that deleted the file.
        """
        output = self._capture(["ls-files", "--unmerged", "-z", "--", path])
        stages = set()
        for entry in self._split_z(output):
            # "<mode> <object> <stage>\t<path>"
            meta = entry.split("\t", 1)[0].split()
            if len(meta) == 3 and meta[2].isdigit():
                stages.add(int(meta[2]))
        return stages

    def show_stage(self, stage: int, path: str) -> str:
        """Returns the content of `path` at the given merge stage (1, 2 or 3)."""
        return self._capture(["show", f":{stage}:{path}"])

    def merge_file(self, current: Path, base: Path, other: Path, favor: str) -> str:
        """Runs a three-way file merge and returns the merged content.

        Args:
            current (Path): The "ours" version.
            base (Path): The common ancestor.
            other (Path): The "theirs" version.
            favor (str): `--ours`, `--theirs` or `--union`; decides conflicting
                hunks so the merge always completes.

        Returns:
            str: The merged file content.
        """
        return self._capture(
            ["merge-file", "-p", favor, str(current), str(base), str(other)]
        )

    def push(self, remote: str, branch: str) -> None:
        """Pushes the branch to the remote."""
        self._run(["push", remote, branch])
