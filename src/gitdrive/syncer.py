import datetime
import logging
import shutil
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from .config import SyncConfig
from .constants import APP_NAME, CONFLICT_SUFFIXES, SYNC_EVENT
from .errors import (
    BranchNotFoundError,
    ConflictResolutionError,
    GitDriveError,
    GitNotFoundError,
    NotARepositoryError,
    NotificationError,
    RemoteNotFoundError,
    WatchDirError,
)
from .git_wrapper import GitRepo
from .notify import Event, Notifier, build_notifier
from .system import get_watcher_id

logger = logging.getLogger(APP_NAME)


def validate(config: SyncConfig) -> None:
    """Checks the startup preconditions, failing on the first that does not hold.

    Order: watch directory, git executable, repository metadata, remote refs,
    branch ref. Nothing is written.

    Args:
        config (SyncConfig): The settings to validate.

    Raises:
        WatchDirError: The watch directory is missing or not a directory.
        GitNotFoundError: `git` is not on PATH.
        NotARepositoryError: The watch directory has no `.git` directory.
        RemoteNotFoundError: `.git/refs/remotes/<remote>` does not exist.
        BranchNotFoundError: `.git/refs/heads/<branch>` does not exist.
    """
    watch_dir = config.watch_dir
    if not watch_dir.exists():
        raise WatchDirError(f"{watch_dir}: no such directory")
    if not watch_dir.is_dir():
        raise WatchDirError(f"{watch_dir}: not a directory")

    if shutil.which("git") is None:
        raise GitNotFoundError("git: executable not found on PATH")

    git_dir = watch_dir / ".git"
    if not git_dir.exists():
        raise NotARepositoryError(f"{watch_dir}: not a git repository")

    if not (git_dir / "refs" / "remotes" / config.remote).exists():
        raise RemoteNotFoundError(f"{config.remote}: remote does not exist")

    if not (git_dir / "refs" / "heads" / config.branch).exists():
        raise BranchNotFoundError(f"{config.branch}: branch does not exist")


def timestamp() -> str:
    """Returns the current local time in RFC 3339 format (second precision)."""
    return datetime.datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass
class SyncResult:
    """Outcome of a single sync cycle.

    Attributes:
        committed (bool): Local modifications were committed.
        online (bool): The remote answered the connectivity probe.
        remote_commits (int): Commits on the remote branch missing locally.
        rebased (bool): The local branch was rebased onto the remote tip.
        conflicts_resolved (int): Files resolved automatically during the rebase.
        local_commits (int): Commits on the local branch missing on the remote.
        pushed (bool): The branch was pushed successfully.
        error (GitDriveError | None): A failure the cycle recovered from (a
            rebase that failed or was aborted), reported as the cycle's error.
    """

    committed: bool = False
    online: bool = False
    remote_commits: int = 0
    rebased: bool = False
    conflicts_resolved: int = 0
    local_commits: int = 0
    pushed: bool = False
    error: GitDriveError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Synchronizer:
    """Keeps the watch directory in sync with `remote/branch`.

    Attributes:
        config (SyncConfig): The run's settings.
        repo (GitRepo): Command runner bound to the watch directory.
        notifier (Notifier): Receives the end-of-cycle event.
        watcher_id (str): Identity embedded in every commit message.
    """

    def __init__(
        self,
        config: SyncConfig,
        repo: GitRepo,
        notifier: Notifier,
        watcher_id: str,
    ):
        self.config = config
        self.repo = repo
        self.notifier = notifier
        self.watcher_id = watcher_id
        self.cycles = 0

    @classmethod
    def create(cls, config: SyncConfig) -> "Synchronizer":
        """Validates the settings and wires up a ready-to-run Synchronizer.

        Raises:
            ValidationError: If a startup precondition does not hold.
        """
        logger.debug(f"options:\n{config.describe()}")
        validate(config)
        return cls(
            config=config,
            repo=GitRepo(config.watch_dir, timeout=config.command_timeout),
            notifier=build_notifier(config),
            watcher_id=get_watcher_id(config.watch_dir),
        )

    @property
    def upstream(self) -> str:
        return f"{self.config.remote}/{self.config.branch}"

    def run(self, stop: threading.Event | None = None) -> int:
        """Runs sync cycles until done.

        In run-once mode exactly one cycle runs. Otherwise cycles repeat every
        `interval` seconds until `stop` is set; the sleep between cycles wakes
        up as soon as it is. Cycle failures are logged and never end the loop.

        Args:
            stop (threading.Event | None): Shutdown signal. Defaults to None
                (run until the process is terminated).

        Returns:
            int: The number of cycles executed by this call.

        Raises:
            RuntimeError: If a run-once Synchronizer has already synced.
        """
        if self.config.once and self.cycles:
            raise RuntimeError("run-once synchronizer has already completed its cycle")

        stop = stop or threading.Event()
        executed = 0
        while not stop.is_set():
            self._cycle()
            executed += 1

            if self.config.once:
                break
            stop.wait(self.config.interval)

        return executed

    def _cycle(self) -> None:
        self.cycles += 1
        try:
            result = self.sync()
            if not result.ok:
                logger.error(f"sync failed: {result.error}")
        except GitDriveError as e:
            logger.error(f"sync failed: {e}")

        try:
            self.notifier.notify(
                Event(SYNC_EVENT), f"finished sync of {self.config.watch_dir}"
            )
        except NotificationError as e:
            logger.warning(f"Could not deliver notification: {e}")

    def sync(self) -> SyncResult:
        """Executes one pass of the sync protocol.

        1. Check out the branch.
        2. Commit modified tracked files.
        3. Probe the remote; if unreachable, stop here.
        4. Fetch and, if the remote is ahead, rebase and resolve conflicts
           (aborting a rebase left in progress if it cannot complete).
        5. Push if the local branch is ahead.

        Returns:
            SyncResult: What the cycle did. `error` is set when the rebase
            could not be completed.

        Raises:
            GitDriveError: If a step outside conflict resolution and push fails.
        """
        conf = self.config
        result = SyncResult()
        logger.info(f"syncing {conf.watch_dir} ...")

        self.repo.checkout(conf.branch)
        result.committed = self._commit_local_changes()

        result.online = self._has_connectivity()
        if not result.online:
            logger.info(f"OFFLINE {conf.remote}: unreachable, rebase and push skipped.")
            return result

        logger.debug("fetching remote changes ...")
        self.repo.fetch(conf.remote, conf.branch)
        result.remote_commits = self.repo.rev_count(conf.branch, self.upstream)
        if result.remote_commits == 0:
            logger.info("no remote changes")
        else:
            logger.info(
                f"rebasing onto {result.remote_commits} remote commit(s) ..."
            )
            stopped = self.repo.rebase(self.upstream)
            try:
                result.conflicts_resolved = self.resolve_conflicts(stopped)
                result.rebased = True
            except ConflictResolutionError as e:
                result.error = e
                if self.repo.rebase_in_progress():
                    logger.error(f"aborting rebase: {e}")
                    self.repo.rebase_abort()
                else:
                    logger.error(f"rebase did not start: {e}")

        result.local_commits = self.repo.rev_count(self.upstream, conf.branch)
        if result.local_commits > 0:
            result.pushed = self._push()
        else:
            logger.debug("nothing to push")

        return result

    def _commit_local_changes(self) -> bool:
        modified = self.repo.modified_files()
        if not modified:
            logger.info("no local changes")
            return False

        logger.info(f"committing {len(modified)} modified file(s) ...")
        self.repo.add(modified)
        self.repo.commit(f"{self.watcher_id}: {timestamp()}")
        return True

    def _has_connectivity(self) -> bool:
        try:
            self.repo.ls_remote_heads(self.config.remote)
        except GitDriveError as e:
            logger.debug(f"connectivity probe failed: {e}")
            return False
        return True

    def _push(self) -> bool:
        # Push failures are reported but never fail the cycle; the next cycle
        # retries.
        logger.debug("pushing local changes ...")
        try:
            self.repo.push(self.config.remote, self.config.branch)
        except GitDriveError as e:
            logger.error(f"PUSH ERROR {self.upstream}: {e}")
            return False
        logger.info(f"SUCCESS: pushed to {self.upstream}")
        return True

    def resolve_conflicts(self, stopped: str | None = None) -> int:
        """Resolves every conflict of the rebase in progress.

        Each conflicted file is re-merged from its three stages with the
        configured policy deciding conflicting hunks, then staged. After each
        pass the rebase continues, which may stop again on the next commit;
        the loop ends once the rebase runs to completion.

        Args:
            stopped (str | None): git's output if the last rebase command
                stopped, None if it completed.

        Returns:
            int: The number of file resolutions performed.

        Raises:
            ConflictResolutionError: If any step fails, or the rebase stopped
                with no unmerged paths to resolve.
        """
        resolved = 0
        try:
            while True:
                conflicts = self.repo.unmerged_files()
                if not conflicts:
                    if stopped is not None:
                        raise ConflictResolutionError(
                            f"rebase stopped with nothing to resolve: {stopped}"
                        )
                    return resolved

                for path in conflicts:
                    self._resolve_file(path)
                    resolved += 1

                stopped = self.repo.rebase_continue()
        except ConflictResolutionError:
            raise
        except GitDriveError as e:
            raise ConflictResolutionError(str(e)) from e
        except OSError as e:
            raise ConflictResolutionError(f"i/o error: {e}") from e

    def _resolve_file(self, path: str) -> None:
        logger.debug(f"resolving conflict in {path} ...")
        target = self.config.watch_dir / path
        stages = {
            suffix: target.with_name(f"{target.name}.{suffix}")
            for suffix in CONFLICT_SUFFIXES
        }

        present = self.repo.conflict_stages(path)
        if not present:
            raise ConflictResolutionError(f"{path}: no merge stages recorded")
        missing = [
            suffix
            for stage, suffix in enumerate(CONFLICT_SUFFIXES, start=1)
            if stage not in present
        ]
        if missing:
            # add/add or modify/delete
            logger.warning(
                f"{path}: no {'/'.join(missing)} version, merging against empty content"
            )

        with ExitStack() as cleanup:
            for stage, suffix in enumerate(CONFLICT_SUFFIXES, start=1):
                stage_file = stages[suffix]
                cleanup.callback(stage_file.unlink, missing_ok=True)
                content = self.repo.show_stage(stage, path) if stage in present else ""
                _write(stage_file, content)

            merged = self.repo.merge_file(
                self._relative(stages["ours"]),
                self._relative(stages["common"]),
                self._relative(stages["theirs"]),
                self.config.conflict_policy.merge_flag,
            )
            _write(target, merged)
            self.repo.add([path])

    def _relative(self, path: Path) -> Path:
        return path.relative_to(self.config.watch_dir)


def _write(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(content)
