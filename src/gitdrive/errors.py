"""Exception taxonomy for gitdrive.

Startup failures derive from `ValidationError` and stop the process. Everything
raised while a sync cycle runs derives from `GitDriveError` so the run loop can
log it and carry on with the next cycle.
"""

from collections.abc import Sequence


class GitDriveError(Exception):
    """Base class for all gitdrive errors."""


class ValidationError(GitDriveError):
    """A startup precondition does not hold."""


class WatchDirError(ValidationError):
    """The watch directory is missing or not a directory."""


class GitNotFoundError(ValidationError):
    """The git executable could not be found on PATH."""


class NotARepositoryError(ValidationError):
    """The watch directory has no .git metadata directory."""


class RemoteNotFoundError(ValidationError):
    """The configured remote has no refs under .git/refs/remotes."""


class BranchNotFoundError(ValidationError):
    """The configured branch has no ref under .git/refs/heads."""


class CommandError(GitDriveError):
    """A git command failed, could not be spawned, or timed out.

    Attributes:
        command (list[str]): The full argument vector, including `git`.
        returncode (int | None): The exit status, or None if the process never
            completed.
        output (str): Captured stdout and stderr.
    """

    def __init__(
        self, command: Sequence[str], returncode: int | None, output: str = ""
    ):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        cmd = " ".join(self.command)
        status = "did not complete" if returncode is None else f"exit {returncode}"
        message = f"failed to exec '{cmd}' ({status})"
        if output.strip():
            message += f"\n\n{output.strip()}"
        super().__init__(message)


class CountParseError(GitDriveError):
    """`git rev-list --count` returned something that is not an integer."""


class ConflictResolutionError(GitDriveError):
    """Automatic conflict resolution could not complete."""


class NotificationError(GitDriveError):
    """A notification could not be delivered to the user."""
