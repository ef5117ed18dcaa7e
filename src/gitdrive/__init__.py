"""gitdrive: continuous synchronization of a git working directory.

This package provides the command-line interface, the long-running watcher and
the sync protocol that commits local edits, rebases onto remote edits,
resolves conflicts automatically and pushes, on a fixed polling interval.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    errors,
    git_wrapper,
    notify,
    syncer,
    system,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "errors",
    "git_wrapper",
    "notify",
    "syncer",
    "system",
]
