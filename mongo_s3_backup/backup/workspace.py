"""
Scratch directory handling for one pipeline run.

A Workspace owns two paths under the temp root: the dump directory of the
database and the archive file of the run. The archive file is named after the
last component of the archive key, so keys under a sub-prefix stay flat
locally. Used as a context manager it is the supervisory boundary of a run:
whatever is raised inside the block, including transport faults from an S3
transfer, cleanup runs before the exception leaves the block.
"""

import os
import posixpath
import shutil
from typing import Callable, Optional

from .tools import log_message


class WorkspaceError(Exception):
    """Raised when workspace paths cannot be created or removed."""
    pass


def remove_path(target: str, log: Optional[Callable] = None):
    """
    Remove a file or directory recursively. Absence is not an error.

    Raises:
        WorkspaceError: If the path exists but cannot be removed
    """
    log = log or log_message

    if not os.path.lexists(target):
        return

    log(f"Removing {target}")
    try:
        if os.path.isdir(target) and not os.path.islink(target):
            shutil.rmtree(target)
        else:
            os.remove(target)
    except OSError as e:
        raise WorkspaceError(f"Failed to remove {target}: {e}")


class Workspace:
    """Dump directory and archive file of one backup or restore run."""

    def __init__(self, temp_root: str, source_name: str, archive_name: str,
                 log: Optional[Callable] = None):
        self.temp_root = temp_root
        self.source_name = source_name
        self.archive_name = archive_name
        self.dump_dir = os.path.join(temp_root, source_name)
        self.archive_file = posixpath.basename(archive_name)
        self.archive_path = os.path.join(temp_root, self.archive_file)
        self._log = log or log_message

    @property
    def paths(self):
        return [self.dump_dir, self.archive_path]

    def prepare(self):
        """
        Create the temp root and clear leftovers of an earlier failed run.

        Raises:
            WorkspaceError: If the root cannot be created or a stale path removed
        """
        try:
            os.makedirs(self.temp_root, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Failed to create temp directory {self.temp_root}: {e}")

        for path in self.paths:
            remove_path(path, self._log)

    def cleanup(self):
        """Remove the dump directory and archive file. Errors are logged only."""
        for path in self.paths:
            try:
                remove_path(path, self._log)
            except WorkspaceError as e:
                self._log(f"Warning: {e}", 'error')

    def __enter__(self):
        try:
            self.prepare()
        except WorkspaceError:
            self.cleanup()
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.cleanup()
        # Never swallow the original error
        return False
