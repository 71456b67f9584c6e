"""File collection: turns file and directory arguments into a work set.

:func:`collect_files` resolves every argument to an absolute path, keeps
explicit arguments that are regular files, walks directory arguments to
unbounded depth, and returns the union as a ``frozenset``.  Bad arguments are
logged at ``WARNING`` and skipped; they never abort collection of the rest.

Type checks use ``lstat`` semantics: symbolic links are neither files nor
directories, so they are never followed.  Sockets, FIFOs and device nodes
are skipped during traversal.
"""
from __future__ import annotations

import logging
import os
import stat as statmod
from collections.abc import Iterable, Iterator

from clamsweep.core.paths import resolve_path

logger = logging.getLogger(__name__)

WorkSet = frozenset[str]


def _lstat_mode(path: str) -> int | None:
    try:
        return os.lstat(path).st_mode
    except OSError:
        return None


def iter_directory(root: str) -> Iterator[str]:
    """Yield every regular file below *root*, depth first.

    Uses an explicit stack instead of recursion so deep trees cannot hit the
    interpreter's recursion limit.  Directories that cannot be listed are
    logged and skipped.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", current, exc)
            continue

        subdirs: list[str] = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                elif entry.is_file(follow_symlinks=False):
                    yield entry.path
            except OSError:
                # Entry vanished between listing and stat.
                continue
        # Reversed so traversal visits subdirectories in listing order.
        stack.extend(reversed(subdirs))


def collect_files(
    files: Iterable[str] | None = None,
    directories: Iterable[str] | None = None,
) -> WorkSet:
    """Build the deduplicated set of absolute file paths to scan.

    Args:
        files: File arguments, absolute or relative to the working directory.
        directories: Directory arguments, walked recursively.

    Returns:
        A ``frozenset`` of absolute paths of regular files.  Iteration order
        is unspecified.
    """
    collected: set[str] = set()

    for file in files or ():
        abs_path = resolve_path(file)
        mode = _lstat_mode(abs_path)
        if mode is not None and statmod.S_ISREG(mode):
            collected.add(abs_path)
        else:
            logger.warning("File not found or is not a file: %s", abs_path)

    for directory in directories or ():
        abs_dir = resolve_path(directory)
        mode = _lstat_mode(abs_dir)
        if mode is not None and statmod.S_ISDIR(mode):
            before = len(collected)
            collected.update(iter_directory(abs_dir))
            logger.debug(
                "Collected %d new file(s) from %s", len(collected) - before, abs_dir
            )
        else:
            logger.warning("Directory not found or is not a directory: %s", abs_dir)

    return frozenset(collected)
