"""Path normalisation helpers."""
from __future__ import annotations

import os


def resolve_path(path: str | os.PathLike[str], cwd: str | None = None) -> str:
    """Return *path* as an absolute, normalised path string.

    Relative paths are anchored to *cwd* (the process working directory when
    omitted).  No filesystem access happens: the path need not exist, and
    symlinks are not resolved.
    """
    raw = os.fspath(path)
    if cwd is None:
        return os.path.abspath(raw)
    return os.path.normpath(os.path.join(cwd, raw))
