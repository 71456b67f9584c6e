"""Shared pytest configuration and fixtures for clamsweep tests.

Every test runs with a clean settings cache and with the working directory
moved into a temporary directory, so a developer's ``.env`` file or
``CLAMD_*`` variables never leak into the results.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from clamsweep.config import get_settings

_ENV_PREFIXES = (
    "LOG_",
    "QUARANTINE_",
    "REMOVE_",
    "CLAMSCAN_",
    "CLAMAV_",
    "CLAMD_",
    "PREFERENCE",
    "SCAN_CONCURRENCY",
)


@pytest.fixture(autouse=True)
def _isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[Path]:
    for key in list(os.environ):
        if key.upper().startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    get_settings.cache_clear()
    yield workdir
    get_settings.cache_clear()
    # Drop handlers installed by configure_logging so files get closed.
    root = logging.getLogger()
    root.setLevel(logging.WARNING)
    for handler in list(root.handlers):
        if getattr(handler, "_clamsweep_handler", False):
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """A small directory tree::

        data/
          a.txt
          d/
            b.txt
            nested/
              c.bin
    """
    root = tmp_path / "data"
    (root / "d" / "nested").mkdir(parents=True)
    (root / "a.txt").write_text("a")
    (root / "d" / "b.txt").write_text("b")
    (root / "d" / "nested" / "c.bin").write_bytes(b"\x00\x01")
    return root
