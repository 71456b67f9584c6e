"""RemediationManager: quarantine and removal of infected files.

:class:`RemediationManager` applies the remediation configured in a
:class:`~clamsweep.config.RunConfig` to one infected file and reports what
happened as a tuple of outcomes:

* ``Moved(destination)`` – the file was relocated into the quarantine
  directory.
* ``Deleted(path)``      – the file was removed from disk.
* ``Skipped()``          – no remediation is configured; the file stays put.
* ``Failed(action, reason)`` – ``"quarantine"`` or ``"remove"`` failed.

When both quarantine and removal are enabled the file is moved first and the
relocated copy is then deleted, so the tuple is ``(Moved(...), Deleted(...))``.
A failed move ends the attempt: removal is not tried afterwards.

Usage::

    from clamsweep.config import RunConfig
    from clamsweep.core.remediation import RemediationManager

    manager = RemediationManager(RunConfig(quarantine=True).prepare())
    outcomes = manager.remediate("/srv/uploads/eicar.com")
"""
from __future__ import annotations

import logging
import os
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

from clamsweep.config import RunConfig

logger = logging.getLogger(__name__)

RemediationAction = Literal["quarantine", "remove"]


# ---------------------------------------------------------------------------
# Outcome types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Moved:
    """The file now lives at :attr:`destination` inside the quarantine directory."""

    destination: str


@dataclass(frozen=True)
class Deleted:
    """The file at :attr:`path` was removed."""

    path: str


@dataclass(frozen=True)
class Skipped:
    """No remediation is configured; the detection is only logged."""


@dataclass(frozen=True)
class Failed:
    """A remediation step failed.

    Attributes:
        action: The step that failed (``"quarantine"`` or ``"remove"``).
        reason: Human-readable error text.
    """

    action: RemediationAction
    reason: str


RemediationOutcome = Union[Moved, Deleted, Skipped, Failed]


def has_failure(outcomes: tuple[RemediationOutcome, ...]) -> bool:
    return any(isinstance(o, Failed) for o in outcomes)


# ---------------------------------------------------------------------------
# RemediationManager
# ---------------------------------------------------------------------------


class RemediationManager:
    """Applies the configured remediation to infected files.

    All filesystem work happens synchronously inside :meth:`remediate`.
    Destination selection and the move itself run under a lock, so two
    infected files with the same base name never race for one quarantine
    slot when the orchestrator scans concurrently.

    Args:
        config: The run configuration.  Its quarantine directory must already
            exist when quarantine is enabled (see
            :meth:`~clamsweep.config.RunConfig.prepare`).
    """

    def __init__(self, config: RunConfig) -> None:
        self._config = config
        self._lock = threading.Lock()

    def remediate(self, target: str) -> tuple[RemediationOutcome, ...]:
        """Quarantine and/or remove *target* according to the run config.

        Never raises for filesystem errors; they are returned as
        :class:`Failed` outcomes.

        Args:
            target: Absolute path of an infected file.

        Returns:
            The ordered outcomes of each step that was attempted.
        """
        if not self._config.remediation_enabled:
            return (Skipped(),)

        outcomes: list[RemediationOutcome] = []
        current = target

        if self._config.quarantine:
            moved = self._quarantine(target)
            outcomes.append(moved)
            if isinstance(moved, Failed):
                return tuple(outcomes)
            current = moved.destination

        if self._config.remove:
            outcomes.append(self._remove(current))

        return tuple(outcomes)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _quarantine(self, target: str) -> Moved | Failed:
        try:
            with self._lock:
                destination = self._free_destination(os.path.basename(target))
                shutil.move(target, destination)
        except OSError as exc:
            logger.error("Failed to quarantine %s: %s", target, exc)
            return Failed(action="quarantine", reason=str(exc))

        logger.info("Moved %s to quarantine at %s.", target, destination)
        return Moved(destination=str(destination))

    def _remove(self, path: str) -> Deleted | Failed:
        try:
            os.unlink(path)
        except OSError as exc:
            logger.error("Failed to remove %s: %s", path, exc)
            return Failed(action="remove", reason=str(exc))

        logger.info("Removed infected file: %s", path)
        return Deleted(path=path)

    def _free_destination(self, name: str) -> Path:
        """Return a quarantine path for *name* that is not taken yet.

        ``eicar.com`` becomes ``eicar_1.com``, ``eicar_2.com``, ... when the
        plain name is already occupied.  Caller must hold ``self._lock``.
        """
        directory = self._config.quarantine_dir
        candidate = directory / name
        stem, suffix = os.path.splitext(name)
        i = 1
        while os.path.lexists(candidate):
            candidate = directory / f"{stem}_{i}{suffix}"
            i += 1
        return candidate
