"""Abstract scan engine interface and verdict types.

All scanning back ends (the ``clamd`` daemon, the ``clamscan`` binary) must
implement :class:`ScanEngine`.  The orchestrator depends only on this
interface, so a test double can be substituted without touching a real
ClamAV installation.

Usage::

    from clamsweep.engines.base import ScanEngine, ScanVerdict

    class FakeEngine(ScanEngine):
        name = "fake"

        async def scan(self, path: str) -> ScanVerdict:
            return ScanVerdict(is_infected=False)

        async def ping(self) -> bool:
            return True
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ScanVerdict:
    """Result of scanning a single file.

    Attributes:
        is_infected: ``True`` when the engine reported at least one threat.
        viruses: Threat names in the order the engine reported them.  May be
            empty even when *is_infected* is ``True`` if the engine declines
            to name the threat.
        engine: Name of the engine that produced the verdict.
        duration_ms: Wall-clock time taken by the scan in milliseconds.
    """

    is_infected: bool
    viruses: tuple[str, ...] = field(default_factory=tuple)
    engine: str = "unknown"
    duration_ms: int = 0

    def __post_init__(self) -> None:
        if not self.is_infected and self.viruses:
            raise ValueError(
                "ScanVerdict cannot be clean while virus names are present."
            )


class ScanEngineError(Exception):
    """Raised when a single scan call cannot produce a verdict.

    Covers an unreachable daemon, a file the engine cannot read, an ``ERROR``
    reply, and engine-side timeouts.  The orchestrator treats it as a
    per-file failure and moves on to the next target.
    """


class EngineInitError(Exception):
    """Raised when no scan engine can be initialised before the run starts.

    Fatal for the run: nothing is scanned.
    """


class ScanEngine(ABC):
    """Abstract interface for antivirus scan engines.

    Implementations must be safe to call concurrently from several asyncio
    tasks.  Blocking I/O must be moved off the event loop (thread or
    subprocess).
    """

    name: str = "unknown"

    @abstractmethod
    async def scan(self, path: str) -> ScanVerdict:
        """Scan the file at *path* and return a verdict.

        Args:
            path: Absolute path to a regular file.

        Returns:
            A :class:`ScanVerdict`.

        Raises:
            ScanEngineError: If the engine could not produce a verdict.
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the engine is usable.

        Must never raise; errors are reported as ``False``.
        """
