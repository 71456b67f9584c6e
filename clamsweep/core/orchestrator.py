"""ScanOrchestrator: drives the scan loop over a collected work set.

For every target the orchestrator:

1. calls the injected :class:`~clamsweep.engines.base.ScanEngine`;
2. logs ``OK`` for a clean verdict, or a warning naming the detected
   viruses for an infected one;
3. hands infected files to the
   :class:`~clamsweep.core.remediation.RemediationManager`.

Each target ends in exactly one terminal state:

* ``clean``      – scanned, nothing found.
* ``remediated`` – infected, and every configured remediation step succeeded
  (or none was configured).
* ``failed``     – the scan call failed, or a remediation step failed.  An
  infected file whose remediation failed keeps its verdict in the report.

**Failure isolation**: any exception raised while handling one target is
caught, logged at ``ERROR``, and recorded on that target's report.  The loop
always moves on; only ``BaseException`` subclasses (e.g. ``KeyboardInterrupt``)
abort the run.

**Scheduling**: with ``concurrency=1`` targets are processed strictly one
after another.  Higher values run up to that many targets at once; the
remediation manager serialises quarantine moves.  ``Scan completed.`` is
logged only after every target reached its terminal state.

Every target is wrapped in an OpenTelemetry span and counted in the
Prometheus metrics from :mod:`clamsweep.metrics`.

Usage::

    from clamsweep.core.orchestrator import ScanOrchestrator

    orchestrator = ScanOrchestrator(engine, RemediationManager(run_config))
    summary = await orchestrator.run(work_set)
    print(summary.infected, summary.failed)
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from clamsweep.core.remediation import (
    Deleted,
    Failed,
    Moved,
    RemediationManager,
    RemediationOutcome,
    Skipped,
    has_failure,
)
from clamsweep.engines.base import ScanEngine, ScanVerdict
from clamsweep.metrics import FILES_SCANNED, REMEDIATION_ACTIONS, SCAN_DURATION

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("clamsweep.orchestrator")

TargetState = Literal["clean", "remediated", "failed"]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetReport:
    """Terminal record for one scanned file.

    Attributes:
        path: Absolute path of the target as it was collected.
        state: Terminal state reached by the target.
        verdict: The engine verdict, ``None`` when the scan call failed.
        outcomes: Remediation outcomes, empty for clean or unscanned files.
        error: Error text for ``failed`` targets.
    """

    path: str
    state: TargetState
    verdict: ScanVerdict | None = None
    outcomes: tuple[RemediationOutcome, ...] = ()
    error: str | None = None

    @property
    def infected(self) -> bool:
        return self.verdict is not None and self.verdict.is_infected


@dataclass(frozen=True)
class RunSummary:
    """Aggregate result of one orchestrator run."""

    reports: tuple[TargetReport, ...] = field(default_factory=tuple)
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.reports)

    @property
    def clean(self) -> int:
        return sum(1 for r in self.reports if r.state == "clean")

    @property
    def infected(self) -> int:
        return sum(1 for r in self.reports if r.infected)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.reports if r.state == "failed")

    @property
    def scan_errors(self) -> int:
        return sum(1 for r in self.reports if r.state == "failed" and r.verdict is None)

    @property
    def remediation_failures(self) -> int:
        return sum(1 for r in self.reports if has_failure(r.outcomes))


# ---------------------------------------------------------------------------
# Metrics helpers
# ---------------------------------------------------------------------------


def _record_remediation(outcomes: Iterable[RemediationOutcome]) -> None:
    for outcome in outcomes:
        if isinstance(outcome, Moved):
            REMEDIATION_ACTIONS.labels(action="quarantine", outcome="success").inc()
        elif isinstance(outcome, Deleted):
            REMEDIATION_ACTIONS.labels(action="remove", outcome="success").inc()
        elif isinstance(outcome, Failed):
            REMEDIATION_ACTIONS.labels(action=outcome.action, outcome="failure").inc()
        elif isinstance(outcome, Skipped):
            REMEDIATION_ACTIONS.labels(action="none", outcome="skipped").inc()


# ---------------------------------------------------------------------------
# ScanOrchestrator
# ---------------------------------------------------------------------------


class ScanOrchestrator:
    """Runs the engine over a work set and routes verdicts to remediation.

    Args:
        engine: Scan engine, constructed once before the run.
        remediation: Remediation manager holding the run configuration.
        concurrency: Maximum number of targets in flight.  ``1`` (the
            default) processes targets sequentially.
    """

    def __init__(
        self,
        engine: ScanEngine,
        remediation: RemediationManager,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._engine = engine
        self._remediation = remediation
        self._concurrency = concurrency

    async def run(self, work_set: Iterable[str]) -> RunSummary:
        """Scan every target in *work_set* exactly once.

        Never raises for per-file problems; inspect the returned
        :class:`RunSummary` instead.
        """
        start_ms = int(time.monotonic() * 1000)
        # Sorted for reproducible logs; callers must not rely on the order.
        targets = sorted(set(work_set))

        with tracer.start_as_current_span("clamsweep.run") as root_span:
            root_span.set_attribute("run.files", len(targets))
            root_span.set_attribute("run.concurrency", self._concurrency)
            root_span.set_attribute("run.engine", self._engine.name)

            if not targets:
                logger.info("No valid files found to scan.")
                logger.info("Scan completed.")
                return RunSummary(duration_ms=int(time.monotonic() * 1000) - start_ms)

            logger.info("Starting scan of %d file(s)...", len(targets))

            if self._concurrency == 1:
                reports = [await self._process(target) for target in targets]
            else:
                reports = await self._process_bounded(targets)

            summary = RunSummary(
                reports=tuple(reports),
                duration_ms=int(time.monotonic() * 1000) - start_ms,
            )
            root_span.set_attribute("run.infected", summary.infected)
            root_span.set_attribute("run.failed", summary.failed)

        logger.info("Scan completed.")
        logger.info(
            "Scanned %d file(s): %d clean, %d infected, %d failed in %d ms",
            summary.total,
            summary.clean,
            summary.infected,
            summary.failed,
            summary.duration_ms,
        )
        return summary

    async def _process_bounded(self, targets: list[str]) -> list[TargetReport]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(target: str) -> TargetReport:
            async with semaphore:
                return await self._process(target)

        return list(await asyncio.gather(*(bounded(t) for t in targets)))

    # ------------------------------------------------------------------
    # Per-target state machine
    # ------------------------------------------------------------------

    async def _process(self, target: str) -> TargetReport:
        with tracer.start_as_current_span("clamsweep.scan_file") as span:
            span.set_attribute("scan.path", target)

            try:
                with SCAN_DURATION.time():
                    verdict = await self._engine.scan(target)
            except Exception as exc:
                FILES_SCANNED.labels(result="error").inc()
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                logger.error("Error scanning %s: %s", target, exc)
                return TargetReport(path=target, state="failed", error=str(exc))

            span.set_attribute("scan.infected", verdict.is_infected)

            if not verdict.is_infected:
                FILES_SCANNED.labels(result="clean").inc()
                logger.info("%s is OK!", target)
                return TargetReport(path=target, state="clean", verdict=verdict)

            FILES_SCANNED.labels(result="infected").inc()
            span.set_attribute("scan.viruses", list(verdict.viruses))
            logger.warning(
                "%s IS INFECTED! Viruses: %s", target, ", ".join(verdict.viruses)
            )

            try:
                outcomes = await asyncio.to_thread(self._remediation.remediate, target)
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                logger.error("Error remediating %s: %r", target, exc)
                return TargetReport(
                    path=target, state="failed", verdict=verdict, error=str(exc)
                )

            _record_remediation(outcomes)

            if has_failure(outcomes):
                error = "; ".join(
                    f"{o.action}: {o.reason}" for o in outcomes if isinstance(o, Failed)
                )
                span.set_status(Status(StatusCode.ERROR, error))
                return TargetReport(
                    path=target,
                    state="failed",
                    verdict=verdict,
                    outcomes=outcomes,
                    error=error,
                )

            return TargetReport(
                path=target, state="remediated", verdict=verdict, outcomes=outcomes
            )
