"""Prometheus metrics for scan runs.

The metrics live in a dedicated :data:`REGISTRY` rather than the global
default one, so that :func:`write_metrics` exports only clamsweep series.
The output file uses the node-exporter *textfile collector* format, which
lets a cron-driven run feed a Prometheus server without a long-lived HTTP
endpoint.
"""
from __future__ import annotations

import logging
from pathlib import Path

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry(auto_describe=True)

FILES_SCANNED = Counter(
    "clamsweep_files_scanned_total",
    "Files processed by the scan orchestrator, by result",
    ["result"],  # clean | infected | error
    registry=REGISTRY,
)
REMEDIATION_ACTIONS = Counter(
    "clamsweep_remediation_actions_total",
    "Remediation steps applied to infected files",
    ["action", "outcome"],  # quarantine|remove|none x success|failure|skipped
    registry=REGISTRY,
)
SCAN_DURATION = Histogram(
    "clamsweep_scan_duration_seconds",
    "Time spent in a single engine scan call",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 300),
    registry=REGISTRY,
)


def write_metrics(path: str | Path) -> None:
    """Write the registry to *path* in the Prometheus text format.

    ``write_to_textfile`` writes to a temporary file and renames it, so a
    scraping exporter never sees a half-written file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(target), REGISTRY)
    logger.info("Wrote metrics to %s", target)
