"""Scan engines for clamsweep.

Public re-exports for the engines package, plus :func:`build_engine`, which
picks and health-checks an engine from :class:`~clamsweep.config.Settings`::

    from clamsweep.engines import build_engine

    engine = await build_engine(get_settings())
"""
from __future__ import annotations

import logging

from clamsweep.config import Settings
from clamsweep.engines.base import (
    EngineInitError,
    ScanEngine,
    ScanEngineError,
    ScanVerdict,
)
from clamsweep.engines.clamd import ClamdEngine
from clamsweep.engines.clamscan import ClamscanEngine

logger = logging.getLogger(__name__)

__all__ = [
    "ClamdEngine",
    "ClamscanEngine",
    "EngineInitError",
    "ScanEngine",
    "ScanEngineError",
    "ScanVerdict",
    "build_engine",
    "candidate_engines",
]


def candidate_engines(settings: Settings) -> list[ScanEngine]:
    """Return the configured engines, preferred one first.

    The clamd engine is left out entirely when ``CLAMD_SCAN_ACTIVE`` is false.
    """
    clamd_engine: ScanEngine | None = None
    if settings.clamd_scan_active:
        clamd_engine = ClamdEngine(
            host=settings.clamd_scan_host,
            port=settings.clamd_scan_port,
            timeout=settings.clamd_scan_timeout,
            socket_path=settings.clamd_scan_socket,
            multiscan=settings.clamd_multiscan,
        )
    clamscan_engine = ClamscanEngine(
        binary=settings.clamscan_path,
        database=settings.clamav_db or None,
        scan_archives=settings.clamscan_scan_archives,
        timeout=settings.clamd_scan_timeout,
    )

    if settings.preference == "clamscan":
        ordered = [clamscan_engine, clamd_engine]
    else:
        ordered = [clamd_engine, clamscan_engine]
    return [engine for engine in ordered if engine is not None]


async def build_engine(settings: Settings) -> ScanEngine:
    """Return the first configured engine that passes its health check.

    Raises:
        EngineInitError: If no configured engine is usable.
    """
    tried: list[str] = []
    for engine in candidate_engines(settings):
        if await engine.ping():
            logger.info("Using %s engine %r", engine.name, engine)
            return engine
        logger.warning("Scan engine %r is not available", engine)
        tried.append(repr(engine))

    raise EngineInitError(f"no usable scan engine (tried: {', '.join(tried) or 'none'})")
