"""Configuration via Pydantic Settings, plus the immutable per-run config.

Engine connection parameters and remediation defaults are driven by
environment variables.  A ``.env`` file in the working directory is loaded
automatically when present.  Invalid values raise ``ValidationError`` at
startup so a misconfigured run fails before any file is touched.

Usage::

    from clamsweep.config import RunConfig, get_settings

    settings = get_settings()
    run_config = RunConfig.from_settings(settings, quarantine=True)
    run_config.prepare()

``get_settings`` is cached with ``functools.lru_cache``.  Clear the cache with
``get_settings.cache_clear()`` between tests that change the environment.
"""
from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """clamsweep settings read from the environment.

    Variable names match the field names, case-insensitively
    (``CLAMD_SCAN_HOST`` → ``clamd_scan_host``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    # Logging
    log_directory: Path = Field(
        default=Path("./logs"),
        description="Directory that receives scan.log",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Remediation defaults (overridable on the command line)
    quarantine_infected: bool = Field(
        default=False,
        description="Move infected files to the quarantine directory",
    )
    remove_infected: bool = Field(
        default=False,
        description="Delete infected files",
    )
    quarantine_directory: Path = Field(
        default=Path("./quarantine"),
        description="Destination directory for quarantined files",
    )

    # clamscan binary
    clamscan_path: str = Field(
        default="/usr/bin/clamscan",
        description="Path to the clamscan binary",
    )
    clamav_db: str = Field(
        default="/var/lib/clamav/",
        description="Virus database directory passed to clamscan",
    )
    clamscan_scan_archives: bool = Field(
        default=True,
        description="Let clamscan look inside archives",
    )

    # clamd daemon
    clamd_scan_active: bool = Field(
        default=True,
        description="Allow scanning through the clamd daemon",
    )
    clamd_scan_host: str = Field(default="127.0.0.1", description="clamd host")
    clamd_scan_port: int = Field(default=3310, ge=1, le=65535, description="clamd port")
    clamd_scan_socket: str | None = Field(
        default=None,
        description="clamd UNIX socket path; takes precedence over host/port",
    )
    clamd_scan_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait on clamd (and clamscan) per file",
    )
    clamd_multiscan: bool = Field(
        default=True,
        description="Use MULTISCAN so clamd may parallelise a single request",
    )

    preference: Literal["clamdscan", "clamscan"] = Field(
        default="clamdscan",
        description="Engine tried first",
    )

    scan_concurrency: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Number of files scanned at the same time",
    )

    @field_validator("preference", mode="before")
    @classmethod
    def normalise_preference(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings singleton."""
    return Settings()


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration for one scan run.

    Built once before scanning starts and passed explicitly to the
    remediation manager and orchestrator.

    Attributes:
        quarantine: Move infected files into :attr:`quarantine_dir`.
        remove: Delete infected files (after quarantine when both are set).
        quarantine_dir: Absolute quarantine directory.
        concurrency: Number of files scanned at the same time.
    """

    quarantine: bool = False
    remove: bool = False
    quarantine_dir: Path = Path("quarantine")
    concurrency: int = 1

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        # Relative paths are anchored once, so a later chdir cannot move them.
        if not self.quarantine_dir.is_absolute():
            object.__setattr__(self, "quarantine_dir", Path(os.path.abspath(self.quarantine_dir)))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        quarantine: bool | None = None,
        remove: bool | None = None,
        quarantine_dir: str | Path | None = None,
        concurrency: int | None = None,
    ) -> RunConfig:
        """Merge command-line overrides (``None`` = not given) over *settings*."""
        return cls(
            quarantine=settings.quarantine_infected if quarantine is None else quarantine,
            remove=settings.remove_infected if remove is None else remove,
            quarantine_dir=Path(quarantine_dir or settings.quarantine_directory),
            concurrency=concurrency or settings.scan_concurrency,
        )

    @property
    def remediation_enabled(self) -> bool:
        return self.quarantine or self.remove

    def prepare(self) -> RunConfig:
        """Create the quarantine directory (with parents) when quarantine is on.

        Must run before the first file is scanned.  Returns ``self`` so the
        call can be chained.

        Raises:
            OSError: If the directory cannot be created.
        """
        if self.quarantine and not self.quarantine_dir.is_dir():
            self.quarantine_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created quarantine directory at %s", self.quarantine_dir)
        return self
