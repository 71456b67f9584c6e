"""ClamAV ``clamscan`` binary engine.

Runs the stand-alone ``clamscan`` command once per file.  This is much
slower than talking to ``clamd`` (the signature database is loaded on every
invocation) and is only used when the daemon is disabled or unreachable.

``clamscan`` exit codes:

* ``0`` – no virus found.
* ``1`` – virus(es) found; each one is printed as ``<path>: <name> FOUND``.
* ``2`` – an error occurred.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time

from clamsweep.engines.base import ScanEngine, ScanEngineError, ScanVerdict

logger = logging.getLogger(__name__)

_EXIT_CLEAN = 0
_EXIT_INFECTED = 1
_FOUND_SUFFIX = " FOUND"


def _parse_clamscan_output(path: str, stdout: str) -> list[str]:
    """Return the threat names reported for *path* in clamscan's stdout."""
    viruses: list[str] = []
    prefix = f"{path}: "
    for line in stdout.splitlines():
        line = line.rstrip()
        if not line.endswith(_FOUND_SUFFIX):
            continue
        # Archive members are reported as "<path>/<member>: <name> FOUND",
        # so fall back to the last ": " separator.
        if line.startswith(prefix):
            body = line[len(prefix):]
        else:
            _, sep, body = line.rpartition(": ")
            if not sep:
                continue
        name = body[: -len(_FOUND_SUFFIX)].strip()
        if name and name not in viruses:
            viruses.append(name)
    return viruses


class ClamscanEngine(ScanEngine):
    """Scan engine that shells out to the ``clamscan`` binary.

    Args:
        binary: Path to the ``clamscan`` executable.
        database: Directory holding the signature database, passed as
            ``--database``.  ``None`` lets clamscan use its compiled default.
        scan_archives: When ``False``, archive contents are not inspected.
        timeout: Seconds to wait for one invocation before killing it.
    """

    name = "clamscan"

    def __init__(
        self,
        binary: str = "/usr/bin/clamscan",
        database: str | None = None,
        scan_archives: bool = True,
        timeout: float | None = 300.0,
    ) -> None:
        self._binary = binary
        self._database = database
        self._scan_archives = scan_archives
        self._timeout = timeout

    def __repr__(self) -> str:
        return f"ClamscanEngine({self._binary})"

    def _command(self, path: str) -> list[str]:
        cmd = [self._binary, "--no-summary"]
        if self._database:
            cmd.append(f"--database={self._database}")
        if not self._scan_archives:
            cmd.append("--scan-archive=no")
        cmd.append(path)
        return cmd

    async def scan(self, path: str) -> ScanVerdict:
        start_ms = int(time.monotonic() * 1000)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ScanEngineError(f"cannot run {self._binary}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ScanEngineError(
                f"clamscan timed out after {self._timeout}s on {path}"
            ) from exc

        elapsed_ms = int(time.monotonic() * 1000) - start_ms
        out = stdout.decode("utf-8", errors="replace")

        if proc.returncode == _EXIT_CLEAN:
            return ScanVerdict(is_infected=False, engine=self.name, duration_ms=elapsed_ms)
        if proc.returncode == _EXIT_INFECTED:
            return ScanVerdict(
                is_infected=True,
                viruses=tuple(_parse_clamscan_output(path, out)),
                engine=self.name,
                duration_ms=elapsed_ms,
            )

        err = stderr.decode("utf-8", errors="replace").strip() or out.strip()
        raise ScanEngineError(
            f"clamscan exited with code {proc.returncode} on {path}: {err}"
        )

    async def ping(self) -> bool:
        """Return ``True`` if the binary exists and answers ``--version``."""
        if not (os.path.isfile(self._binary) and os.access(self._binary, os.X_OK)):
            logger.debug("clamscan binary not executable: %s", self._binary)
            return False
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                "--version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            return await asyncio.wait_for(proc.wait(), 30) == 0
        except Exception as exc:  # noqa: BLE001
            logger.debug("clamscan --version failed: %r", exc)
            return False
