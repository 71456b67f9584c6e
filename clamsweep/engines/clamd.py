"""ClamAV ``clamd`` daemon engine.

Delegates scanning to a running ``clamd`` over a TCP socket (``host`` /
``port``) or a local UNIX socket (``socket_path``).  The daemon reads the
file itself, so it must have read access to every path handed to
:meth:`ClamdEngine.scan`.

The ``clamd`` library is synchronous.  Every call is dispatched through
:func:`asyncio.to_thread` so the event loop is never blocked while waiting
on the daemon.

Usage::

    from clamsweep.engines.clamd import ClamdEngine

    engine = ClamdEngine(host="127.0.0.1", port=3310)
    if await engine.ping():
        verdict = await engine.scan("/srv/uploads/invoice.pdf")
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import clamd

from clamsweep.engines.base import ScanEngine, ScanEngineError, ScanVerdict

logger = logging.getLogger(__name__)

# Reply codes used by clamd in the (code, detail) tuples.
_STATUS_OK = "OK"
_STATUS_FOUND = "FOUND"
_STATUS_ERROR = "ERROR"


def _parse_clamd_response(
    path: str,
    response: dict[str, tuple[str, str | None]] | None,
) -> tuple[bool, list[str]]:
    """Turn a clamd reply dict into an ``(is_infected, viruses)`` pair.

    ``clamd`` maps each scanned path to a ``(code, detail)`` tuple:

    * ``("OK", None)``        – clean.
    * ``("FOUND", name)``     – threat *name* detected.
    * ``("ERROR", message)``  – the daemon could not scan the item.

    A ``FOUND`` entry with an empty name still counts as infected; the name is
    simply not recorded.

    Raises:
        ScanEngineError: On an ``ERROR`` entry, an unknown code, or an empty
            reply.
    """
    if not response:
        raise ScanEngineError(f"clamd returned an empty reply for {path}")

    infected = False
    viruses: list[str] = []
    for item, (code, detail) in response.items():
        if code == _STATUS_FOUND:
            infected = True
            if detail:
                viruses.append(detail)
        elif code == _STATUS_ERROR:
            raise ScanEngineError(f"clamd could not scan {item}: {detail}")
        elif code != _STATUS_OK:
            raise ScanEngineError(f"unexpected clamd reply for {item}: {code} {detail}")
    return infected, viruses


class ClamdEngine(ScanEngine):
    """Scan engine backed by the ClamAV daemon.

    A new client is created for every call; ``clamd`` does not multiplex
    requests over one connection, and the daemon itself serialises or
    parallelises scans according to its own ``MaxThreads`` setting.

    Args:
        host: Hostname or IP address of ``clamd``.
        port: TCP port ``clamd`` listens on.
        timeout: Socket timeout in seconds.  ``None`` waits forever.
        socket_path: Path of a UNIX socket.  When set, *host* and *port*
            are ignored.
        multiscan: Use ``MULTISCAN`` instead of ``SCAN`` so the daemon may
            use several threads for a single request.
    """

    name = "clamdscan"

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 3310,
        timeout: float | None = 300.0,
        socket_path: str | None = None,
        multiscan: bool = False,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._socket_path = socket_path
        self._multiscan = multiscan

    def __repr__(self) -> str:
        where = self._socket_path or f"{self._host}:{self._port}"
        return f"ClamdEngine({where})"

    # ------------------------------------------------------------------
    # ScanEngine interface
    # ------------------------------------------------------------------

    async def scan(self, path: str) -> ScanVerdict:
        """Scan *path* with the clamd ``SCAN`` (or ``MULTISCAN``) command.

        Raises:
            ScanEngineError: If the daemon is unreachable, times out, or
                answers with an error.
        """
        start_ms = int(time.monotonic() * 1000)
        try:
            response = await asyncio.to_thread(self._sync_scan, path)
        except clamd.ConnectionError as exc:
            raise ScanEngineError(f"clamd unreachable at {self._where()}: {exc}") from exc
        except clamd.ClamdError as exc:
            raise ScanEngineError(f"clamd protocol error for {path}: {exc}") from exc
        except OSError as exc:
            # socket.timeout is an OSError subclass.
            raise ScanEngineError(f"clamd I/O error for {path}: {exc}") from exc

        elapsed_ms = int(time.monotonic() * 1000) - start_ms
        infected, viruses = _parse_clamd_response(path, response)

        logger.debug(
            "clamd scan complete path=%s infected=%s viruses=%d duration_ms=%d",
            path,
            infected,
            len(viruses),
            elapsed_ms,
        )
        return ScanVerdict(
            is_infected=infected,
            viruses=tuple(viruses),
            engine=self.name,
            duration_ms=elapsed_ms,
        )

    async def ping(self) -> bool:
        """Return ``True`` if clamd answered ``PONG``."""
        try:
            response: str = await asyncio.to_thread(self._sync_ping)
        except Exception as exc:  # noqa: BLE001
            logger.debug("clamd ping failed at %s: %r", self._where(), exc)
            return False
        return response == "PONG"

    # ------------------------------------------------------------------
    # Synchronous helpers (run inside asyncio.to_thread)
    # ------------------------------------------------------------------

    def _where(self) -> str:
        return self._socket_path or f"{self._host}:{self._port}"

    def _get_client(self) -> Any:
        if self._socket_path:
            return clamd.ClamdUnixSocket(path=self._socket_path, timeout=self._timeout)
        return clamd.ClamdNetworkSocket(
            host=self._host,
            port=self._port,
            timeout=self._timeout,
        )

    def _sync_scan(self, path: str) -> dict[str, tuple[str, Any]]:
        client = self._get_client()
        if self._multiscan:
            return client.multiscan(path)  # type: ignore[no-any-return]
        return client.scan(path)  # type: ignore[no-any-return]

    def _sync_ping(self) -> str:
        return self._get_client().ping()  # type: ignore[no-any-return]
