"""Unit tests for the clamd daemon engine.

All tests are fully offline.  ``clamd.ClamdNetworkSocket`` and
``clamd.ClamdUnixSocket`` are replaced by :mod:`unittest.mock` patches so no
live daemon is required.

Coverage areas:

* ``_parse_clamd_response``: OK / FOUND / ERROR replies, unnamed threats,
  multi-entry replies, empty replies.
* ``ClamdEngine.scan``: clean and infected verdicts, MULTISCAN selection,
  connection errors, socket timeouts, protocol errors.
* ``ClamdEngine.ping``: health check never raises.
* Client wiring for TCP and UNIX sockets.
"""
from __future__ import annotations

import socket
from unittest.mock import MagicMock, patch

import clamd
import pytest

from clamsweep.engines.base import ScanEngineError
from clamsweep.engines.clamd import ClamdEngine, _parse_clamd_response


# ---------------------------------------------------------------------------
# _parse_clamd_response
# ---------------------------------------------------------------------------


def test_parse_ok_response_is_clean() -> None:
    assert _parse_clamd_response("/tmp/a", {"/tmp/a": ("OK", None)}) == (False, [])


def test_parse_found_response_is_infected() -> None:
    response = {"/tmp/eicar": ("FOUND", "Eicar-Test-Signature")}
    assert _parse_clamd_response("/tmp/eicar", response) == (True, ["Eicar-Test-Signature"])


def test_parse_found_without_name_is_still_infected() -> None:
    assert _parse_clamd_response("/tmp/x", {"/tmp/x": ("FOUND", None)}) == (True, [])


def test_parse_multiple_entries_keeps_order() -> None:
    response = {
        "/tmp/a.zip": ("FOUND", "Win.Trojan.1"),
        "/tmp/a.zip:inner": ("FOUND", "Win.Backdoor.2"),
    }
    infected, viruses = _parse_clamd_response("/tmp/a.zip", response)
    assert infected
    assert viruses == ["Win.Trojan.1", "Win.Backdoor.2"]


def test_parse_error_entry_raises() -> None:
    with pytest.raises(ScanEngineError, match="lstat\\(\\) failed"):
        _parse_clamd_response(
            "/tmp/a", {"/tmp/a": ("ERROR", "lstat() failed: No such file or directory.")}
        )


def test_parse_unknown_code_raises() -> None:
    with pytest.raises(ScanEngineError, match="unexpected"):
        _parse_clamd_response("/tmp/a", {"/tmp/a": ("WAT", None)})


@pytest.mark.parametrize("response", [None, {}])
def test_parse_empty_reply_raises(response: dict | None) -> None:
    with pytest.raises(ScanEngineError, match="empty reply"):
        _parse_clamd_response("/tmp/a", response)


# ---------------------------------------------------------------------------
# Client wiring
# ---------------------------------------------------------------------------


def test_tcp_client_is_built_from_host_and_port() -> None:
    engine = ClamdEngine(host="10.0.0.5", port=3311, timeout=12.0)
    with patch("clamsweep.engines.clamd.clamd.ClamdNetworkSocket") as mock_cls:
        engine._get_client()
    mock_cls.assert_called_once_with(host="10.0.0.5", port=3311, timeout=12.0)


def test_unix_socket_takes_precedence() -> None:
    engine = ClamdEngine(host="10.0.0.5", socket_path="/run/clamav/clamd.ctl", timeout=5.0)
    with patch("clamsweep.engines.clamd.clamd.ClamdUnixSocket") as unix_cls, patch(
        "clamsweep.engines.clamd.clamd.ClamdNetworkSocket"
    ) as tcp_cls:
        engine._get_client()
    unix_cls.assert_called_once_with(path="/run/clamav/clamd.ctl", timeout=5.0)
    tcp_cls.assert_not_called()


def test_repr_names_the_endpoint() -> None:
    assert repr(ClamdEngine(host="h", port=1)) == "ClamdEngine(h:1)"
    assert repr(ClamdEngine(socket_path="/s")) == "ClamdEngine(/s)"


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


def _patched_client(**methods: object) -> MagicMock:
    client = MagicMock()
    for name, value in methods.items():
        setattr(client, name, value)
    return client


async def test_scan_clean_file() -> None:
    engine = ClamdEngine()
    client = _patched_client(scan=MagicMock(return_value={"/srv/a": ("OK", None)}))
    with patch.object(engine, "_get_client", return_value=client):
        verdict = await engine.scan("/srv/a")

    assert not verdict.is_infected
    assert verdict.viruses == ()
    assert verdict.engine == "clamdscan"
    assert verdict.duration_ms >= 0
    client.scan.assert_called_once_with("/srv/a")


async def test_scan_infected_file() -> None:
    engine = ClamdEngine()
    client = _patched_client(
        scan=MagicMock(return_value={"/srv/eicar": ("FOUND", "Eicar-Test-Signature")})
    )
    with patch.object(engine, "_get_client", return_value=client):
        verdict = await engine.scan("/srv/eicar")

    assert verdict.is_infected
    assert verdict.viruses == ("Eicar-Test-Signature",)


async def test_multiscan_command_is_used_when_enabled() -> None:
    engine = ClamdEngine(multiscan=True)
    client = _patched_client(multiscan=MagicMock(return_value={"/srv/a": ("OK", None)}))
    with patch.object(engine, "_get_client", return_value=client):
        await engine.scan("/srv/a")

    client.multiscan.assert_called_once_with("/srv/a")
    client.scan.assert_not_called()


@pytest.mark.parametrize(
    "error, message",
    [
        (clamd.ConnectionError("Error connecting to 127.0.0.1:3310"), "unreachable"),
        (socket.timeout("timed out"), "I/O error"),
        (ConnectionResetError("reset by peer"), "I/O error"),
        (clamd.ResponseError("bad reply"), "protocol error"),
    ],
)
async def test_scan_failures_raise_engine_error(error: Exception, message: str) -> None:
    engine = ClamdEngine()
    with patch.object(engine, "_sync_scan", side_effect=error):
        with pytest.raises(ScanEngineError, match=message):
            await engine.scan("/srv/a")


async def test_scan_error_reply_raises() -> None:
    engine = ClamdEngine()
    with patch.object(
        engine, "_sync_scan", return_value={"/srv/a": ("ERROR", "Access denied")}
    ):
        with pytest.raises(ScanEngineError, match="Access denied"):
            await engine.scan("/srv/a")


# ---------------------------------------------------------------------------
# ping
# ---------------------------------------------------------------------------


async def test_ping_pong_is_healthy() -> None:
    engine = ClamdEngine()
    with patch.object(engine, "_sync_ping", return_value="PONG"):
        assert await engine.ping() is True


async def test_ping_unexpected_reply_is_unhealthy() -> None:
    engine = ClamdEngine()
    with patch.object(engine, "_sync_ping", return_value="NOPE"):
        assert await engine.ping() is False


async def test_ping_connection_error_is_unhealthy() -> None:
    engine = ClamdEngine()
    with patch.object(engine, "_sync_ping", side_effect=clamd.ConnectionError("refused")):
        assert await engine.ping() is False

