"""
Tests for CLI commands.
"""

import json
import socket
import socketserver
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from threading import Thread
from typing import Any

import pytest
from conftest import (
    BIP84_RECEIVE_0,
    BIP84_RECEIVE_1,
    BIP84_ZPUB,
    GENESIS_ADDRESS,
    GENESIS_SCRIPTHASH,
)
from loguru import logger
from typer.testing import CliRunner

from panopticon.cli import app, format_update
from panopticon.constants import ELECTRUM_METHOD_BALANCE, ELECTRUM_METHOD_HISTORY
from panopticon.models import HistoryUpdate
from panopticon.wallet.address import address_to_scripthash

runner = CliRunner()

TX_A = "aa" * 32
TX_B = "bb" * 32


class MockElectrumHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        request = json.loads(self.rfile.readline())
        results: dict[str, Any] = self.server.results  # type: ignore[attr-defined]
        method = request["method"]
        failing: set[str] = self.server.failing  # type: ignore[attr-defined]
        if method in results and not failing.intersection(request["params"]):
            response = {"jsonrpc": "2.0", "id": request["id"], "result": results[method]}
        else:
            response = {
                "jsonrpc": "2.0",
                "id": request["id"],
                "error": {"code": -32601, "message": "unknown method"},
            }
        self.wfile.write(json.dumps(response).encode() + b"\n")


class MockElectrumServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), MockElectrumHandler)
        self.results: dict[str, Any] = {}
        self.failing: set[str] = set()

    @property
    def spec(self) -> str:
        return f"127.0.0.1:{self.server_address[1]}:t"


@pytest.fixture
def mock_electrum():
    server = MockElectrumServer()
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def dead_server_spec() -> str:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"127.0.0.1:{port}:t"


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger.remove()


def test_derive_zpub() -> None:
    result = runner.invoke(app, ["derive", BIP84_ZPUB, "--count", "2"])

    assert result.exit_code == 0
    assert "Native SegWit HD Wallet (BIP84)" in result.stdout
    assert BIP84_RECEIVE_0 in result.stdout
    assert BIP84_RECEIVE_1 in result.stdout


def test_derive_with_start() -> None:
    result = runner.invoke(app, ["derive", BIP84_ZPUB, "--start", "1", "--count", "1"])

    assert result.exit_code == 0
    assert BIP84_RECEIVE_1 in result.stdout
    assert BIP84_RECEIVE_0 not in result.stdout


TPUB = "tpubDC8msFGeGuwnKG9Upg7DM2b4DaRqg3CUZa5g8v2SRQ6K4NSkxUgd"


@pytest.mark.parametrize("key", [TPUB, "zpubbroken"])
def test_derive_invalid_key(key: str) -> None:
    result = runner.invoke(app, ["derive", key])
    assert result.exit_code == 1


def test_derive_negative_count() -> None:
    result = runner.invoke(app, ["derive", BIP84_ZPUB, "--count=-1"])
    assert result.exit_code == 1


def test_scripthash() -> None:
    result = runner.invoke(app, ["scripthash", GENESIS_ADDRESS])

    assert result.exit_code == 0
    assert result.stdout.strip() == GENESIS_SCRIPTHASH


def test_scripthash_invalid_address() -> None:
    result = runner.invoke(app, ["scripthash", "bc1qinvalid"])
    assert result.exit_code == 1


def test_balance_address(mock_electrum: MockElectrumServer) -> None:
    mock_electrum.results[ELECTRUM_METHOD_BALANCE] = {
        "confirmed": 2_000_000,
        "unconfirmed": 500_000,
    }

    result = runner.invoke(app, ["balance", GENESIS_ADDRESS, "--server", mock_electrum.spec])

    assert result.exit_code == 0
    assert "Total Balance: 0.02500000 BTC" in result.stdout


def test_balance_extended_key(mock_electrum: MockElectrumServer) -> None:
    mock_electrum.results[ELECTRUM_METHOD_BALANCE] = {"confirmed": 100_000_000, "unconfirmed": 0}

    result = runner.invoke(
        app, ["balance", BIP84_ZPUB, "--count", "2", "--server", mock_electrum.spec]
    )

    assert result.exit_code == 0
    assert "Native SegWit HD Wallet (BIP84) #0" in result.stdout
    assert "Native SegWit HD Wallet (BIP84) #1" in result.stdout
    assert "Total Balance: 2.00000000 BTC" in result.stdout


def test_balance_extended_key_partial_failure(mock_electrum: MockElectrumServer) -> None:
    mock_electrum.results[ELECTRUM_METHOD_BALANCE] = {"confirmed": 100_000_000, "unconfirmed": 0}
    mock_electrum.failing.add(address_to_scripthash(BIP84_RECEIVE_1))

    result = runner.invoke(
        app, ["balance", BIP84_ZPUB, "--count", "3", "--server", mock_electrum.spec]
    )

    assert result.exit_code == 1
    assert f"{BIP84_RECEIVE_1}  unavailable" in result.stdout
    assert "Total Balance: unavailable" in result.stdout
    assert "Total Balance: 2.00000000 BTC" not in result.stdout


def test_balance_unreachable_server(dead_server_spec: str) -> None:
    result = runner.invoke(app, ["balance", GENESIS_ADDRESS, "--server", dead_server_spec])
    assert result.exit_code == 1


def test_balance_invalid_server_spec() -> None:
    result = runner.invoke(app, ["balance", GENESIS_ADDRESS, "--server", "no-port-here"])
    assert result.exit_code == 1


def test_history(mock_electrum: MockElectrumServer) -> None:
    mock_electrum.results[ELECTRUM_METHOD_HISTORY] = [
        {"tx_hash": TX_A, "height": 800_000},
        {"tx_hash": TX_B, "height": 0},
    ]

    result = runner.invoke(app, ["history", GENESIS_ADDRESS, "--server", mock_electrum.spec])

    assert result.exit_code == 0
    assert f"{TX_A} (confirmed)" in result.stdout
    assert f"{TX_B} (mempool)" in result.stdout


def test_history_empty(mock_electrum: MockElectrumServer) -> None:
    mock_electrum.results[ELECTRUM_METHOD_HISTORY] = []

    result = runner.invoke(app, ["history", GENESIS_ADDRESS, "--server", mock_electrum.spec])

    assert result.exit_code == 0
    assert "No transactions." in result.stdout


def test_poll_persists_between_runs(mock_electrum: MockElectrumServer, tmp_path: Path) -> None:
    args = [
        "poll",
        GENESIS_ADDRESS,
        "--server",
        mock_electrum.spec,
        "--data-dir",
        str(tmp_path),
        "--log-level",
        "WARNING",
    ]
    mock_electrum.results[ELECTRUM_METHOD_HISTORY] = [{"tx_hash": TX_A, "height": 0}]

    first = runner.invoke(app, args)
    assert first.exit_code == 0
    assert f"New mempool transactions for {GENESIS_ADDRESS}: {TX_A}" in first.stdout
    assert (tmp_path / "transaction_cache.json").exists()

    mock_electrum.results[ELECTRUM_METHOD_HISTORY] = [{"tx_hash": TX_A, "height": 800_001}]
    second = runner.invoke(app, args)
    assert second.exit_code == 0
    assert "New mempool" not in second.stdout
    assert f"Transactions confirmed from mempool for {GENESIS_ADDRESS}: {TX_A}" in second.stdout

    third = runner.invoke(app, args)
    assert third.exit_code == 0
    assert "New" not in third.stdout
    assert "confirmed from mempool" not in third.stdout


def test_poll_unreachable_server(dead_server_spec: str, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["poll", GENESIS_ADDRESS, "--server", dead_server_spec, "--data-dir", str(tmp_path)],
    )
    assert result.exit_code == 1
    assert not (tmp_path / "transaction_cache.json").exists()


def test_format_update() -> None:
    update = HistoryUpdate(new_mempool=[TX_A], new_confirmed=[TX_B], confirmed_from_mempool=[TX_B])

    lines = format_update("addr", update)

    assert lines == [
        f"New mempool transactions for addr: {TX_A}",
        f"Transactions confirmed from mempool for addr: {TX_B}",
        f"New confirmed transactions for addr: {TX_B}",
    ]


def test_format_update_quiet() -> None:
    assert format_update("addr", HistoryUpdate()) == []


class MockPriceHandler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:
        pass

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/price":
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(json.dumps({"bitcoin": {"usd": 60000.0}}).encode())
        else:
            self.send_error(503)


@pytest.fixture
def mock_price_server():
    httpd = HTTPServer(("127.0.0.1", 0), MockPriceHandler)
    thread = Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    httpd.server_close()


def test_rate(mock_price_server: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PANOPTICON_PRICE_URL", f"{mock_price_server}/price")

    result = runner.invoke(app, ["rate", "0.5", "--log-level", "WARNING"])

    assert result.exit_code == 0
    assert "0.50000000 BTC = $30,000.00" in result.stdout


def test_rate_unavailable(mock_price_server: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PANOPTICON_PRICE_URL", f"{mock_price_server}/down")

    result = runner.invoke(app, ["rate"])

    assert result.exit_code == 1
