"""Tests for the 'wallet', 'market' and 'ledger' CLI command groups."""

import json

import pytest
from typer.testing import CliRunner

from backend.db import get_connection, init_db, kv
from cli.context import load_context
from cli.main import app

runner = CliRunner()

OWNER = "0x00000000000000000000000000000000000000aa"
OTHER = "0x00000000000000000000000000000000000000bb"


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Provide a fresh ledger and context directory for each test."""
    monkeypatch.setattr("backend.config.settings.workspace_dir", tmp_path)
    monkeypatch.setattr("backend.config.settings.gateway_backend", "local")
    monkeypatch.setattr("backend.config.settings.analysis_delay", 0.0)

    cli_dir = tmp_path / ".cipher_market_cli"
    cli_dir.mkdir()
    monkeypatch.setattr("cli.context.settings.cli_config_dir", cli_dir)
    return tmp_path


def _create(category="Weapons", content="crate of rifles") -> str:
    result = runner.invoke(app, ["market", "create", "-c", category, "--content", content])
    assert result.exit_code == 0, result.stdout
    line = next(l for l in result.stdout.splitlines() if l.startswith("🆔 Record id: "))
    return line.split()[3]


# ---------------------------------------------------------------------------
# wallet
# ---------------------------------------------------------------------------

def test_wallet_connect_and_status(workspace):
    result = runner.invoke(app, ["wallet", "connect", OWNER])
    assert result.exit_code == 0
    assert "🔗 Connected: 0x0000...00aa" in result.stdout
    assert load_context().active_account == OWNER

    status = runner.invoke(app, ["wallet", "status"])
    assert OWNER in status.stdout


def test_wallet_disconnect(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    result = runner.invoke(app, ["wallet", "disconnect"])
    assert result.exit_code == 0
    assert load_context().active_account is None
    assert "Not connected." in runner.invoke(app, ["wallet", "status"]).stdout


# ---------------------------------------------------------------------------
# market
# ---------------------------------------------------------------------------

def test_market_list_empty(workspace):
    result = runner.invoke(app, ["market", "list"])
    assert result.exit_code == 0
    assert "No market data found." in result.stdout


def test_market_create_requires_wallet(workspace):
    result = runner.invoke(app, ["market", "create", "-c", "Weapons", "--content", "x"])
    assert result.exit_code == 1
    assert "No wallet connected" in result.stdout


def test_market_create_and_list(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])

    result = runner.invoke(app, ["market", "create", "-c", "digital", "--content", "exploit kit"])

    assert result.exit_code == 0
    assert "⏳ Encrypting dark web data with FHE..." in result.stdout
    assert "✅ Encrypted data submitted for FHE analysis!" in result.stdout

    listing = runner.invoke(app, ["market", "list"])
    assert "Digital" in listing.stdout
    assert "pending" in listing.stdout
    assert load_context().history == ["Added Digital data"]


def test_market_create_unknown_category(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    result = runner.invoke(app, ["market", "create", "-c", "Groceries", "--content", "x"])
    assert result.exit_code == 1
    assert "❌ Submission failed:" in result.stdout


def test_market_list_filters(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    _create("Weapons")
    _create("Narcotics")

    result = runner.invoke(app, ["market", "list", "-c", "Narcotics"])

    assert "Narcotics" in result.stdout
    assert "Weapons" not in result.stdout


def test_market_analyze_and_flag(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    record_id = _create()

    analyzed = runner.invoke(app, ["market", "analyze", record_id])
    assert analyzed.exit_code == 0
    assert "✅ FHE analysis completed successfully!" in analyzed.stdout

    flagged = runner.invoke(app, ["market", "flag", record_id])
    assert flagged.exit_code == 0
    assert "✅ Data flagged successfully with FHE!" in flagged.stdout

    again = runner.invoke(app, ["market", "analyze", record_id])
    assert again.exit_code == 1
    assert "❌ Analysis failed:" in again.stdout


def test_market_analyze_other_owner(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    record_id = _create()
    runner.invoke(app, ["wallet", "connect", OTHER])

    result = runner.invoke(app, ["market", "flag", record_id])

    assert result.exit_code == 1
    assert "Only the owner" in result.stdout


def test_market_show_decodes_for_owner(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    record_id = _create(content="crate of rifles")

    owned = runner.invoke(app, ["market", "show", record_id])
    assert "crate of rifles" in owned.stdout

    runner.invoke(app, ["wallet", "connect", OTHER])
    foreign = runner.invoke(app, ["market", "show", record_id])
    assert foreign.exit_code == 0
    assert "crate of rifles" not in foreign.stdout


def test_market_show_unknown(workspace):
    result = runner.invoke(app, ["market", "show", "missing"])
    assert result.exit_code == 1


def test_market_stats(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    _create()
    _create()

    result = runner.invoke(app, ["market", "stats"])

    assert result.exit_code == 0
    assert "Total Records : 2" in result.stdout
    assert "Risk Level Distribution" in result.stdout


def test_market_repair(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    record_id = _create()
    conn = get_connection()
    kv.put_value(conn, "market_keys", b"[]")
    conn.close()

    result = runner.invoke(app, ["market", "repair"])

    assert result.exit_code == 0
    assert f"+ {record_id}" in result.stdout
    assert record_id in runner.invoke(app, ["market", "list"]).stdout


def test_market_history(workspace):
    assert "No recent actions." in runner.invoke(app, ["market", "history"]).stdout
    runner.invoke(app, ["wallet", "connect", OWNER])
    _create("Credentials")
    assert "Added Credentials data" in runner.invoke(app, ["market", "history"]).stdout


# ---------------------------------------------------------------------------
# ledger
# ---------------------------------------------------------------------------

def test_ledger_init_and_status(workspace):
    result = runner.invoke(app, ["ledger", "init"])
    assert result.exit_code == 0
    assert (workspace / "ledger.db").exists()

    status = runner.invoke(app, ["ledger", "status"])
    assert "Available   : yes" in status.stdout


def test_ledger_pause_blocks_writes(workspace):
    runner.invoke(app, ["wallet", "connect", OWNER])
    runner.invoke(app, ["ledger", "pause"])

    result = runner.invoke(app, ["market", "create", "-c", "Weapons", "--content", "x"])
    assert result.exit_code == 1
    assert "contract is not available" in result.stdout

    runner.invoke(app, ["ledger", "resume"])
    _create()


def test_ledger_status_counts_records(workspace):
    conn = get_connection()
    init_db(conn)
    kv.put_value(conn, "market_keys", json.dumps(["a1"]).encode())
    kv.put_value(conn, "market_a1", b"{}")
    conn.close()

    result = runner.invoke(app, ["ledger", "status"])

    assert "Record keys : 1" in result.stdout
    assert "set" in result.stdout


def test_ledger_commands_require_local_backend(workspace, monkeypatch):
    monkeypatch.setattr("backend.config.settings.gateway_backend", "web3")
    result = runner.invoke(app, ["ledger", "pause"])
    assert result.exit_code == 1


def test_config_command(workspace):
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "Gateway backend : local" in result.stdout


def test_ledger_status_shows_index_writer(workspace):
    conn = get_connection()
    init_db(conn)
    kv.put_value(conn, "market_keys", json.dumps(["a1"]).encode(), sender=OWNER)
    conn.close()

    result = runner.invoke(app, ["ledger", "status"])

    assert "Index key   : market_keys (set)" in result.stdout
    assert f"by {OWNER}" in result.stdout


def test_ledger_status_unset_index(workspace):
    result = runner.invoke(app, ["ledger", "status"])
    assert "Index key   : market_keys (unset)" in result.stdout
    assert "Index write" not in result.stdout
