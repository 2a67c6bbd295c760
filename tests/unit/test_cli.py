"""Tests for the fiscal-archive CLI."""

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from fiscal_archive.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _drop_log_sinks() -> Iterator[None]:
    """The CLI logs to the runner's stderr, which is closed once a test ends."""
    yield
    logger.remove()


@pytest.fixture
def data_dir(tmp_path: Path, records_file: Path) -> Iterator[Path]:
    """A data directory holding a database with the sample records."""
    data = tmp_path / "data"
    result = runner.invoke(app, ["import", str(records_file), "--data-dir", str(data)])
    assert result.exit_code == 0, result.output
    yield data


def _run(data_dir: Path, *args: str):
    return runner.invoke(app, [*args, "--data-dir", str(data_dir)])


def _json(data_dir: Path, *args: str):
    result = _run(data_dir, *args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_init_creates_database(tmp_path: Path) -> None:
    data = tmp_path / "fresh"
    result = runner.invoke(app, ["init", "--data-dir", str(data)])
    assert result.exit_code == 0, result.output
    assert (data / "archive.db").exists()


def test_commands_require_existing_database(tmp_path: Path) -> None:
    result = runner.invoke(app, ["folders", "--data-dir", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert not (tmp_path / "missing" / "archive.db").exists()


def test_import_reports_counts_and_skips_unchanged(records_file: Path, data_dir: Path) -> None:
    result = runner.invoke(app, ["import", str(records_file), "--data-dir", str(data_dir)])
    assert result.exit_code == 0
    assert "unchanged" in result.output

    result = runner.invoke(
        app, ["import", str(records_file), "--data-dir", str(data_dir), "--force"]
    )
    assert result.exit_code == 0
    assert "Imported 5 folders, 4 general documents, 3 invoices, 4 owners" in result.output


def test_import_rejects_malformed_file(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    result = runner.invoke(app, ["import", str(bad), "--data-dir", str(tmp_path / "data")])
    assert result.exit_code == 1


def test_folders_lists_top_level(data_dir: Path) -> None:
    result = _run(data_dir, "folders")
    assert result.exit_code == 0, result.output
    assert "2 folders" in result.output
    assert "[2025] Exercício 2025" in result.output

    folders = _json(data_dir, "folders", "a-2025")
    assert [f["id"] for f in folders] == ["a-vendas", "a-compras"]


def test_mkdir_edit_path_and_rm(data_dir: Path) -> None:
    result = _run(data_dir, "mkdir", "Bancos", "--parent", "a-2025", "--code", "B")
    assert result.exit_code == 0, result.output
    new_id = next(f["id"] for f in _json(data_dir, "folders", "a-2025") if f["code"] == "B")

    result = _run(data_dir, "edit", new_id, "--parent", "a-compras", "--notes", "extractos")
    assert result.exit_code == 0, result.output
    crumbs = _json(data_dir, "path", new_id)
    assert [c["id"] for c in crumbs] == ["a-2025", "a-compras", new_id]
    assert crumbs[-1]["description"] == "Bancos"

    result = _run(data_dir, "edit", new_id, "--top-level")
    assert result.exit_code == 0, result.output
    assert [c["id"] for c in _json(data_dir, "path", new_id)] == [new_id]

    result = _run(data_dir, "rm", new_id)
    assert result.exit_code == 0, result.output
    assert _run(data_dir, "path", new_id).exit_code == 1


def test_edit_rejects_cycle(data_dir: Path) -> None:
    result = _run(data_dir, "edit", "a-2025", "--parent", "a-q1")
    assert result.exit_code == 1
    assert [c["id"] for c in _json(data_dir, "path", "a-q1")] == ["a-2025", "a-compras", "a-q1"]


def test_search_link_contents_unlink(data_dir: Path) -> None:
    found = _json(data_dir, "search", "contrato")
    assert [d["id"] for d in found] == ["g-contrato"]

    result = _run(data_dir, "link", "general", "g-contrato", "a-q1")
    assert result.exit_code == 0, result.output
    assert [d["id"] for d in _json(data_dir, "contents", "a-q1")] == ["g-contrato"]
    assert _json(data_dir, "search", "contrato") == []

    result = _run(data_dir, "unlink", "general", "g-contrato")
    assert result.exit_code == 0, result.output
    assert _json(data_dir, "contents", "a-q1") == []


def test_search_with_bad_filter_fails(data_dir: Path) -> None:
    assert _run(data_dir, "search", "--type", "folder").exit_code == 1


def test_link_unknown_folder_fails(data_dir: Path) -> None:
    assert _run(data_dir, "link", "general", "g-contrato", "nope").exit_code == 1


def test_deadlines_summary(data_dir: Path) -> None:
    report = _json(data_dir, "deadlines", "--today", "2025-03-10")
    assert report["summary"] == {"expired": 2, "upcoming": 2, "ok": 2, "total": 4}

    upcoming = _json(data_dir, "deadlines", "--today", "2025-03-10", "--status", "upcoming")
    assert [i["id"] for i in upcoming["items"]] == ["g-contrato", "i-ft1"]

    result = _run(data_dir, "deadlines", "--today", "2025-03-10")
    assert "4 need attention: 2 expired, 2 upcoming" in result.output


def test_config_and_set_threshold(data_dir: Path) -> None:
    configs = _json(data_dir, "config")
    general = next(c for c in configs if c["document_type"] == "general")

    result = _run(data_dir, "set-threshold", general["id"], "0")
    assert result.exit_code == 0, result.output
    configs = _json(data_dir, "config")
    assert next(c for c in configs if c["id"] == general["id"])["days_before"] == 0

    # "-1" parses as an unknown option, so the command never runs.
    assert _run(data_dir, "set-threshold", general["id"], "-1").exit_code != 0


def test_scan_then_notifications(data_dir: Path) -> None:
    result = _run(data_dir, "scan", "--today", "2025-03-10")
    assert result.exit_code == 0, result.output
    assert "4 new notifications" in result.output

    result = _run(data_dir, "scan", "--today", "2025-03-10")
    assert "0 new notifications, 4 already raised" in result.output

    items = _json(data_dir, "notifications", "--no-scan")
    assert len(items) == 4
    titles = {n["title"] for n in items}
    assert "Vencimento Próximo: Contrato X" in titles

    first = items[0]["id"]
    assert _run(data_dir, "read", first).exit_code == 0
    assert len(_json(data_dir, "notifications", "--no-scan", "--unread")) == 3

    assert _run(data_dir, "dismiss", first).exit_code == 0
    assert _run(data_dir, "dismiss", first).exit_code == 1

    assert _run(data_dir, "read-all").exit_code == 0
    assert _json(data_dir, "notifications", "--no-scan", "--unread") == []


def test_show_document(data_dir: Path) -> None:
    result = _run(data_dir, "show", "general", "g-licenca")
    assert result.exit_code == 0, result.output
    assert "Licença de utilização" in result.output
    assert "Exercício 2025 > Compras" in result.output

    invoice = _json(data_dir, "show", "invoice", "i-ft2")
    assert (invoice["document_number"], invoice["invoice_type"]) == ("FT 2025/2", "SALE")

    assert _run(data_dir, "show", "invoice", "nope").exit_code == 1


def test_deadlines_filter(data_dir: Path) -> None:
    report = _json(data_dir, "deadlines", "--today", "2025-03-10", "--filter", "alfa")
    assert {i["id"] for i in report["items"]} == {"g-licenca", "i-ft2"}
    assert report["summary"]["total"] == 4
