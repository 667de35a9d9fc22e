from __future__ import annotations

import csv
from pathlib import Path

import pytest
from click.testing import CliRunner
from typer.main import get_command

import clockr.cli as cli


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for name in ("CLOCKR_DB", "CLOCKR_TZ", "CLOCKR_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def _invoke(args: list[str], db_path: Path):
    runner = CliRunner()
    return runner.invoke(get_command(cli.app), [*args, "--db", str(db_path)])


def test_start_status_stop_list(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"

    res = _invoke(["start", "1"], db_path)
    assert res.exit_code == 0
    assert "started Workspace 1" in res.stdout

    res = _invoke(["start", "1"], db_path)
    assert res.exit_code == 0
    assert "already running" in res.stdout

    res = _invoke(["status"], db_path)
    assert res.exit_code == 0
    assert "1. Workspace 1:" in res.stdout
    assert "(running)" in res.stdout
    assert "today:" in res.stdout

    res = _invoke(["stop", "-d", "wrote tests"], db_path)
    assert res.exit_code == 0
    assert "stopped Workspace 1" in res.stdout
    assert "wrote tests" in res.stdout

    res = _invoke(["stop"], db_path)
    assert res.exit_code == 0
    assert "not running" in res.stdout

    res = _invoke(["entries", "list", "--date", "today", "--tz", "UTC"], db_path)
    assert res.exit_code == 0
    assert "entries: 1" in res.stdout
    assert "| Workspace 1 |" in res.stdout
    assert "wrote tests" in res.stdout


def test_start_switches_workspaces(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"
    assert _invoke(["workspaces", "count", "2"], db_path).exit_code == 0
    assert _invoke(["workspaces", "rename", "2", "Client A"], db_path).exit_code == 0

    _invoke(["start", "1"], db_path)
    res = _invoke(["start", "2"], db_path)
    assert res.exit_code == 0
    assert "stopped Workspace 1" in res.stdout
    assert "started Client A" in res.stdout

    res = _invoke(["toggle", "2", "-d", "call"], db_path)
    assert res.exit_code == 0
    assert "stopped Client A" in res.stdout

    res = _invoke(["entries", "list", "--workspace", "2"], db_path)
    assert "entries: 1" in res.stdout
    assert "call" in res.stdout


def test_workspaces_list_and_invalid_count(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"
    res = _invoke(["workspaces", "count", "0"], db_path)
    assert res.exit_code == 2
    assert "workspace count must be between 1 and 4" in res.stdout

    res = _invoke(["workspaces", "list"], db_path)
    assert res.exit_code == 0
    assert "1\tWorkspace 1" in res.stdout
    assert "2\t" not in res.stdout


def test_start_out_of_range(tmp_path: Path) -> None:
    res = _invoke(["start", "3"], tmp_path / "test.sqlite")
    assert res.exit_code == 2
    assert "out of range" in res.stdout


def test_invalid_filter_and_timezone(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"
    res = _invoke(["entries", "list", "--date", "decade"], db_path)
    assert res.exit_code == 2
    res = _invoke(["status", "--tz", "Mars/Olympus"], db_path)
    assert res.exit_code == 2
    assert "unknown timezone" in res.stdout


def test_export_empty_then_with_entry(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"
    runner = CliRunner()
    with runner.isolated_filesystem():
        res = runner.invoke(get_command(cli.app), ["export", "--db", str(db_path)])
        assert res.exit_code == 1
        assert "no entries to export" in res.stdout
        assert not list(Path(".").glob("*.csv"))

        runner.invoke(get_command(cli.app), ["start", "1", "--db", str(db_path)])
        runner.invoke(get_command(cli.app), ["stop", "1", "-d", 'say "hi"', "--db", str(db_path)])

        res = runner.invoke(
            get_command(cli.app),
            ["export", "--db", str(db_path), "--out", "report.csv", "--out-dir", "out"],
        )
        assert res.exit_code == 0
        assert "wrote out/report.csv (1 row(s))" in res.stdout

        rows = list(csv.DictReader(Path("out/report.csv").read_text(encoding="utf-8").splitlines()))
        assert len(rows) == 1
        assert rows[0]["Workspace"] == "Workspace 1"
        assert rows[0]["Description"] == 'say "hi"'


def test_entries_edit_delete_clear(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"
    _invoke(["start", "1"], db_path)
    _invoke(["stop", "-d", "first"], db_path)
    _invoke(["start", "1"], db_path)
    _invoke(["stop", "-d", "second"], db_path)

    res = _invoke(["entries", "edit", "1", "renamed"], db_path)
    assert res.exit_code == 0
    assert "renamed" in res.stdout

    res = _invoke(["entries", "delete", "2"], db_path)
    assert res.exit_code == 0
    assert "deleted entry 2" in res.stdout

    res = _invoke(["entries", "delete", "2"], db_path)
    assert res.exit_code == 2

    res = _invoke(["entries", "list"], db_path)
    assert "entries: 1" in res.stdout
    assert "renamed" in res.stdout

    res = _invoke(["entries", "clear"], db_path)
    assert res.exit_code == 2
    assert "refusing" in res.stdout

    _invoke(["start", "1"], db_path)
    res = _invoke(["entries", "clear", "--yes"], db_path)
    assert res.exit_code == 0
    assert "cleared all entries" in res.stdout

    res = _invoke(["status"], db_path)
    assert "(running)" not in res.stdout
    res = _invoke(["entries", "list"], db_path)
    assert "entries: 0" in res.stdout


def test_config_show_reads_file_and_env(monkeypatch, tmp_path: Path) -> None:
    cfg_dir = tmp_path / "config" / "clockr"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "config.json").write_text(
        '{"timezone": "Europe/Paris", "log_level": "debug"}', encoding="utf-8"
    )
    monkeypatch.setenv("CLOCKR_DB", str(tmp_path / "env.sqlite"))

    runner = CliRunner()
    res = runner.invoke(get_command(cli.app), ["config", "show"])
    assert res.exit_code == 0
    assert "timezone: Europe/Paris" in res.stdout
    assert "log_level: DEBUG" in res.stdout
    assert f"db_path: {tmp_path / 'env.sqlite'}" in res.stdout


def test_invalid_config_is_reported(tmp_path: Path) -> None:
    cfg_dir = tmp_path / "config" / "clockr"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "config.json").write_text('{"timezone": 5}', encoding="utf-8")

    runner = CliRunner()
    res = runner.invoke(get_command(cli.app), ["config", "show"])
    assert res.exit_code == 2
    assert "invalid config" in res.stdout


def test_export_row_count_ignores_newlines_in_descriptions(tmp_path: Path) -> None:
    db_path = tmp_path / "test.sqlite"
    _invoke(["start", "1"], db_path)
    _invoke(["stop", "-d", "line one\nline two"], db_path)

    out = tmp_path / "report.csv"
    res = _invoke(["export", "--out", str(out)], db_path)
    assert res.exit_code == 0
    assert f"wrote {out} (1 row(s))" in res.stdout
