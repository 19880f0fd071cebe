import json

import pytest

from conftest import FakeSession
from logocache import cli
from logocache.settings import Paths, Settings
from logocache.sheets import SheetsError

ROWS = [
    ["Name", "Website", "Logo", "Tier"],
    ["Acme Corp", "https://acme.bd", "", "1"],
    ["Acme Labs", "acme.bd", "", "1"],
    ["Ghost Co", "", "", ""],
]


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.delenv("LOGO_CACHE_LOGOS_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    configured = Settings(paths=Paths(project_root=tmp_path), sheet_id="sheet-123", sheet_api_key="key")
    monkeypatch.setattr(cli, "load_settings", lambda: configured)
    return configured


@pytest.fixture
def sheet(monkeypatch):
    calls = []

    def fake_fetch(sheet_id, api_key, *, value_range="A:Z", **kwargs):
        calls.append((sheet_id, api_key, value_range))
        return ROWS

    monkeypatch.setattr(cli, "fetch_sheet_rows", fake_fetch)
    return calls


@pytest.mark.parametrize(
    "value, expected",
    [("25", 25), ("0", None), ("-1", None), ("abc", None), ("99999", 5000)],
)
def test_parse_limit(value, expected):
    assert cli.parse_limit(value) == expected


def test_missing_credentials_exit_1(settings, sheet, tmp_path):
    settings.sheet_api_key = ""

    assert cli.cache_main([]) == 1
    assert sheet == []
    assert not (tmp_path / "public" / "logos").exists()


def test_sheet_error_exit_1(settings, monkeypatch):
    def broken_fetch(*args, **kwargs):
        raise SheetsError("Sheets API error 403")

    monkeypatch.setattr(cli, "fetch_sheet_rows", broken_fetch)

    assert cli.reconcile_main([]) == 1


def test_cache_main_writes_placeholders(settings, sheet, capsys, tmp_path):
    assert cli.cache_main(["--limit=2"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["processed"] == 2
    assert summary["savedPlaceholder"] == 2
    assert len(list((tmp_path / "public" / "logos").glob("*.png"))) == 2
    assert sheet == [("sheet-123", "key", "A:Z")]


def test_cache_main_logo_only_writes_nothing(settings, sheet, capsys, tmp_path):
    assert cli.cache_main(["--logo-only"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["skippedLogoOnly"] == 3
    assert list((tmp_path / "public" / "logos").iterdir()) == []


def test_reconcile_main_prints_summary(settings, sheet, capsys, tmp_path):
    logos = tmp_path / "public" / "logos"
    logos.mkdir(parents=True)
    (logos / "retired-00000000.png").write_bytes(b"old")

    assert cli.reconcile_main([]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["expected"] == 3
    assert summary["movedToArchive"] == 1
    assert (logos / "_archive" / "retired-00000000.png").exists()


def test_report_missing_main_writes_csvs(settings, sheet, capsys, tmp_path):
    assert cli.report_missing_main([]) == 0

    err = capsys.readouterr().err
    assert "Summary:" in err
    assert "Wrote 3 rows" in err
    header = (tmp_path / "missing-logos.csv").read_text(encoding="utf-8").splitlines()[0]
    assert header == '"name","website","logo_url","output_path"'
    assert (tmp_path / "duplicate-logo-bases.csv").exists()


def test_report_needs_sourcing_main(settings, sheet, tmp_path):
    assert cli.report_needs_sourcing_main([]) == 0

    lines = (tmp_path / "needs-sourcing.csv").read_text(encoding="utf-8").splitlines()
    assert lines[1] == '"Ghost Co","","",""'


def test_dedupe_audit_main(settings, sheet, capsys):
    assert cli.dedupe_audit_main([]) == 0

    out = capsys.readouterr().out
    assert '"collapsedCount": 1' in out
    assert "- Acme Labs | https://acme.bd | key=acme.bd" in out


def test_discover_main_writes_suggestions(settings, sheet, monkeypatch, capsys, tmp_path):
    settings.fetch.scrape_delay = 0
    session = FakeSession()
    monkeypatch.setattr(cli, "build_session", lambda *args, **kwargs: session)

    assert cli.discover_main([]) == 0

    err = capsys.readouterr().err
    summary = json.loads(err[err.index("{"):err.index("}") + 1])
    assert summary == {"candidates": 2, "processed": 2, "found": 2, "errors": 0}
    lines = (tmp_path / "discovered-logos.csv").read_text(encoding="utf-8").splitlines()
    assert lines[0] == '"name","website","candidate_url","source"'
    assert len(lines) == 3
    assert all(line.endswith('"favicon"') for line in lines[1:])
    assert not (tmp_path / "public" / "logos").exists()
