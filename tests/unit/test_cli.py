"""Tests for the cpm CLI (Click command-line interface)."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cli.cpm import cli
from scriptsync.errors import StoreConnectionError
from scriptsync.lib.artifacts import PushOutcome
from scriptsync.lib.artifacts.push import INSERTED

from conftest import APP_DB, SEC_DB


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging():
    """setup_logging binds handlers to the runner's streams; drop them afterwards."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def invoke(runner, workspace_dir):
    def _invoke(*args, **kwargs):
        return runner.invoke(cli, ["--workspace", str(workspace_dir), *args], **kwargs)
    return _invoke


def _save(root, relative, content="x"):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


# ── top level ─────────────────────────────────────────────────────────────


class TestGroup:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "cpm, version" in result.output

    def test_no_workspace(self, runner, tmp_path):
        result = runner.invoke(cli, ["--workspace", str(tmp_path), "pull", "macros"])
        assert result.exit_code == 1
        assert "No workspace is open" in result.output

    def test_bad_config(self, runner, tmp_path):
        (tmp_path / "config.json").write_text("{")
        result = runner.invoke(cli, ["--workspace", str(tmp_path), "check"])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output


# ── pull ──────────────────────────────────────────────────────────────────


class TestPullCommands:
    def test_pull_macros(self, invoke, store, workspace_dir):
        store.insert(APP_DB, "MACROS", APPNAME="Sales", USERNAME="ADMIN", MACRONAME="a", MACRO="1")
        store.insert(APP_DB, "MACROS", APPNAME="", USERNAME="ADMIN", MACRONAME="b", MACRO="2")

        result = invoke("pull", "macros")

        assert result.exit_code == 0, result.output
        assert "✓ 2 files saved in 2 groups (0 not found)." in result.output
        assert (workspace_dir / "Macros" / "Global" / "b.js").read_text() == "2"

    def test_pull_macros_not_found(self, invoke, store):
        result = invoke("pull", "macros", "--app", "Missing")
        assert result.exit_code == 0
        assert "✕ No macros found for APPNAME: Missing" in result.output
        assert "0 files saved in 0 groups (1 not found)" in result.output

    def test_pull_macros_prompt_global(self, invoke, store, workspace_dir):
        store.insert(APP_DB, "MACROS", APPNAME="", USERNAME="ADMIN", MACRONAME="b", MACRO="2")
        result = invoke("pull", "macros", "--prompt", input="\n")
        assert result.exit_code == 0, result.output
        assert (workspace_dir / "Macros" / "Global" / "b.js").exists()

    def test_pull_scripts_prompt(self, invoke, store, workspace_dir):
        store.insert(
            SEC_DB, "SECSCR",
            COMPANYNO=1, USERNAME="ADMIN", APPNAME="Stock", TABLENAME="ITEMS", EVENT=3, SCRIPT="s",
        )
        result = invoke("pull", "scripts", "--prompt", input="Stock\n")
        assert result.exit_code == 0, result.output
        assert (workspace_dir / "Script" / "Stock" / "ITEMS" / "AfterPost.js").read_text() == "s"

    def test_pull_scripts_rejects_empty_app(self, invoke):
        result = invoke("pull", "scripts", "--app", "")
        assert result.exit_code == 2
        assert "must not be empty" in result.output

    def test_pull_library_user(self, invoke, store, workspace_dir):
        store.insert(SEC_DB, "ACTSCR", USERNAME="ayse", UNITNAME="U", SCRIPT="u")
        store.insert(SEC_DB, "ACTSCR", USERNAME="ADMIN", UNITNAME="V", SCRIPT="v")

        result = invoke("pull", "library", "--user", "ayse")

        assert result.exit_code == 0, result.output
        assert (workspace_dir / "Library" / "ayse" / "U.js").exists()
        assert not (workspace_dir / "Library" / "ADMIN").exists()

    def test_pull_search_scripts_uppercases(self, invoke, store, workspace_dir):
        store.insert(APP_DB, "FLDDEF", TABLOAD="STKKRT", ALANAD="MALKOD", ARAMASCRIPT="f")
        result = invoke("pull", "search-scripts", "stkkrt")
        assert result.exit_code == 0, result.output
        assert (workspace_dir / "SearchScript" / "STKKRT" / "MALKOD.js").read_text() == "f"

    def test_pull_search_scripts_prompt(self, invoke, store, workspace_dir):
        store.insert(APP_DB, "FLDDEF", TABLOAD="CARKRT", ALANAD="KOD", ARAMASCRIPT="f")
        result = invoke("pull", "search-scripts", input="carkrt\n")
        assert result.exit_code == 0, result.output
        assert (workspace_dir / "SearchScript" / "CARKRT" / "KOD.js").exists()

    def test_pull_nothing_discovered(self, invoke, store):
        result = invoke("pull", "search-scripts", "--all")
        assert result.exit_code == 0
        assert "No search script found." in result.output

    def test_pull_connection_error(self, invoke, workspace_dir):
        with patch("cli.cpm.pull_artifacts") as pull:
            pull.side_effect = StoreConnectionError("Error connecting to (CPMAPP): refused")
            result = invoke("pull", "macros")
        assert result.exit_code == 1
        assert "Error: Error connecting to (CPMAPP): refused" in result.output

    def test_pull_unwritable_folder(self, invoke, store, workspace_dir):
        store.insert(APP_DB, "MACROS", APPNAME="Sales", USERNAME="ADMIN", MACRONAME="a", MACRO="1")
        (workspace_dir / "Macros").write_text("not a folder")

        result = invoke("pull", "macros", "--app", "Sales")

        assert result.exit_code == 1
        assert "Error: File system error:" in result.output
        assert "Traceback" not in result.output


# ── push / watch ──────────────────────────────────────────────────────────


class TestPushCommand:
    def test_push_finds_workspace_from_file(self, runner, store, workspace_dir):
        path = _save(workspace_dir, "Macros/Sales/btnGo.js", "go();")

        result = runner.invoke(cli, ["push", str(path)])

        assert result.exit_code == 0, result.output
        assert "✓ Macro btnGo for Sales has been inserted." in result.output
        assert store.rows(APP_DB, "SELECT CAPTION FROM MACROS") == [{"CAPTION": "btnGo"}]

    def test_push_unknown_event(self, invoke, store, workspace_dir):
        path = _save(workspace_dir, "Script/Sales/ORDERS/OnDelete.js")
        result = invoke("push", str(path))
        assert result.exit_code == 1
        assert "OnDelete not found!" in result.output

    def test_push_search_script_not_found(self, invoke, store, workspace_dir):
        path = _save(workspace_dir, "SearchScript/STKKRT/MALKOD.js")
        result = invoke("push", str(path))
        assert result.exit_code == 1
        assert "Search script MALKOD for STKKRT not found." in result.output

    def test_push_non_utf8_file(self, invoke, store, workspace_dir):
        path = workspace_dir / "Macros" / "Sales" / "a.js"
        path.parent.mkdir(parents=True)
        path.write_bytes("şirket".encode("cp1254"))

        result = invoke("push", str(path))

        assert result.exit_code == 1
        assert "not UTF-8 text" in result.output
        assert store.rows(APP_DB, "SELECT * FROM MACROS") == []

    def test_push_ignored(self, invoke, store, workspace_dir):
        path = _save(workspace_dir, "readme.js")
        result = invoke("push", str(path))
        assert result.exit_code == 0
        assert "Ignored" in result.output


class TestWatchCommand:
    def test_watch_reports_outcomes(self, invoke, workspace_dir):
        outcome = PushOutcome(
            action=INSERTED, path=workspace_dir / "Macros" / "Sales" / "a.js",
            message="Macro a for Sales has been inserted.",
        )

        def fake_watch(workspace, *, on_outcome, on_error):
            on_outcome(outcome)
            on_error(workspace.root / "x.js", RuntimeError("boom"))

        with patch("cli.cpm.watch_workspace", side_effect=fake_watch):
            result = invoke("watch")

        assert result.exit_code == 0, result.output
        assert "Watching" in result.output
        assert "✓ Macro a for Sales has been inserted." in result.output
        assert "✕ x.js: boom" in result.output


# ── report / check ────────────────────────────────────────────────────────


class TestReportCommands:
    def test_doc_types(self, invoke, store, workspace_dir):
        store.insert(APP_DB, "REFKRT", TABLOAD="EVRBAS", ALANAD="EVRAKTIP", KOD=5, ACIKLAMA="Siparis")

        result = invoke("report", "doc-types", "5")

        assert result.exit_code == 0, result.output
        assert "Output: Output/evraktip.md" in result.output
        assert (workspace_dir / "Output" / "evraktip.md").exists()

    def test_doc_types_no_match(self, invoke, store, workspace_dir):
        result = invoke("report", "doc-types", "Nothing")
        assert result.exit_code == 0
        assert "Output:" not in result.output
        assert not (workspace_dir / "Output").exists()

    def test_doc_types_empty_prompt(self, invoke):
        result = invoke("report", "doc-types", input="\n")
        assert result.exit_code == 0

    def test_companies(self, invoke, store, workspace_dir):
        store.insert(SEC_DB, "SECCMP", COMPANYNO=1, COMPANYNAME="Acme", SERVERNAME="s", DATABASENAME="D")
        result = invoke("report", "companies")
        assert result.exit_code == 0, result.output
        assert "Output: Output/companies.md" in result.output


class TestCheckCommand:
    def test_check(self, invoke, store):
        result = invoke("check")
        assert result.exit_code == 0, result.output
        assert "✓ 3 events in events.json" in result.output
        assert "✓ app database CPMAPP reachable" in result.output
        assert "✓ sec database CPMSEC reachable" in result.output

    def test_check_missing_events(self, invoke, workspace_dir):
        (workspace_dir / "events.json").unlink()
        result = invoke("check")
        assert result.exit_code == 1
        assert "events.json file not found" in result.output
