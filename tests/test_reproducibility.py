"""Tests for tools/reproducibility.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from thesis_orchestrator.models import CheckStatus
from thesis_orchestrator.tools.reproducibility import (
    check_codebase,
    check_figures,
    check_scripts,
    initial_checks,
    run_checks,
)


@pytest.fixture
def codebase(tmp_path: Path) -> Path:
    root = tmp_path / "codebase"
    root.mkdir()
    (root / "README.md").write_text("# Fusion experiments\n", encoding="utf-8")
    (root / "main.py").write_text(
        "def main():\n    pass\n\n\nif __name__ == \"__main__\":\n    main()\n",
        encoding="utf-8",
    )
    return root


class TestInitialChecks:
    def test_all_pending(self):
        checks = initial_checks()
        assert [c.id for c in checks] == ["codebase", "scripts", "figures", "code_compliance"]
        assert all(c.status == CheckStatus.PENDING for c in checks)


class TestCodebase:
    def test_present(self, codebase):
        assert check_codebase(codebase).status == CheckStatus.SUCCESS

    def test_missing_file(self, codebase):
        (codebase / "README.md").unlink()
        result = check_codebase(codebase)
        assert result.status == CheckStatus.FAILURE
        assert "README.md" in result.details

    def test_not_configured_stays_pending(self):
        result = check_codebase(None)
        assert result.status == CheckStatus.PENDING
        assert "No codebase directory configured" in result.details

    def test_configured_but_missing_dir_fails(self, tmp_path):
        result = check_codebase(tmp_path / "absent")
        assert result.status == CheckStatus.FAILURE
        assert "not found" in result.details


class TestScripts:
    def test_entry_point_found(self, codebase):
        result = check_scripts(codebase)
        assert result.status == CheckStatus.SUCCESS
        assert result.details == "Entry point found in main.py."

    def test_no_entry_point(self, codebase):
        (codebase / "main.py").write_text("print('hi')\n", encoding="utf-8")
        assert check_scripts(codebase).status == CheckStatus.FAILURE

    def test_not_configured_stays_pending(self):
        assert check_scripts(None).status == CheckStatus.PENDING


class TestFigures:
    def test_counts_valid_placeholders(self):
        text = (
            'Intro [FIGURE placeholder id=F1 caption="System overview"] and '
            '[FIGURE placeholder id=F12 caption="Error over time"].'
        )
        result = check_figures(text)
        assert result.status == CheckStatus.SUCCESS
        assert result.details == "Found and validated 2 figure placeholder(s)."

    def test_none_found(self):
        result = check_figures("No figures here.")
        assert result.status == CheckStatus.SUCCESS
        assert result.details == "No figure placeholders found to check."

    def test_malformed_placeholder_fails(self):
        text = '[FIGURE placeholder id=F1 caption="Good"] [FIGURE placeholder id=X caption=bad]'
        result = check_figures(text)
        assert result.status == CheckStatus.FAILURE
        assert result.details.startswith("1 figure placeholder(s)")


class TestRunChecks:
    def test_three_results(self, codebase):
        results = run_checks("text", codebase)
        assert [c.id for c in results] == ["codebase", "scripts", "figures"]
        assert all(c.status == CheckStatus.SUCCESS for c in results)
