"""Deterministic reproducibility checks run before a thesis is finalized."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..models import Check, CheckStatus

logger = logging.getLogger(__name__)

REQUIRED_FILES = ("main.py", "README.md")

FIGURE_PLACEHOLDER_RE = re.compile(r'\[FIGURE placeholder id=F\d+ caption="[^"]+"\]')
_FIGURE_PLACEHOLDER_START_RE = re.compile(r"\[FIGURE placeholder\b")
_ENTRY_POINT_RE = re.compile(r"""^if\s+__name__\s*==\s*['"]__main__['"]\s*:""", re.MULTILINE)

CHECK_LABELS = {
    "codebase": "Codebase structure valid",
    "scripts": "Experiment scripts runnable",
    "figures": "Figure generation matches placeholders",
    "code_compliance": "Code complies with thesis",
}


def initial_checks() -> list[Check]:
    """All checks in their pending state."""
    checks = [Check(id=cid, label=label) for cid, label in CHECK_LABELS.items()]
    checks[-1].details = "Awaiting final generation"
    return checks


def _check(check_id: str, ok: bool, details: str) -> Check:
    return Check(
        id=check_id,
        label=CHECK_LABELS[check_id],
        status=CheckStatus.SUCCESS if ok else CheckStatus.FAILURE,
        details=details,
    )


def _not_configured(check_id: str) -> Check:
    """Pending result for a check that needs a codebase; pending never fails the gate."""
    return Check(
        id=check_id,
        label=CHECK_LABELS[check_id],
        status=CheckStatus.PENDING,
        details="No codebase directory configured; check skipped.",
    )


def check_codebase(codebase_dir: str | Path | None) -> Check:
    if codebase_dir is None:
        return _not_configured("codebase")
    root = Path(codebase_dir)
    if not root.is_dir():
        return _check("codebase", False, f"Codebase directory not found: {root}")
    missing = [name for name in REQUIRED_FILES if not (root / name).is_file()]
    if missing:
        return _check("codebase", False, f"Missing required files: {', '.join(missing)}.")
    return _check("codebase", True, f"Required files ({', '.join(REQUIRED_FILES)}) are present.")


def check_scripts(codebase_dir: str | Path | None) -> Check:
    if codebase_dir is None:
        return _not_configured("scripts")
    main_py = Path(codebase_dir) / "main.py"
    if not main_py.is_file():
        return _check("scripts", False, "main.py not found.")
    source = main_py.read_text(encoding="utf-8", errors="replace")
    if not _ENTRY_POINT_RE.search(source):
        return _check("scripts", False, "main.py has no __main__ entry point.")
    return _check("scripts", True, "Entry point found in main.py.")


def check_figures(document_text: str) -> Check:
    valid = FIGURE_PLACEHOLDER_RE.findall(document_text)
    started = _FIGURE_PLACEHOLDER_START_RE.findall(document_text)
    malformed = len(started) - len(valid)
    if malformed > 0:
        return _check("figures", False, f"{malformed} figure placeholder(s) do not match the required format.")
    if valid:
        return _check("figures", True, f"Found and validated {len(valid)} figure placeholder(s).")
    return _check("figures", True, "No figure placeholders found to check.")


def run_checks(document_text: str, codebase_dir: str | Path | None) -> list[Check]:
    """Run the three deterministic checks."""
    results = [
        check_codebase(codebase_dir),
        check_scripts(codebase_dir),
        check_figures(document_text),
    ]
    for c in results:
        logger.info("Check %s: %s (%s)", c.id, c.status.value, c.details)
    return results
