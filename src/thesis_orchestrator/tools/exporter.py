"""Plain-text export of a run, plus checkpoint save/restore."""

from __future__ import annotations

import logging
from pathlib import Path

from ..models import RunManifest, RunState
from ..orchestrator import assemble_document, cumulative_word_count

logger = logging.getLogger(__name__)

DOCUMENT_FILE = "thesis_draft.md"
SESSION_LOG_FILE = "session_log.txt"
STATE_FILE = "run_state.json"
MANIFEST_FILE = "manifest.json"


def save_run_state(state: RunState, output_dir: str | Path) -> Path:
    """Write the run checkpoint; returns its path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / STATE_FILE
    path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
    logger.debug("Wrote %s", path)
    return path


def load_run_state(path: str | Path) -> RunState:
    """Restore a checkpoint written by ``save_run_state``.

    *path* may be the checkpoint file or the directory holding it.
    """
    path = Path(path)
    if path.is_dir():
        path = path / STATE_FILE
    if not path.is_file():
        raise FileNotFoundError(f"No run checkpoint at {path}")
    return RunState.model_validate_json(path.read_text(encoding="utf-8"))


def build_manifest(state: RunState, output_dir: str | Path, project_name: str) -> RunManifest:
    return RunManifest(
        project_name=project_name,
        output_dir=str(output_dir),
        document_file=DOCUMENT_FILE,
        session_log_file=SESSION_LOG_FILE,
        state_file=STATE_FILE,
        status=state.status,
        is_finalized=state.is_finalized,
        sections_total=len(state.plan),
        sections_completed=sum(1 for s in state.plan if s.content),
        flagged_sections=[s.id for s in state.plan if s.is_flagged],
        cumulative_word_count=cumulative_word_count(state.plan),
        global_target=state.global_target,
        citations_total=len(state.global_citations),
        verification_reasons=list(state.verification.reasons) if state.verification else [],
    )


def export_run(state: RunState, output_dir: str | Path, project_name: str) -> RunManifest:
    """Write the draft, the session log, the checkpoint and a manifest."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    doc_path = output_dir / DOCUMENT_FILE
    doc_path.write_text(assemble_document(state.plan), encoding="utf-8")
    logger.info("Wrote %s", doc_path)

    log_path = output_dir / SESSION_LOG_FILE
    log_path.write_text("\n".join(state.session_log), encoding="utf-8")
    logger.info("Wrote %s", log_path)

    save_run_state(state, output_dir)

    manifest = build_manifest(state, output_dir, project_name)
    manifest_path = output_dir / MANIFEST_FILE
    manifest_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Wrote %s", manifest_path)
    return manifest
