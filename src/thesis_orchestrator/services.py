"""Capability interface to the external generation services.

The orchestrator only ever talks to a ``ThesisServices`` object, so tests can
swap in a deterministic fake. ``AgentServices`` is the AG2-backed
implementation.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol

import autogen

from .agents.bibliographer import make_bibliographer
from .agents.compliance_reviewer import make_compliance_reviewer
from .agents.section_writer import make_section_writer
from .models import (
    Check,
    CheckStatus,
    CitationIndex,
    ComplianceVerdict,
    GenerationRequest,
    GenerationResponse,
    ProjectConfig,
)
from .tools.citation_ledger import REFERENCES_HEADER, fallback_reference_list
from .tools.reproducibility import CHECK_LABELS, run_checks
from .tools.response_parser import parse_generation_output, to_generation_response

logger = logging.getLogger(__name__)

# Budgets for what the compliance reviewer sees
_COMPLIANCE_THESIS_CHARS = 15000
_COMPLIANCE_MAX_FILE_CHARS = 8000


class GenerationError(RuntimeError):
    """A section could not be generated; the run stops at that section."""


class ThesisServices(Protocol):
    """What the orchestrator needs from the outside world."""

    def generate_section(self, request: GenerationRequest) -> GenerationResponse: ...
    def generate_reference_list(self, citations: CitationIndex, chapter_title: str) -> str: ...
    def run_compliance_checks(self, document_text: str) -> list[Check]: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _extract_text(response: Any) -> str:
    """Extract the reply text from an AG2 chat response."""
    if hasattr(response, "summary") and response.summary:
        text = str(response.summary)
    elif hasattr(response, "chat_history") and response.chat_history:
        last = response.chat_history[-1]
        text = last.get("content", "") if isinstance(last, dict) else str(last)
    else:
        text = str(response)
    return text.strip()


def _strip_fences(text: str) -> str:
    text = re.sub(r"```(?:json|markdown|md)?\n?", "", text)
    return text.strip()


def _make_orchestrator() -> autogen.UserProxyAgent:
    """Create a standard orchestrator agent."""
    return autogen.UserProxyAgent(
        name="Orchestrator",
        human_input_mode="NEVER",
        code_execution_config=False,
    )


def _read_codebase(codebase_dir: Path) -> dict[str, str]:
    files: dict[str, str] = {}
    for path in sorted(codebase_dir.rglob("*")):
        if not path.is_file() or path.suffix not in {".py", ".md", ".txt", ".toml", ".cfg"}:
            continue
        text = path.read_text(encoding="utf-8", errors="replace")
        files[str(path.relative_to(codebase_dir))] = text[:_COMPLIANCE_MAX_FILE_CHARS]
    return files


# ---------------------------------------------------------------------------
# AG2-backed services
# ---------------------------------------------------------------------------

class AgentServices:
    """``ThesisServices`` implemented with AG2 agents."""

    def __init__(self, config: ProjectConfig, config_dir: Path | None = None) -> None:
        self.config = config
        self.config_dir = config_dir or Path(".")

    @property
    def codebase_dir(self) -> Path | None:
        if not self.config.codebase_dir:
            return None
        return self.config_dir / self.config.codebase_dir

    def generate_section(self, request: GenerationRequest) -> GenerationResponse:
        message = json.dumps(request.model_dump(exclude_none=True), indent=2)
        try:
            writer = make_section_writer(self.config)
            response = _make_orchestrator().initiate_chat(writer, message=message, max_turns=1)
        except Exception as e:
            logger.error("Section generation failed for %s: %s", request.SectionID, e)
            if "api key" in str(e).lower():
                raise GenerationError(
                    "The provided API key is not valid. Please check your configuration."
                ) from e
            raise GenerationError(f"Failed to generate content for {request.SectionID}: {e}") from e

        return to_generation_response(parse_generation_output(_extract_text(response)))

    def generate_reference_list(self, citations: CitationIndex, chapter_title: str) -> str:
        if not citations:
            return ""
        message = (
            f'Format the references for the chapter titled "{chapter_title}".\n\n'
            f"Citation Data:\n{json.dumps(citations, indent=2)}"
        )
        try:
            bibliographer = make_bibliographer(self.config)
            response = _make_orchestrator().initiate_chat(bibliographer, message=message, max_turns=1)
        except Exception as e:
            logger.error("Error generating reference list for %r: %s", chapter_title, e)
            return ""

        text = _strip_fences(_extract_text(response))
        if REFERENCES_HEADER not in text:
            logger.warning("Reference list for %r lacks a header; using ledger formatting", chapter_title)
            return fallback_reference_list(citations, chapter_title)
        return text[text.find(REFERENCES_HEADER):]

    def run_compliance_checks(self, document_text: str) -> list[Check]:
        checks = run_checks(document_text, self.codebase_dir)
        if self.config.code_compliance_enabled:
            checks.append(self._check_code_compliance(document_text))
        return checks

    def _check_code_compliance(self, document_text: str) -> Check:
        label = CHECK_LABELS["code_compliance"]
        codebase_dir = self.codebase_dir
        if codebase_dir is None or not codebase_dir.is_dir():
            return Check(id="code_compliance", label=label, status=CheckStatus.FAILURE,
                         details="No codebase available to review.")

        message = (
            f"Thesis Excerpt (first {_COMPLIANCE_THESIS_CHARS} chars):\n---\n"
            f"{document_text[:_COMPLIANCE_THESIS_CHARS]}\n---\n\n"
            f"Codebase Files:\n---\n{json.dumps(_read_codebase(codebase_dir), indent=2)}\n---"
        )
        try:
            reviewer = make_compliance_reviewer(self.config)
            response = _make_orchestrator().initiate_chat(reviewer, message=message, max_turns=1)
            text = _strip_fences(_extract_text(response))
            verdict = ComplianceVerdict.model_validate_json(text[text.find("{"):text.rfind("}") + 1])
        except Exception as e:
            logger.error("Error verifying codebase compliance: %s", e)
            return Check(id="code_compliance", label=label, status=CheckStatus.FAILURE,
                         details="API call failed during code verification.")

        if verdict.status not in ("success", "failure"):
            return Check(id="code_compliance", label=label, status=CheckStatus.FAILURE,
                         details="Could not parse verification response.")
        return Check(id="code_compliance", label=label, status=CheckStatus(verdict.status),
                     details=verdict.details)
