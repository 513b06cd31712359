"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from thesis_orchestrator.models import (
    Check,
    CheckStatus,
    GenerationMetadata,
    GenerationRequest,
    GenerationResponse,
    ProjectConfig,
)
from thesis_orchestrator.orchestrator import Orchestrator
from thesis_orchestrator.services import GenerationError
from thesis_orchestrator.tools.citation_ledger import fallback_reference_list
from thesis_orchestrator.tools.reproducibility import CHECK_LABELS

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_CONFIG = FIXTURES_DIR / "sample_config.yaml"
SMALL_OUTLINE = FIXTURES_DIR / "small_outline.txt"

# Sum of the leaf budgets in small_outline.txt
SMALL_OUTLINE_TOTAL = 1200


class FakeServices:
    """Deterministic stand-in for the generation services.

    Sections are written with exactly their target word count; structural
    sections get a one-line placeholder.
    """

    def __init__(self) -> None:
        self.requests: list[GenerationRequest] = []
        self.citations: dict[str, list[str]] = {}
        self.fail_on: set[str] = set()
        self.without_metadata: set[str] = set()
        self.reference_calls: list[tuple[dict[str, str], str]] = []
        self.reference_text: str | None = None
        self.check_status = CheckStatus.SUCCESS
        self.on_request = None

    def generate_section(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if request.SectionID in self.fail_on:
            raise GenerationError(f"service unavailable for {request.SectionID}")

        n = request.SectionTargetWords
        content = " ".join(["word"] * n) if n else f"[{request.SectionTitle}]"
        if request.SectionID in self.without_metadata:
            return GenerationResponse(content=content)
        return GenerationResponse(
            content=content,
            metadata=GenerationMetadata(
                SectionID=request.SectionID,
                WordCount=n,
                NewCitationsAdded=self.citations.get(request.SectionID, []),
            ),
        )

    def generate_reference_list(self, citations: dict[str, str], chapter_title: str) -> str:
        self.reference_calls.append((dict(citations), chapter_title))
        if self.reference_text is not None:
            return self.reference_text
        return fallback_reference_list(citations, chapter_title)

    def run_compliance_checks(self, document_text: str) -> list[Check]:
        return [
            Check(id=cid, label=CHECK_LABELS[cid], status=self.check_status, details="checked")
            for cid in ("codebase", "scripts", "figures")
        ]


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path() -> Path:
    return SAMPLE_CONFIG


@pytest.fixture
def small_outline() -> str:
    return SMALL_OUTLINE.read_text(encoding="utf-8")


@pytest.fixture
def small_config() -> ProjectConfig:
    return ProjectConfig(
        project_name="small-thesis",
        global_target_word_count=SMALL_OUTLINE_TOTAL,
        min_plan_sections=5,
    )


@pytest.fixture
def fake_services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def fake_sleep() -> MagicMock:
    return MagicMock()


@pytest.fixture
def orchestrator(small_config, fake_services, fake_sleep, small_outline) -> Orchestrator:
    return Orchestrator(
        small_config,
        fake_services,
        callbacks=MagicMock(),
        sleep=fake_sleep,
        outline_text=small_outline,
    )


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "output"
    out.mkdir()
    return out
