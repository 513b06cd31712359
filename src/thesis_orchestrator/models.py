"""Pydantic models for the thesis orchestrator."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_CHUNK = "awaiting_chunk"
    FINALIZING_CHAPTER = "finalizing_chapter"
    FINALIZED = "finalized"
    PAUSED = "paused"
    FAILED = "failed"


class CheckStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

class Section(BaseModel):
    """A single node of the thesis plan, in reading order."""
    id: str = Field(..., description="Stable identifier, e.g. '1.2.3' or 'chapter-4'")
    title: str = Field(..., description="Display heading text")
    level: int = Field(default=1, description="Nesting depth (1 = chapter/top-level)")
    target_word_count: int = Field(default=0, ge=0, description="Balanced target; 0 = structural")
    original_word_count: int | None = Field(default=None, description="Target before balancing")
    content: str = Field(default="", description="Generated prose")
    is_flagged: bool = Field(default=False, description="Marked for mandatory human review")
    justification: str | None = Field(default=None, description="'expand by K words' / 'condense by K words'")

    @property
    def is_structural(self) -> bool:
        return self.target_word_count == 0


# Citation ledger: string-encoded positive integer -> citation payload
CitationIndex = dict[str, str]


# ---------------------------------------------------------------------------
# Generation service contract
# ---------------------------------------------------------------------------

class GenerationMetadata(BaseModel):
    """Trailing metadata block reported by the generation service (best effort)."""
    model_config = ConfigDict(extra="ignore")

    SectionID: str = Field(default="", description="Section the chunk was written for")
    WordCount: int | None = Field(default=None, description="Self-reported word count (advisory)")
    CumulativeWordCount: int | None = Field(default=None)
    Checkpoint: str | None = Field(default=None)
    NewCitationsAdded: list[str] = Field(default_factory=list, description="New sources, first-seen order")
    FigurePlaceholders: list[str] = Field(default_factory=list)
    ResearchPerformed: list[str] = Field(default_factory=list)
    ExpansionJustification: str | None = Field(default=None)
    CompressionJustification: str | None = Field(default=None)

    @field_validator("WordCount", "CumulativeWordCount", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int | None:
        if value is None or isinstance(value, int):
            return value
        digits = "".join(ch for ch in str(value) if ch.isdigit())
        return int(digits) if digits else None

    @field_validator("NewCitationsAdded", "FigurePlaceholders", "ResearchPerformed", mode="before")
    @classmethod
    def _coerce_str_list(cls, value: Any) -> list[str]:
        """Accept null, a single entry, or structured citation objects."""
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        return [v if isinstance(v, str) else json.dumps(v, ensure_ascii=False) for v in value]


class GenerationRequest(BaseModel):
    """Payload sent to the generation service for one section."""
    Mode: str = Field(default="CREATE NEW")
    SectionID: str = Field(...)
    SectionTitle: str = Field(...)
    SectionTargetWords: int = Field(...)
    SectionNotes: str = Field(default="")
    LastContext: str = Field(default="", description="Trailing slice of the assembled document")
    CumulativeWordCount: int = Field(default=0)
    GlobalTargetWordCount: int = Field(...)
    InstructionOverride: str | None = Field(default=None)


class GenerationResponse(BaseModel):
    """Section content plus optional metadata."""
    content: str = Field(default="")
    metadata: GenerationMetadata | None = Field(default=None)


class ParsedResponse(BaseModel):
    """Tagged parse result: a metadata block was found and stripped."""
    content: str
    metadata: GenerationMetadata


class UnparsedResponse(BaseModel):
    """Tagged parse result: no usable metadata, the raw text is the content."""
    raw_text: str


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class Check(BaseModel):
    """One reproducibility check and its latest outcome."""
    id: str = Field(..., description="'codebase', 'scripts', 'figures' or 'code_compliance'")
    label: str = Field(...)
    status: CheckStatus = Field(default=CheckStatus.PENDING)
    details: str = Field(default="Awaiting check")


class ComplianceVerdict(BaseModel):
    """Structured output from the ComplianceReviewer agent."""
    status: str = Field(..., description="'success' or 'failure'")
    details: str = Field(..., description="One-sentence justification")


class VerificationResult(BaseModel):
    """Outcome of the finalization gate."""
    passed: bool = Field(...)
    reasons: list[str] = Field(default_factory=list, description="One entry per failed check")
    cumulative_word_count: int = Field(default=0)
    global_target: int = Field(default=0)
    checks: list[Check] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------

class RunState(BaseModel):
    """Everything a single run needs; each orchestration step returns a new one."""
    plan: list[Section] = Field(default_factory=list)
    cursor: int = Field(default=0, description="Index of the next section to generate")
    status: RunStatus = Field(default=RunStatus.IDLE)
    status_message: str = Field(default="Ready to begin.")
    global_target: int = Field(default=90000)
    global_citations: CitationIndex = Field(default_factory=dict)
    chapter_citations: CitationIndex = Field(default_factory=dict)
    session_log: list[str] = Field(default_factory=list, description="Append-only, timestamped")
    pending_chapter_index: int | None = Field(default=None)
    is_finalized: bool = Field(default=False)
    is_system_ok: bool = Field(default=False)
    checks: list[Check] = Field(default_factory=list)
    verification: VerificationResult | None = Field(default=None)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

class RunManifest(BaseModel):
    """Provenance record for an exported run."""
    project_name: str = Field(...)
    output_dir: str = Field(...)
    document_file: str = Field(default="thesis_draft.md")
    session_log_file: str = Field(default="session_log.txt")
    state_file: str = Field(default="run_state.json")
    status: RunStatus = Field(default=RunStatus.IDLE)
    is_finalized: bool = Field(default=False)
    sections_total: int = Field(default=0)
    sections_completed: int = Field(default=0)
    flagged_sections: list[str] = Field(default_factory=list)
    cumulative_word_count: int = Field(default=0)
    global_target: int = Field(default=0)
    citations_total: int = Field(default=0)
    verification_reasons: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Project Configuration (loaded from YAML)
# ---------------------------------------------------------------------------

class ModelEndpointOverride(BaseModel):
    """Per-model endpoint override (e.g. a non-Azure provider for one model)."""
    endpoint: str = Field(..., description="Base URL for this model")
    api_key: str = Field(default="")
    api_version: str = Field(default="")
    api_type: str | None = Field(default=None, description="Force an AG2 api_type, e.g. 'anthropic'")


class ModelConfig(BaseModel):
    """LLM model configuration per role."""
    default: str = Field(default="gpt-5.2", description="Default model")
    writer: str | None = Field(default=None)
    bibliographer: str | None = Field(default=None)
    reviewer: str | None = Field(default=None)
    overrides: dict[str, ModelEndpointOverride] = Field(default_factory=dict)


class AzureConfig(BaseModel):
    """Azure OpenAI connection settings."""
    api_key: str = Field(default="", description="Azure OpenAI API key (or ${ENV_VAR})")
    api_version: str = Field(default="", description="API version")
    endpoint: str = Field(default="", description="Azure endpoint URL")


class ProjectConfig(BaseModel):
    """Full project configuration loaded from config.yaml."""
    project_name: str = Field(default="thesis")
    thesis_title: str = Field(default="", description="Working title passed to the writer agent")
    outline_file: str | None = Field(default=None, description="Outline text file; None uses the bundled sample")

    # Word budget
    global_target_word_count: int = Field(default=90000, gt=0)
    word_tolerance: int = Field(default=200, ge=0, description="Accepted +/- deviation at finalization")
    min_plan_sections: int = Field(default=51, description="Structural self-check: minimum parsed sections")

    # Generation loop
    context_chars: int = Field(default=300, description="Trailing document chars sent as LastContext")
    chunk_delay_seconds: float = Field(default=0.1, ge=0.0, description="Yield between chunks")

    # Reproducibility
    codebase_dir: str | None = Field(default=None, description="Companion codebase to check")
    code_compliance_enabled: bool = Field(default=False, description="Ask an LLM to compare codebase and thesis")

    output_dir: str = Field(default="output/")

    # Azure OpenAI
    azure: AzureConfig = Field(default_factory=AzureConfig)

    # Models
    models: ModelConfig = Field(default_factory=ModelConfig)

    timeout: int = Field(default=120, description="LLM call timeout in seconds")
    seed: int = Field(default=42, description="LLM seed for reproducibility")
