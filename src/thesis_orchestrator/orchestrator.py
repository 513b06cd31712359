"""Orchestrator — section-by-section thesis generation as an explicit state machine.

Every operation takes a ``RunState`` and returns a new one; nothing is mutated
in place. The loop is strictly sequential: section N+1's request is built only
after section N's response (or failure) has been integrated, and a chapter's
reference list is resolved before the next chapter starts.

States::

    idle ──start──> running ──> awaiting_chunk ──> running
                      │  ▲            │
                      │  └── finalizing_chapter <──┘ (chapter boundary)
                      │                 │
                      │                 └──> finalized | paused (gate failed)
                      └── pause ──> paused ──start──> running
    awaiting_chunk ──error──> failed ──start──> running
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone

from .logging_config import OrchestratorCallbacks, RichCallbacks
from .models import (
    Check,
    CheckStatus,
    GenerationRequest,
    ProjectConfig,
    RunState,
    RunStatus,
    Section,
    VerificationResult,
)
from .services import GenerationError, ThesisServices
from .tools.citation_ledger import CitationLedger, render_reference_list
from .tools.plan_parser import PlanParseError, check_plan_structure, parse_plan
from .tools.reproducibility import initial_checks
from .tools.word_budget import adjust_word_count, count_words, plan_total

logger = logging.getLogger(__name__)

PRELIMINARY_PREFIXES = (
    "abstract",
    "acknowledgements",
    "table-of-contents",
    "list-of-figures",
    "list-of-tables",
)

NO_CITATION_OVERRIDE = (
    "This is a preliminary section. Do NOT generate any citations or a SectionReferenceList."
)
PLACEHOLDER_OVERRIDE = 'Generate a suitable placeholder for this section titled "{title}".'

_ACTIVE = frozenset({RunStatus.RUNNING, RunStatus.AWAITING_CHUNK, RunStatus.FINALIZING_CHAPTER})

_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.IDLE: frozenset({RunStatus.RUNNING, RunStatus.PAUSED}),
    RunStatus.RUNNING: frozenset({
        RunStatus.AWAITING_CHUNK, RunStatus.FINALIZING_CHAPTER, RunStatus.PAUSED, RunStatus.FAILED,
    }),
    RunStatus.AWAITING_CHUNK: frozenset({
        RunStatus.RUNNING, RunStatus.FINALIZING_CHAPTER, RunStatus.PAUSED, RunStatus.FAILED,
    }),
    RunStatus.FINALIZING_CHAPTER: frozenset({RunStatus.RUNNING, RunStatus.FINALIZED, RunStatus.PAUSED}),
    RunStatus.FINALIZED: frozenset({RunStatus.IDLE, RunStatus.PAUSED, RunStatus.FINALIZED}),
    RunStatus.PAUSED: frozenset({RunStatus.RUNNING, RunStatus.PAUSED, RunStatus.FINALIZED}),
    RunStatus.FAILED: frozenset({RunStatus.RUNNING, RunStatus.PAUSED, RunStatus.FINALIZED}),
}


class InvalidTransition(RuntimeError):
    """The orchestrator attempted a transition the state machine does not allow."""


# ---------------------------------------------------------------------------
# Document helpers
# ---------------------------------------------------------------------------

def assemble_document(plan: list[Section]) -> str:
    """Markdown document built from every section that has content."""
    parts: list[str] = []
    for section in plan:
        if not section.content:
            continue
        # chapter title pages carry their own heading text
        if section.level == 1 and section.original_word_count == 0:
            parts.append(section.content)
            continue
        header_level = 2 if section.level <= 1 else section.level + 1
        parts.append(f"{'#' * header_level} {section.title}\n\n{section.content}")
    return "\n\n".join(parts)


def cumulative_word_count(plan: list[Section]) -> int:
    return count_words(assemble_document(plan))


def is_chapter_boundary(plan: list[Section], index: int) -> bool:
    """True when the section at *index* closes a chapter."""
    if index + 1 >= len(plan):
        return True
    return plan[index + 1].level == 1 and plan[index].level > 0


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _merge_checks(current: list[Check], results: list[Check]) -> list[Check]:
    by_id = {c.id: c for c in results}
    merged = [by_id.pop(c.id, c) for c in current]
    merged.extend(by_id.values())
    return merged


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class Orchestrator:
    """Drives a ``RunState`` through plan, generation, chapter finalization and verification."""

    def __init__(
        self,
        config: ProjectConfig,
        services: ThesisServices,
        callbacks: OrchestratorCallbacks | None = None,
        sleep: Callable[[float], None] = time.sleep,
        outline_text: str | None = None,
    ) -> None:
        self.config = config
        self.services = services
        self.callbacks = callbacks or RichCallbacks()
        self.sleep = sleep
        self.outline_text = outline_text
        self._pause_requested = threading.Event()

    # -----------------------------------------------------------------------
    # State helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _log(state: RunState, message: str, level: int = logging.INFO) -> None:
        state.session_log.append(f"{_timestamp()}: {message}")
        logger.log(level, message)

    @staticmethod
    def _transition(state: RunState, target: RunStatus) -> None:
        if target not in _TRANSITIONS[state.status]:
            raise InvalidTransition(f"{state.status.value} -> {target.value}")
        state.status = target

    def _reject(self, state: RunState, command: str, reason: str) -> RunState:
        new = state.model_copy(deep=True)
        self._log(new, f"{command} rejected: {reason}", logging.WARNING)
        self.callbacks.on_warning(f"{command} rejected: {reason}")
        return new

    def _set_status(self, state: RunState, message: str) -> None:
        state.status_message = message
        self.callbacks.on_status(message)

    # -----------------------------------------------------------------------
    # Initialization
    # -----------------------------------------------------------------------

    def initialize(
        self,
        outline_text: str | None = None,
        session_log: list[str] | None = None,
    ) -> RunState:
        """Parse and balance the outline, then run the structural self-check.

        A failed self-check leaves the run idle with generation disabled.
        """
        if outline_text is not None:
            self.outline_text = outline_text
        target = self.config.global_target_word_count
        state = RunState(global_target=target, session_log=list(session_log or []))
        state.status_message = "Initializing and verifying system..."
        self.callbacks.on_phase_start("PLANNING", "Parsing and balancing the thesis plan")

        try:
            plan = adjust_word_count(parse_plan(self.outline_text or ""), target)
        except PlanParseError as e:
            message = f"FATAL: System Verification Failed. {e}. Generation is disabled."
            self._set_status(state, message)
            self._log(state, message, logging.ERROR)
            self.callbacks.on_phase_end("PLANNING", False)
            return state

        state.plan = plan
        problems = check_plan_structure(plan, target, self.config.min_plan_sections)
        if problems:
            message = (
                f"FATAL: System Verification Failed. {' | '.join(problems)}. "
                "Generation is disabled."
            )
            self._set_status(state, message)
            self._log(state, message, logging.ERROR)
            self.callbacks.on_phase_end("PLANNING", False)
            return state

        state.is_system_ok = True
        state.checks = initial_checks()
        message = f"System Initialized & Verified. Plan locked for {plan_total(plan):,}-word thesis."
        self._set_status(state, message)
        self._log(state, message)
        self._log(state, "INFO: Smart citation control (preliminary section exclusion) is active.")
        self._log(state, "INFO: Chapter-level reference generation is active.")
        self.callbacks.on_phase_end("PLANNING", True)
        return state

    def reset(self, state: RunState | None = None) -> RunState:
        """Start over from the outline, keeping the session log."""
        return self.initialize(session_log=state.session_log if state else None)

    # -----------------------------------------------------------------------
    # External commands
    # -----------------------------------------------------------------------

    def start(self, state: RunState) -> RunState:
        if not state.is_system_ok:
            return self._reject(state, "Start", "system verification failed")
        if state.status in _ACTIVE:
            return self._reject(state, "Start", f"run is already {state.status.value}")

        self._pause_requested.clear()
        new = state.model_copy(deep=True)
        self._log(new, "Generation process started.")
        if new.status == RunStatus.FINALIZED:
            new = self.reset(new)
            if not new.is_system_ok:
                return new
        self._transition(new, RunStatus.RUNNING)
        self._set_status(new, "Generating...")
        return new

    def request_pause(self) -> None:
        """Ask a running loop to pause at its next iteration boundary."""
        self._pause_requested.set()

    def pause(self, state: RunState) -> RunState:
        if state.status not in _ACTIVE:
            return self._reject(state, "Pause", f"run is {state.status.value}")
        new = state.model_copy(deep=True)
        self._transition(new, RunStatus.PAUSED)
        self._set_status(new, "Generation paused.")
        self._log(new, "Generation paused.")
        return new

    def regenerate(self, state: RunState, index: int) -> RunState:
        """Clear section *index* and move the cursor back to it.

        Later sections keep their content until the loop overwrites them.
        """
        if state.status in _ACTIVE:
            return self._reject(state, "Regenerate", "generation is in progress")
        if not state.is_system_ok:
            return self._reject(state, "Regenerate", "system verification failed")
        if not 0 <= index < len(state.plan):
            return self._reject(state, "Regenerate", f"no section at index {index}")

        new = state.model_copy(deep=True)
        section = new.plan[index]
        self._log(new, f"User requested regeneration for section: {section.id}")
        section.content = ""
        new.cursor = index
        new.is_finalized = False
        new.verification = None
        self._transition(new, RunStatus.PAUSED)
        self._set_status(new, f"Ready to regenerate '{section.title}'. Press Start.")
        return new

    def toggle_flag(self, state: RunState, index: int) -> RunState:
        if not 0 <= index < len(state.plan):
            return self._reject(state, "Flag", f"no section at index {index}")
        new = state.model_copy(deep=True)
        section = new.plan[index]
        section.is_flagged = not section.is_flagged
        self._log(new, f"Section '{section.id}' flag status toggled.")
        return new

    # -----------------------------------------------------------------------
    # Generation loop
    # -----------------------------------------------------------------------

    def build_request(self, state: RunState) -> GenerationRequest:
        section = state.plan[state.cursor]
        document = assemble_document(state.plan)

        override = None
        if section.id.startswith(PRELIMINARY_PREFIXES):
            override = NO_CITATION_OVERRIDE
        elif section.target_word_count == 0:
            override = PLACEHOLDER_OVERRIDE.format(title=section.title)

        return GenerationRequest(
            SectionID=section.id,
            SectionTitle=section.title,
            SectionTargetWords=section.target_word_count,
            SectionNotes=(
                "Write this section to fit into the broader thesis. Focus on fulfilling "
                f'the specific objectives of "{section.title}".'
            ),
            LastContext=document[-self.config.context_chars:] if document else "",
            CumulativeWordCount=count_words(document),
            GlobalTargetWordCount=state.global_target,
            InstructionOverride=override,
        )

    def step(self, state: RunState) -> RunState:
        """Advance the run by one unit of work."""
        if state.pending_chapter_index is not None:
            return self.finalize_chapter(state, state.pending_chapter_index)

        if state.cursor >= len(state.plan):
            if state.is_finalized:
                return state.model_copy(deep=True)
            new = state.model_copy(deep=True)
            self._log(new, "Generation complete. Running final verification checks...")
            self._set_status(new, "Running final verification checks...")
            return self.finalize_chapter(new, len(new.plan) - 1)

        new = state.model_copy(deep=True)
        index = new.cursor
        section = new.plan[index]
        request = self.build_request(new)

        self._transition(new, RunStatus.AWAITING_CHUNK)
        status = f"Generating: {section.id} - {section.title}..."
        new.status_message = status
        self._log(new, status)
        self.callbacks.on_section_start(section.id, section.title)

        try:
            response = self.services.generate_section(request)
        except GenerationError as e:
            self._transition(new, RunStatus.FAILED)
            self._set_status(new, f"Error: {e}. Pausing.")
            self._log(new, f"ERROR: {e}", logging.ERROR)
            self.callbacks.on_error(str(e))
            return new

        section.content = response.content
        word_count = None
        if response.metadata is not None:
            word_count = response.metadata.WordCount
            self._log(
                new,
                f"Chunk received for {response.metadata.SectionID or section.id}. "
                f"Word count: {word_count}.",
            )
            ledger = CitationLedger(new.global_citations, new.chapter_citations)
            ledger.register(response.metadata.NewCitationsAdded)
            new.global_citations = ledger.global_index
            new.chapter_citations = ledger.chapter_index
        else:
            self._log(new, f"Chunk received for {section.id} without metadata.", logging.WARNING)
        self.callbacks.on_section_end(section.id, word_count)

        if is_chapter_boundary(new.plan, index):
            new.pending_chapter_index = index
            self._transition(new, RunStatus.FINALIZING_CHAPTER)
        else:
            self._transition(new, RunStatus.RUNNING)
        new.cursor = index + 1
        return new

    def finalize_chapter(self, state: RunState, index: int) -> RunState:
        """Append the chapter's reference list to section *index* and clear the chapter scope."""
        new = state.model_copy(deep=True)
        if new.status != RunStatus.FINALIZING_CHAPTER:
            self._transition(new, RunStatus.FINALIZING_CHAPTER)
        section = new.plan[index]
        self._log(new, f"--- Finalizing Chapter ending with: '{section.title}' ---")
        self._set_status(new, "Compiling references for chapter...")

        try:
            references = render_reference_list(new.chapter_citations, section.title, self.services)
        except Exception as e:
            references = ""
            self._log(new, f"WARNING: Reference list for '{section.title}' failed: {e}", logging.WARNING)
            self.callbacks.on_warning(f"Reference list for '{section.title}' failed: {e}")
        if references:
            section.content = f"{section.content}\n\n{references}" if section.content else references
            self._log(new, f"Appended reference list to section {section.id}.")
        new.chapter_citations = {}
        new.pending_chapter_index = None
        self._log(new, "-" * 50)
        self.callbacks.on_chapter_finalized(section.id, bool(references))

        if index == len(new.plan) - 1:
            return self.run_verification(new)
        self._transition(new, RunStatus.RUNNING)
        return new

    # -----------------------------------------------------------------------
    # Verification gate
    # -----------------------------------------------------------------------

    def verify(self, state: RunState) -> VerificationResult:
        """Apply the finalization gate to *state*; no side effects."""
        cumulative = cumulative_word_count(state.plan)
        target = state.global_target
        reasons: list[str] = []

        delta = cumulative - target
        if abs(delta) > self.config.word_tolerance:
            reasons.append(
                f"Word count tolerance check failed. Actual: {cumulative}, Target: {target}, "
                f"Difference: {delta:+d} (tolerance +/-{self.config.word_tolerance})"
            )

        flagged = [s.id for s in state.plan if s.is_flagged]
        if flagged:
            reasons.append(f"Sections flagged for review: {', '.join(flagged)}")

        for check in state.checks:
            if check.status == CheckStatus.FAILURE:
                reasons.append(f"Reproducibility check failed: {check.label} ({check.details})")

        return VerificationResult(
            passed=not reasons,
            reasons=reasons,
            cumulative_word_count=cumulative,
            global_target=target,
            checks=[c.model_copy() for c in state.checks],
        )

    def run_verification(self, state: RunState) -> RunState:
        """Run the reproducibility checks, apply the gate and record the terminal outcome."""
        if not state.is_system_ok:
            return self._reject(state, "Verify", "system verification failed")
        if state.status in (RunStatus.IDLE, RunStatus.RUNNING, RunStatus.AWAITING_CHUNK):
            return self._reject(state, "Verify", f"run is {state.status.value}")
        remaining = len(state.plan) - state.cursor
        if remaining > 0:
            return self._reject(state, "Verify", f"{remaining} section(s) not generated")
        if state.pending_chapter_index is not None:
            return self._reject(state, "Verify", "a chapter reference list is still pending")

        new = state.model_copy(deep=True)
        self.callbacks.on_phase_start("VERIFICATION", "Running final verification checks")
        self._log(new, "Running reproducibility checks...")
        document = assemble_document(new.plan)
        new.checks = _merge_checks(new.checks or initial_checks(), self.services.run_compliance_checks(document))
        self._log(new, "Reproducibility checks complete.")

        result = self.verify(new)
        new.verification = result
        if result.passed:
            new.is_finalized = True
            self._transition(new, RunStatus.FINALIZED)
            self._set_status(new, "Thesis generation complete. Ready for export.")
            self._log(new, "Thesis generation complete. Ready for export.")
        else:
            new.is_finalized = False
            self._transition(new, RunStatus.PAUSED)
            for reason in result.reasons:
                self._log(new, f"FINALIZATION FAILED: {reason}", logging.WARNING)
            self._set_status(
                new,
                f"Finalization failed ({len(result.reasons)} issue(s)). "
                "Regenerate or unflag sections, then verify again.",
            )
        self.callbacks.on_phase_end("VERIFICATION", result.passed)
        return new

    # -----------------------------------------------------------------------
    # Driver
    # -----------------------------------------------------------------------

    def run(self, state: RunState, max_steps: int | None = None) -> RunState:
        """Start (or resume) and step until the run leaves the active states."""
        state = self.start(state)
        if state.status != RunStatus.RUNNING:
            return state

        self.callbacks.on_phase_start("GENERATION", f"{len(state.plan)} sections, cursor at {state.cursor}")
        steps = 0
        while state.status in (RunStatus.RUNNING, RunStatus.FINALIZING_CHAPTER):
            if self._pause_requested.is_set():
                state = self.pause(state)
                break
            if max_steps is not None and steps >= max_steps:
                state = self.pause(state)
                break
            generating = state.pending_chapter_index is None and state.cursor < len(state.plan)
            state = self.step(state)
            steps += 1
            if generating and state.status in _ACTIVE:
                self.sleep(self.config.chunk_delay_seconds)

        self._pause_requested.clear()
        self.callbacks.on_phase_end("GENERATION", state.status == RunStatus.FINALIZED)
        return state
