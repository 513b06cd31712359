"""Outline parsing: "heading (N words)" lines -> ordered list of Sections.

Each content line looks like one of::

    Abstract (1000 words)
    Chapter 2: Background (10,000 words)
    2.1 Dependent Origination (2000 words)
    Appendix A: Configuration Parameters (500 words)
    List of Tables (N/A words)

The level of a line comes from its prefix. A section immediately followed
by a deeper one is a structural parent and carries no word budget.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..models import ProjectConfig, Section

logger = logging.getLogger(__name__)

SAMPLE_OUTLINE_PATH = Path(__file__).resolve().parent.parent / "conf" / "sample_outline.txt"

_WORDS_RE = re.compile(
    r"\(?\s*(?P<count>\d{1,3}(?:,\d{3})+|\d+|N/?A|TBD|-)\s+words?\s*\)?",
    re.IGNORECASE,
)
_NUMBERED_RE = re.compile(r"^(?P<prefix>\d+(?:\.\d+)*)\.?\s+")
_CHAPTER_RE = re.compile(r"^Chapter\s+(?P<num>\d+)\s*[:.\-]?\s*", re.IGNORECASE)
_APPENDIX_RE = re.compile(r"^Appendix\s+(?P<label>[A-Z0-9]+)\b\s*[:.\-]?\s*", re.IGNORECASE)

SKIPPED_PREFIXES = ("Part ", "Title:", "Thesis Title", "Total", "Front Matter", "Back Matter")


class PlanParseError(ValueError):
    """The outline is empty or contains no sections."""


def slugify(text: str) -> str:
    """Lower-case, hyphenate whitespace and drop non-word characters."""
    slug = text.lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def _parse_count(raw: str) -> int:
    raw = raw.replace(",", "")
    return int(raw) if raw.isdigit() else 0


def _parse_line(line: str) -> Section | None:
    """Return a Section for a content line, or None when the line is skipped."""
    text = line.strip()
    if not text or text.startswith(SKIPPED_PREFIXES):
        return None

    match = _WORDS_RE.search(text)
    if not match:
        return None

    count = _parse_count(match.group("count"))
    raw_title = (text[:match.start()] + text[match.end():]).strip()

    numbered = _NUMBERED_RE.match(raw_title)
    chapter = _CHAPTER_RE.match(raw_title)
    appendix = _APPENDIX_RE.match(raw_title)

    if numbered:
        prefix = numbered.group("prefix")
        section_id = prefix
        title = raw_title[numbered.end():].strip()
        level = prefix.count(".") + 1
    elif chapter:
        section_id = f"chapter-{chapter.group('num')}"
        title = raw_title[chapter.end():].strip()
        level = 1
    elif appendix:
        section_id = f"appendix-{appendix.group('label').lower()}"
        title = raw_title[appendix.end():].strip()
        level = 1
    else:
        title = raw_title
        section_id = slugify(title)
        level = 1

    if not title:
        title = section_id

    return Section(
        id=section_id,
        title=title,
        level=level,
        target_word_count=count,
        original_word_count=count,
    )


def _dedupe_ids(sections: list[Section]) -> None:
    seen: dict[str, int] = {}
    for section in sections:
        base = section.id or "section"
        n = seen.get(base, 0) + 1
        seen[base] = n
        if n > 1:
            section.id = f"{base}-{n}"
            logger.warning("Duplicate section id %r renamed to %r", base, section.id)


def mark_structural_parents(sections: list[Section]) -> list[Section]:
    """Zero the budget of every section immediately followed by a deeper one.

    The parsed figure stays in ``original_word_count``.
    """
    for current, following in zip(sections, sections[1:]):
        if following.level > current.level:
            current.target_word_count = 0
    return sections


def parse_plan(outline_text: str) -> list[Section]:
    """Parse an outline into an ordered plan.

    Raises:
        PlanParseError: if the outline is empty or yields no sections.
    """
    if not outline_text or not outline_text.strip():
        raise PlanParseError("Outline text is empty")

    sections = [s for s in (_parse_line(line) for line in outline_text.splitlines()) if s is not None]
    if not sections:
        raise PlanParseError("Outline contains no '<title> (<N> words)' lines")

    _dedupe_ids(sections)
    mark_structural_parents(sections)
    logger.debug("Parsed %d sections from outline", len(sections))
    return sections


def load_outline(config: ProjectConfig, config_dir: Path | None = None) -> str:
    """Read the configured outline file, falling back to the bundled sample."""
    if config.outline_file:
        path = Path(config.outline_file)
        if not path.is_absolute() and config_dir is not None:
            path = config_dir / path
        if not path.exists():
            raise FileNotFoundError(f"Outline file not found: {path}")
        return path.read_text(encoding="utf-8")
    return SAMPLE_OUTLINE_PATH.read_text(encoding="utf-8")


def check_plan_structure(plan: list[Section], global_target: int, min_sections: int) -> list[str]:
    """Structural self-check run before any generation may start.

    Returns a list of problems; empty means the plan is usable.
    """
    problems: list[str] = []
    total = sum(s.target_word_count for s in plan)
    if len(plan) < min_sections:
        problems.append(f"Parsed sections: {len(plan)} (minimum {min_sections})")
    if total != global_target:
        problems.append(f"Word Count: {total:,} | Target: {global_target:,}")
    return problems
