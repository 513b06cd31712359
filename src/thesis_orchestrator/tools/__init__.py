"""Deterministic tools for planning, budgeting, citations, parsing and export."""

from .citation_ledger import CitationLedger, register_citations, render_reference_list
from .plan_parser import PlanParseError, check_plan_structure, parse_plan
from .response_parser import parse_generation_output
from .word_budget import adjust_word_count, count_words

__all__ = [
    "CitationLedger",
    "PlanParseError",
    "adjust_word_count",
    "check_plan_structure",
    "count_words",
    "parse_generation_output",
    "parse_plan",
    "register_citations",
    "render_reference_list",
]
