"""Tests for tools/citation_ledger.py."""

from __future__ import annotations

from unittest.mock import MagicMock

from thesis_orchestrator.tools.citation_ledger import (
    REFERENCES_HEADER,
    CitationLedger,
    fallback_reference_list,
    register_citations,
    render_reference_list,
    sorted_keys,
)


class TestRegisterCitations:
    def test_scenario_two_registrations(self):
        ledger = CitationLedger()
        assert ledger.register(["A", "B"]) == {"1": "A", "2": "B"}
        assert ledger.register(["C"]) == {"3": "C"}
        assert ledger.global_index == {"1": "A", "2": "B", "3": "C"}
        assert len(ledger) == 3

    def test_delta_only(self):
        existing = {"1": "A", "2": "B"}
        assert register_citations(existing, ["C", "D"]) == {"3": "C", "4": "D"}
        assert existing == {"1": "A", "2": "B"}

    def test_numbering_continues_after_gaps(self):
        assert register_citations({"1": "A", "7": "B"}, ["C"]) == {"8": "C"}

    def test_empty_registration(self):
        assert register_citations({"1": "A"}, []) == {}

    def test_monotonic_across_many_calls(self):
        ledger = CitationLedger()
        assigned: list[int] = []
        for batch in (["a"], [], ["b", "c"], ["d"], ["e", "f", "g"]):
            assigned.extend(int(k) for k in ledger.register(batch))
        assert assigned == list(range(1, 8))


class TestChapterScope:
    def test_chapter_scope_numbered_from_global(self):
        ledger = CitationLedger()
        ledger.register(["A", "B"])
        ledger.clear_chapter()
        ledger.register(["C"])
        assert ledger.chapter_index == {"3": "C"}
        assert ledger.global_index == {"1": "A", "2": "B", "3": "C"}

    def test_clear_keeps_global(self):
        ledger = CitationLedger({"1": "A"}, {"1": "A"})
        ledger.clear_chapter()
        assert ledger.chapter_index == {}
        assert ledger.global_index == {"1": "A"}


class TestReferenceLists:
    def test_sorted_keys_numeric(self):
        assert sorted_keys({"10": "x", "2": "y", "1": "z"}) == ["1", "2", "10"]

    def test_fallback_keeps_numbering(self):
        text = fallback_reference_list({"4": "D", "3": "C"}, "Results")
        assert text == f"{REFERENCES_HEADER}\n\n[3] C\n[4] D"

    def test_render_empty_skips_service(self):
        service = MagicMock()
        assert render_reference_list({}, "Intro", service) == ""
        service.generate_reference_list.assert_not_called()

    def test_render_delegates_to_service(self):
        service = MagicMock()
        service.generate_reference_list.return_value = "## References\n\n[1] A"
        text = render_reference_list({"1": "A"}, "Intro", service)
        assert text == "## References\n\n[1] A"
        service.generate_reference_list.assert_called_once_with({"1": "A"}, "Intro")
