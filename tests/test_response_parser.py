"""Tests for tools/response_parser.py — two-stage metadata extraction."""

from __future__ import annotations

import json

from thesis_orchestrator.models import ParsedResponse, UnparsedResponse
from thesis_orchestrator.tools.response_parser import parse_generation_output, to_generation_response

BODY = "The localization filter fuses wheel odometry with lidar scan matching. " * 6


def _fenced(meta: dict) -> str:
    return f"{BODY}\n\n```json\n{json.dumps(meta, indent=2)}\n```\n"


class TestFencedStage:
    def test_parsed(self):
        meta = {"SectionID": "2.1.1", "WordCount": 60, "NewCitationsAdded": ["Thrun. Probabilistic Robotics. 2005."]}
        result = parse_generation_output(_fenced(meta))
        assert isinstance(result, ParsedResponse)
        assert result.content == BODY.strip()
        assert result.metadata.SectionID == "2.1.1"
        assert result.metadata.WordCount == 60
        assert result.metadata.NewCitationsAdded == ["Thrun. Probabilistic Robotics. 2005."]

    def test_extra_keys_ignored_and_counts_coerced(self):
        meta = {"SectionID": "1.1", "WordCount": "1,480 words", "SectionReferenceList": "x"}
        result = parse_generation_output(_fenced(meta))
        assert isinstance(result, ParsedResponse)
        assert result.metadata.WordCount == 1480

    def test_structured_citations_become_strings(self):
        meta = {"SectionID": "1.1", "WordCount": 5, "NewCitationsAdded": [{"author": "Kalman", "year": 1960}]}
        result = parse_generation_output(_fenced(meta))
        assert json.loads(result.metadata.NewCitationsAdded[0]) == {"author": "Kalman", "year": 1960}

    def test_invalid_json_falls_through_to_unparsed(self):
        raw = f"{BODY}\n```json\n{{\"SectionID\": \"1.1\", \"WordCount\": }}\n```"
        result = parse_generation_output(raw)
        assert isinstance(result, UnparsedResponse)
        assert result.raw_text == raw


class TestTailBraceStage:
    def test_bare_trailing_object(self):
        raw = BODY + json.dumps({"SectionID": "3.2", "WordCount": 60})
        result = parse_generation_output(raw)
        assert isinstance(result, ParsedResponse)
        assert result.metadata.SectionID == "3.2"
        assert result.content == BODY.strip()

    def test_requires_section_id_and_word_count(self):
        raw = BODY + json.dumps({"SectionID": "3.2"})
        assert isinstance(parse_generation_output(raw), UnparsedResponse)

    def test_brace_in_first_half_ignored(self):
        raw = json.dumps({"SectionID": "3.2", "WordCount": 1}) + BODY
        assert isinstance(parse_generation_output(raw), UnparsedResponse)


class TestNeverRaises:
    def test_empty(self):
        result = parse_generation_output("")
        assert isinstance(result, UnparsedResponse)

    def test_plain_prose(self):
        result = to_generation_response(parse_generation_output(BODY))
        assert result.metadata is None
        assert result.content == BODY.strip()

    def test_non_object_json(self):
        raw = f"{BODY}\n```json\n[1, 2, 3]\n```"
        assert isinstance(parse_generation_output(raw), UnparsedResponse)
