"""Tests for the agent factories and their system prompts."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from thesis_orchestrator.agents.bibliographer import SYSTEM_PROMPT as BIB_PROMPT
from thesis_orchestrator.agents.bibliographer import make_bibliographer
from thesis_orchestrator.agents.compliance_reviewer import make_compliance_reviewer
from thesis_orchestrator.agents.section_writer import STYLE_GUIDE, make_section_writer
from thesis_orchestrator.config import build_role_llm_config
from thesis_orchestrator.models import ComplianceVerdict, ProjectConfig


@pytest.fixture
def config() -> ProjectConfig:
    return ProjectConfig(
        thesis_title="Adaptive Sensor Fusion",
        global_target_word_count=80000,
        word_tolerance=150,
        models={"default": "gpt-4", "writer": "gpt-5.2", "reviewer": "gpt-4o-mini"},
        azure={"api_key": "k", "api_version": "v", "endpoint": "https://test.openai.azure.com"},
    )


class TestSectionWriter:
    def test_name(self, config):
        agent = make_section_writer(config)
        assert agent.name == "SectionWriter"

    def test_role_maps_to_writer_model(self, config):
        assert build_role_llm_config("section_writer", config)["config_list"][0]["model"] == "gpt-5.2"

    def test_prompt_carries_budget_and_title(self, config):
        agent = make_section_writer(config)
        assert '"Adaptive Sensor Fusion"' in agent.system_message
        assert "80,000" in agent.system_message
        assert "+/-150" in agent.system_message

    def test_prompt_includes_style_guide_and_placeholder_format(self, config):
        agent = make_section_writer(config)
        assert STYLE_GUIDE.strip() in agent.system_message
        assert '[FIGURE placeholder id=Fnnn caption="One line caption"]' in agent.system_message

    def test_untitled_thesis(self, config):
        config.thesis_title = ""
        agent = make_section_writer(config)
        assert "titled" not in agent.system_message.split("\n")[0]


class TestBibliographer:
    def test_name(self, config):
        assert make_bibliographer(config).name == "Bibliographer"

    def test_role_falls_back_to_default_model(self, config):
        assert build_role_llm_config("bibliographer", config)["config_list"][0]["model"] == "gpt-4"

    def test_prompt_forbids_renumbering(self):
        assert "## References" in BIB_PROMPT
        assert "NEVER renumber" in BIB_PROMPT


class TestComplianceReviewer:
    @patch("thesis_orchestrator.agents.compliance_reviewer.autogen.AssistantAgent")
    def test_response_format_set(self, mock_agent, config):
        make_compliance_reviewer(config)
        kwargs = mock_agent.call_args.kwargs
        assert kwargs["name"] == "ComplianceReviewer"
        assert kwargs["llm_config"]["response_format"] is ComplianceVerdict
        assert kwargs["llm_config"]["config_list"][0]["model"] == "gpt-4o-mini"
