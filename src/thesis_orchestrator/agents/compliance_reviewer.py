"""ComplianceReviewer agent — checks a companion codebase against the thesis."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ComplianceVerdict, ProjectConfig

SYSTEM_PROMPT = """\
You are a senior software engineer reviewing a Python codebase against the
thesis that describes it.

Decide whether the code faithfully implements the described system:
1. Does the module, class and function structure reflect the architecture?
2. Are the core algorithms and data structures implemented as described?
3. Are there major discrepancies or missing components?

Output ONLY a JSON object matching the ComplianceVerdict schema:
{
  "status": "success",
  "details": "One-sentence justification."
}
"status" is either "success" or "failure".
"""


def make_compliance_reviewer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the ComplianceReviewer agent (structured ComplianceVerdict output)."""
    llm_config = build_role_llm_config("compliance_reviewer", config)
    llm_config["response_format"] = ComplianceVerdict
    return autogen.AssistantAgent(
        name="ComplianceReviewer",
        system_message=SYSTEM_PROMPT,
        llm_config=llm_config,
    )
