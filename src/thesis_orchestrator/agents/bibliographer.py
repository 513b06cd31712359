"""Bibliographer agent — formats a chapter's citation ledger as a reference list.

The ledger numbering is authoritative: the agent must never renumber,
merge or drop entries.
"""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import ProjectConfig

SYSTEM_PROMPT = """\
You are a bibliography assistant for a doctoral thesis.

You receive the title of a chapter and a JSON object mapping citation numbers
to source descriptions. Format them as a Markdown reference list.

RULES:
- Start with the header "## References".
- One entry per key, in ascending numeric order, prefixed with the key in
  brackets: "[n] Author(s). Title. Publication venue or publisher. Year.
  One sentence summary."
- NEVER renumber, merge, drop or add entries. Keys must match exactly.

Respond ONLY with the formatted Markdown.
"""


def make_bibliographer(config: ProjectConfig) -> autogen.AssistantAgent:
    """Create the Bibliographer agent."""
    return autogen.AssistantAgent(
        name="Bibliographer",
        system_message=SYSTEM_PROMPT,
        llm_config=build_role_llm_config("bibliographer", config),
    )
