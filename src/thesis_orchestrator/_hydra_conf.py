"""Hydra structured config dataclasses.

These mirror the Pydantic ``ProjectConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``ProjectConfig`` via
``cli._to_project_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hydra.core.config_store import ConfigStore


@dataclass
class AzureConf:
    api_key: str = "${oc.env:AZURE_OPENAI_API_KEY,''}"
    api_version: str = "${oc.env:AZURE_OPENAI_API_VERSION,''}"
    endpoint: str = "${oc.env:AZURE_OPENAI_ENDPOINT,''}"


@dataclass
class ModelConf:
    default: str = "gpt-5.2"
    writer: str | None = None
    bibliographer: str | None = None
    reviewer: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)


@dataclass
class ThesisConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    verbose: bool = False
    quiet: bool = False
    resume: bool = False
    section: int | None = None
    max_steps: int | None = None
    config_file: str | None = None

    # --- ProjectConfig fields (1:1 mapping) ---
    project_name: str = "thesis"
    thesis_title: str = ""
    outline_file: str | None = None

    global_target_word_count: int = 90000
    word_tolerance: int = 200
    min_plan_sections: int = 51

    context_chars: int = 300
    chunk_delay_seconds: float = 0.1

    codebase_dir: str | None = None
    code_compliance_enabled: bool = False

    output_dir: str = "output/"

    azure: AzureConf = field(default_factory=AzureConf)
    models: ModelConf = field(default_factory=ModelConf)

    timeout: int = 120
    seed: int = 42


# Keys present in ThesisConf that are NOT part of ProjectConfig.
CLI_ONLY_KEYS = frozenset({
    "mode", "verbose", "quiet", "resume", "section", "max_steps", "config_file",
})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="thesis_schema", node=ThesisConf)
