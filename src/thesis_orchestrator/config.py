"""Configuration loading and per-role LLM settings.

Two ways in: the Hydra CLI builds a ``ProjectConfig`` from ``conf/config.yaml``
plus overrides, or ``load_config()`` reads a standalone thesis YAML (selected
with ``config_file=...`` on the command line). Standalone files may use
``${ENV_VAR}`` references, and their relative paths are anchored to the
file's own directory so a thesis folder can be run from anywhere.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import AzureConfig, ModelConfig, ModelEndpointOverride, ProjectConfig

load_dotenv()

_ENV_RE = re.compile(r"\$\{([^}]+)\}")

# Fields holding paths that are relative to the YAML file's directory
PATH_FIELDS = ("outline_file", "codebase_dir", "output_dir")

# Azure field -> environment variable used when the field is blank
AZURE_ENV_VARS = {
    "api_key": "AZURE_OPENAI_API_KEY",
    "api_version": "AZURE_OPENAI_API_VERSION",
    "endpoint": "AZURE_OPENAI_ENDPOINT",
}

# Agent role -> ModelConfig attribute; unknown roles use ``models.default``
ROLE_MODELS = {
    "section_writer": "writer",
    "bibliographer": "bibliographer",
    "compliance_reviewer": "reviewer",
}


# ---------------------------------------------------------------------------
# Standalone YAML
# ---------------------------------------------------------------------------

def _resolve_env_vars(value: Any) -> Any:
    """Substitute ``${VAR}`` references throughout a parsed YAML tree."""
    if isinstance(value, str):
        return _ENV_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def _anchor_paths(raw: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    anchored = dict(raw)
    for key in PATH_FIELDS:
        value = anchored.get(key)
        if value and not Path(value).is_absolute():
            anchored[key] = str(base_dir / value)
    return anchored


def apply_azure_fallbacks(config: ProjectConfig) -> ProjectConfig:
    """Fill blank Azure settings from ``AZURE_OPENAI_*`` and drop a trailing slash."""
    for field, env_var in AZURE_ENV_VARS.items():
        if not getattr(config.azure, field):
            setattr(config.azure, field, os.getenv(env_var, ""))
    config.azure.endpoint = config.azure.endpoint.rstrip("/")
    return config


def load_config(config_path: str | Path) -> ProjectConfig:
    """Read a thesis YAML file into a ``ProjectConfig``.

    ``outline_file``, ``codebase_dir`` and ``output_dir`` become absolute,
    resolved against the directory holding *config_path*.

    Raises:
        FileNotFoundError: if *config_path* does not exist.
        pydantic.ValidationError: if a value is out of range.
    """
    path = Path(config_path).resolve()
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    raw = _anchor_paths(_resolve_env_vars(raw), path.parent)
    return apply_azure_fallbacks(ProjectConfig.model_validate(raw))


# ---------------------------------------------------------------------------
# AG2 llm_config per role
# ---------------------------------------------------------------------------

def model_for_role(role: str, models: ModelConfig) -> str:
    attr = ROLE_MODELS.get(role.lower())
    return (getattr(models, attr) if attr else None) or models.default


def _is_azure_openai_endpoint(endpoint: str) -> bool:
    lower = endpoint.lower()
    return "openai.azure.com" in lower or "cognitiveservices.azure.com" in lower


def _config_entry(
    model: str,
    azure: AzureConfig,
    override: ModelEndpointOverride | None = None,
) -> dict[str, Any]:
    """One ``config_list`` entry for *model*.

    An override replaces the endpoint (and, when set, key and version). An
    override ``api_type`` wins outright; otherwise Azure OpenAI hosts get
    deployment routing and anything else is called as OpenAI-compatible.
    """
    endpoint = override.endpoint.rstrip("/") if override else azure.endpoint
    api_key = (override.api_key if override else "") or azure.api_key
    api_version = (override.api_version if override else "") or azure.api_version

    entry: dict[str, Any] = {"model": model, "api_key": api_key}
    if override and override.api_type:
        entry.update(api_type=override.api_type, base_url=endpoint)
    elif endpoint and _is_azure_openai_endpoint(endpoint):
        entry.update(
            api_type="azure",
            azure_endpoint=endpoint,
            api_version=api_version,
            azure_deployment=model,
        )
    elif endpoint:
        entry["base_url"] = endpoint
    return entry


def build_role_llm_config(role: str, config: ProjectConfig) -> dict[str, Any]:
    """AG2 ``llm_config`` for one agent role.

    ``section_writer`` uses ``models.writer``, ``bibliographer`` uses
    ``models.bibliographer`` and ``compliance_reviewer`` uses
    ``models.reviewer``; each falls back to ``models.default``. A matching
    entry in ``models.overrides`` redirects that model to another endpoint.
    """
    model = model_for_role(role, config.models)
    entry = _config_entry(model, config.azure, config.models.overrides.get(model))
    return {"config_list": [entry], "timeout": config.timeout, "seed": config.seed}
