"""Configuration loader and LLM config builder.

Reads project settings from a YAML config file with ``${ENV_VAR}`` interpolation.
The resulting ``ProjectConfig`` is passed explicitly to the pipeline and every
generation call site; nothing here is held as process-wide state.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import AzureConfig, ModelEndpointOverride, ProjectConfig

load_dotenv()

# ---------------------------------------------------------------------------
# YAML loading with ${ENV_VAR} interpolation
# ---------------------------------------------------------------------------

_ENV_RE = re.compile(r"\$\{([^}]+)\}")


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${ENV_VAR}`` references in strings."""
    if isinstance(value, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), "")
        return _ENV_RE.sub(_replace, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def apply_azure_fallbacks(config: ProjectConfig) -> ProjectConfig:
    """Fill empty azure credentials from environment variables and normalise endpoint."""
    if not config.azure.api_key:
        config.azure.api_key = os.getenv("AZURE_OPENAI_API_KEY", "")
    if not config.azure.api_version:
        config.azure.api_version = os.getenv("AZURE_OPENAI_API_VERSION", "")
    if not config.azure.endpoint:
        config.azure.endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    config.azure.endpoint = config.azure.endpoint.rstrip("/")
    return config


def load_config(config_path: str | Path) -> ProjectConfig:
    """Load a ``ProjectConfig`` from a YAML file.

    Environment variables referenced as ``${VAR_NAME}`` are resolved.
    If ``azure`` fields are empty after resolution, they fall back to
    well-known environment variables (``AZURE_OPENAI_*``).
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    resolved = _resolve_env_vars(raw)
    config = ProjectConfig.model_validate(resolved)
    return apply_azure_fallbacks(config)


# ---------------------------------------------------------------------------
# LLM config builder
# ---------------------------------------------------------------------------

def _is_azure_openai_endpoint(endpoint: str) -> bool:
    """Return True for Azure OpenAI endpoints, False for Azure AI Model Inference."""
    lower = endpoint.lower()
    return "openai.azure.com" in lower or "cognitiveservices.azure.com" in lower


def _build_single_entry(
    model: str,
    azure: AzureConfig,
    override: ModelEndpointOverride | None = None,
    reasoning_effort: str | None = None,
) -> dict[str, Any]:
    """Build a single AG2 config_list entry for the given model.

    When an override specifies ``api_type`` (e.g. ``"anthropic"``), that type
    is used directly with the override endpoint as ``base_url``.

    Otherwise Azure OpenAI endpoints use ``api_type: "azure"`` with
    deployment-based routing, and other endpoints are treated as
    OpenAI-compatible via ``base_url``.
    """
    api_key = azure.api_key
    api_version = azure.api_version
    endpoint = azure.endpoint
    forced_api_type: str | None = None

    if override:
        endpoint = override.endpoint.rstrip("/")
        if override.api_key:
            api_key = override.api_key
        if override.api_version:
            api_version = override.api_version
        forced_api_type = override.api_type

    entry: dict[str, Any] = {
        "model": model,
        "api_key": api_key,
    }

    if forced_api_type:
        entry["api_type"] = forced_api_type
        entry["base_url"] = endpoint
    elif endpoint and _is_azure_openai_endpoint(endpoint):
        entry.update({
            "api_type": "azure",
            "azure_endpoint": endpoint,
            "api_version": api_version,
            "azure_deployment": model,
        })
    elif endpoint:
        entry["base_url"] = endpoint

    if reasoning_effort:
        entry["reasoning_effort"] = reasoning_effort
    return entry


def resolve_role_model(role: str, config: ProjectConfig) -> str:
    """Return the model name configured for *role* (falls back to ``models.default``)."""
    models = config.models
    role_map: dict[str, str | None] = {
        "identifier": models.identifier,
        "task_identifier": models.identifier,
        "subagent": models.subagent,
        "sub_agent": models.subagent,
    }
    return role_map.get(role.lower()) or models.default


def build_role_llm_config(
    role: str,
    config: ProjectConfig,
    *,
    model: str | None = None,
    reasoning_effort: str | None = None,
) -> dict[str, Any]:
    """Return an AG2-compatible ``llm_config`` dict for the given *role*.

    Role mapping:
    - ``identifier`` → models.identifier (or default)
    - ``subagent`` → models.subagent (or default)

    An explicit *model* bypasses the role mapping. If
    ``config.models.overrides`` contains an entry for the chosen model name,
    that entry's endpoint / api_key / api_version take precedence over the
    global ``config.azure`` values.
    """
    chosen = model or resolve_role_model(role, config)
    override = config.models.overrides.get(chosen)
    entry = _build_single_entry(
        chosen, config.azure, override=override, reasoning_effort=reasoning_effort,
    )
    return {
        "config_list": [entry],
        "timeout": config.timeout,
        "seed": config.seed,
    }
