"""Hydra structured config dataclasses.

These mirror the Pydantic ``ProjectConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``ProjectConfig`` via
``cli._to_project_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hydra.core.config_store import ConfigStore


@dataclass
class AzureConf:
    api_key: str = "${oc.env:AZURE_OPENAI_API_KEY,''}"
    api_version: str = "${oc.env:AZURE_OPENAI_API_VERSION,''}"
    endpoint: str = "${oc.env:AZURE_OPENAI_ENDPOINT,''}"


@dataclass
class ModelConf:
    default: str = "gpt-5.2"
    identifier: str | None = None
    subagent: str | None = None


@dataclass
class RetryConf:
    max_attempts: int = 3
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0
    rate_limit_factor: float = 2.0


@dataclass
class EnhancerConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    verbose: bool = False
    quiet: bool = False
    report_file: str | None = None
    transcript_file: str | None = None
    reference_files: list[str] = field(default_factory=list)
    results_file: str | None = None
    output_file: str | None = None

    # --- ProjectConfig fields (1:1 mapping) ---
    project_name: str = "report-enhancement"

    azure: AzureConf = field(default_factory=AzureConf)
    models: ModelConf = field(default_factory=ModelConf)
    retry: RetryConf = field(default_factory=RetryConf)

    max_tasks: int = 8
    report_context_chars: int = 3000
    max_concurrent_subagents: int | None = None
    identifier_reasoning_effort: str | None = None
    subagent_reasoning_effort: str | None = None
    grounding_store: str | None = None
    timeout: int = 120
    seed: int = 42


# Keys present in EnhancerConf that are NOT part of ProjectConfig.
CLI_ONLY_KEYS = frozenset({
    "mode", "verbose", "quiet", "report_file", "transcript_file",
    "reference_files", "results_file", "output_file",
})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="enhancer_schema", node=EnhancerConf)
