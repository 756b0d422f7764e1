"""Pydantic models for the report enhancement pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

PRIORITY_VALUES = frozenset(p.value for p in Priority)


class PipelineState(str, Enum):
    IDLE = "idle"
    IDENTIFYING = "identifying"
    NO_TASKS = "no_tasks"
    FILTERING = "filtering"
    NO_ELIGIBLE = "no_eligible"
    EXECUTING = "executing"
    SUBSTITUTING = "substituting"
    DONE = "done"


class EnhancementEvent(str, Enum):
    """Events emitted to the optional observer hook."""
    TASKS = "tasks"
    TASK_STARTED = "task_started"
    SUBTASK_STARTED = "subtask_started"
    SUBTASK_COMPLETED = "subtask_completed"
    ENHANCEMENTS = "enhancements"


def _coerce_priority(value: Any) -> Any:
    """Case-insensitive priority; anything unrecognised ranks as low."""
    if isinstance(value, Priority):
        return value
    text = str(value).strip().lower() if value is not None else ""
    if text in PRIORITY_VALUES:
        return text
    return Priority.LOW


# ---------------------------------------------------------------------------
# Tasks and results
# ---------------------------------------------------------------------------

class EnhancementTask(BaseModel):
    """One underspecified claim in the report plus the research goal for it."""
    model_config = ConfigDict(frozen=True)

    task_id: str = Field(default="", description="Identifier, unique within a run")
    research_task: str = Field(..., description="What data is missing")
    original_quote: str = Field(..., min_length=1, description="Verbatim substring of the report")
    enhancement_focus: str = Field(default="", description="Kind of data needed")
    expected_improvement: str = Field(default="", description="Why the enhancement helps")
    priority: Priority = Field(default=Priority.MEDIUM)
    data_sources_needed: list[str] = Field(default_factory=list, description="Source-type hints")

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, v: Any) -> Any:
        return _coerce_priority(v)

    @field_validator("task_id", mode="before")
    @classmethod
    def _task_id_to_str(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @field_validator("original_quote")
    @classmethod
    def _quote_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("original_quote must contain non-whitespace text")
        return v

    @field_validator("data_sources_needed", mode="before")
    @classmethod
    def _sources_as_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class EnhancementResult(BaseModel):
    """Outcome of one sub-agent call.

    ``enhanced_content`` is never empty: a blank value falls back to
    ``original_quote`` so that applying the result is a no-op.
    """
    model_config = ConfigDict(frozen=True)

    task_id: str = Field(...)
    original_quote: str = Field(..., min_length=1)
    enhanced_content: str = Field(default="")
    research_task: str = Field(default="")
    priority: Priority = Field(default=Priority.MEDIUM)
    error: str | None = Field(default=None, description="Failure description when the call failed")

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, v: Any) -> Any:
        return _coerce_priority(v)

    @model_validator(mode="before")
    @classmethod
    def _fallback_to_quote(cls, data: Any) -> Any:
        if isinstance(data, dict):
            content = data.get("enhanced_content")
            if not isinstance(content, str) or not content.strip():
                data = {**data, "enhanced_content": data.get("original_quote")}
        return data

    @property
    def is_modified(self) -> bool:
        return self.enhanced_content != self.original_quote

    @classmethod
    def unchanged(cls, task: EnhancementTask, error: str | None = None) -> EnhancementResult:
        """Safe no-op result for *task*."""
        return cls(
            task_id=task.task_id,
            original_quote=task.original_quote,
            enhanced_content=task.original_quote,
            research_task=task.research_task,
            priority=task.priority,
            error=error,
        )


class TaskIdentification(BaseModel):
    """Parsed output of the task identifier call."""
    enhancement_tasks: list[EnhancementTask] = Field(default_factory=list)
    overall_strategy: str = Field(default="")
    total_tasks: int = Field(default=0)

    @field_validator("total_tasks", mode="before")
    @classmethod
    def _lenient_count(cls, v: Any) -> Any:
        if isinstance(v, str):
            digits = "".join(ch for ch in v if ch.isdigit())
            return int(digits) if digits else 0
        return v or 0


# ---------------------------------------------------------------------------
# Generation requests
# ---------------------------------------------------------------------------

class FileReference(BaseModel):
    """Opaque uploaded-file handle passed through to the backend."""
    model_config = ConfigDict(frozen=True)

    mime_type: str = Field(...)
    uri: str = Field(...)
    display_name: str = Field(default="")


class InlineDocument(BaseModel):
    """Reference document supplied as inline text."""
    model_config = ConfigDict(frozen=True)

    display_name: str = Field(...)
    content: str = Field(...)


ReferenceDocument = Union[FileReference, InlineDocument]


class TextPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


ContentPart = Union[TextPart, FileReference]


class GenerationRequest(BaseModel):
    """One call to the content-generation backend."""
    model_config = ConfigDict(frozen=True)

    role: str = Field(..., description="Config role used to pick the model, e.g. 'identifier'")
    parts: list[ContentPart] = Field(default_factory=list)
    system_instruction: str = Field(default="")
    reasoning_effort: str | None = Field(default=None, description="None lets the model decide")
    model: str | None = Field(default=None, description="Explicit model; None uses the role mapping")
    grounding_store: str | None = Field(default=None, description="Optional document-store name")


# ---------------------------------------------------------------------------
# Substitution and run results
# ---------------------------------------------------------------------------

class SubstitutionOutcome(BaseModel):
    """Result of one substitution pass over the report."""
    report: str = Field(...)
    replacements: int = Field(default=0)
    exact_matches: list[str] = Field(default_factory=list, description="Task ids replaced verbatim")
    normalized_matches: list[str] = Field(default_factory=list, description="Task ids replaced after whitespace normalization")
    unmatched: list[str] = Field(default_factory=list, description="Task ids whose quote was not found")
    skipped: list[str] = Field(default_factory=list, description="Task ids with nothing to apply")


class EnhancementRunResult(BaseModel):
    """Top-level result of one pipeline run."""
    original_report: str = Field(...)
    enhanced_report: str = Field(...)
    identification: TaskIdentification | None = Field(default=None)
    eligible_tasks: list[EnhancementTask] = Field(default_factory=list)
    results: list[EnhancementResult] = Field(default_factory=list)
    replacements: int = Field(default=0)
    unmatched: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    states: list[PipelineState] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.enhanced_report != self.original_report

    @property
    def length_delta(self) -> int:
        return len(self.enhanced_report) - len(self.original_report)

    @property
    def improvement_pct(self) -> float:
        if not self.original_report:
            return 0.0
        return round(self.length_delta / len(self.original_report) * 100, 1)


# ---------------------------------------------------------------------------
# Project Configuration (loaded from YAML)
# ---------------------------------------------------------------------------

class ModelEndpointOverride(BaseModel):
    """Per-model endpoint settings that take precedence over ``azure``."""
    endpoint: str = Field(..., description="Endpoint / base URL for this model")
    api_key: str = Field(default="")
    api_version: str = Field(default="")
    api_type: str | None = Field(default=None, description="Forced AG2 api_type, e.g. 'anthropic'")


class ModelConfig(BaseModel):
    """LLM model configuration per role."""
    default: str = Field(default="gpt-5.2", description="Default model")
    identifier: str | None = Field(default=None)
    subagent: str | None = Field(default=None)
    overrides: dict[str, ModelEndpointOverride] = Field(default_factory=dict)


class AzureConfig(BaseModel):
    """Azure OpenAI connection settings."""
    api_key: str = Field(default="", description="Azure OpenAI API key (or ${ENV_VAR})")
    api_version: str = Field(default="", description="API version")
    endpoint: str = Field(default="", description="Azure endpoint URL")


class RetryConfig(BaseModel):
    """Backoff policy for transient backend failures."""
    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=2.0, ge=0, description="Seconds before the first retry")
    backoff_multiplier: float = Field(default=2.0, ge=1)
    rate_limit_factor: float = Field(default=2.0, ge=1, description="Extra delay factor for 429s")


class ProjectConfig(BaseModel):
    """Full project configuration loaded from config.yaml."""
    project_name: str = Field(default="report-enhancement")

    azure: AzureConfig = Field(default_factory=AzureConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    # Pipeline settings
    max_tasks: int = Field(default=8, ge=1, description="Upper bound on identified tasks")
    report_context_chars: int = Field(default=3000, ge=0, description="Report prefix shown to each sub-agent")
    max_concurrent_subagents: int | None = Field(default=None, ge=1, description="None runs every sub-agent at once")
    identifier_reasoning_effort: str | None = Field(default=None)
    subagent_reasoning_effort: str | None = Field(default=None)
    grounding_store: str | None = Field(default=None, description="Document-store name offered to the identifier")
    timeout: int = Field(default=120, description="LLM call timeout in seconds")
    seed: int = Field(default=42, description="LLM seed for reproducibility")
