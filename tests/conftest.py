"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from report_enhancer.client import render_parts
from report_enhancer.models import GenerationRequest, ProjectConfig, RetryConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_REPORT = FIXTURES_DIR / "sample_report.md"
SAMPLE_TRANSCRIPT = FIXTURES_DIR / "sample_transcript.txt"
SAMPLE_CONFIG = FIXTURES_DIR / "sample_config.yaml"

REVENUE_QUOTE = "Revenue grew significantly."
CUSTOMER_QUOTE = "The company has a strong customer base across several industries"
COMPETITION_QUOTE = (
    "The competitive landscape includes several established players with larger budgets"
)
TEAM_QUOTE = "The founding team has deep experience in industrial automation"


class FakeGenerationClient:
    """In-process stand-in for the generation backend.

    The identifier role returns *identification*. Sub-agent requests are
    matched on the quoted passage in the prompt: *failures* maps a quote to
    the exception to raise, *enhancements* maps a quote to its replacement.
    Unknown quotes are echoed back unchanged.
    """

    def __init__(
        self,
        identification: str = "",
        enhancements: dict[str, str] | None = None,
        failures: dict[str, BaseException] | None = None,
        identify_error: BaseException | None = None,
    ) -> None:
        self.identification = identification
        self.enhancements = enhancements or {}
        self.failures = failures or {}
        self.identify_error = identify_error
        self.requests: list[GenerationRequest] = []

    @staticmethod
    def quote_of(request: GenerationRequest) -> str | None:
        text = render_parts(list(request.parts))
        marker = 'ORIGINAL PASSAGE (to be replaced):\n"'
        if marker not in text:
            return None
        rest = text.split(marker, 1)[1]
        return rest.split('"\n', 1)[0]

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if request.role == "identifier":
            if self.identify_error is not None:
                raise self.identify_error
            return self.identification

        quote = self.quote_of(request)
        if quote in self.failures:
            raise self.failures[quote]
        return self.enhancements.get(quote, quote or "")

    @property
    def subagent_requests(self) -> list[GenerationRequest]:
        return [r for r in self.requests if r.role == "subagent"]


def make_task(task_id: str, quote: str, priority: str = "high", **extra: Any) -> dict[str, Any]:
    task = {
        "task_id": task_id,
        "research_task": f"Find data for {task_id}",
        "original_quote": quote,
        "enhancement_focus": "financial detail",
        "expected_improvement": "quantified claim",
        "priority": priority,
        "data_sources_needed": ["interview transcript"],
    }
    task.update(extra)
    return task


def identification_json(*tasks: dict[str, Any], strategy: str = "Quantify key claims") -> str:
    return json.dumps({
        "enhancement_tasks": list(tasks),
        "overall_strategy": strategy,
        "total_tasks": len(tasks),
    })


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_report() -> str:
    return SAMPLE_REPORT.read_text(encoding="utf-8")


@pytest.fixture
def sample_transcript() -> str:
    return SAMPLE_TRANSCRIPT.read_text(encoding="utf-8")


@pytest.fixture
def sample_config_path() -> Path:
    return SAMPLE_CONFIG


@pytest.fixture
def fast_config() -> ProjectConfig:
    """Config whose retries never actually wait."""
    return ProjectConfig(retry=RetryConfig(initial_delay=0.0))
