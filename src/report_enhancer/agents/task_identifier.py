"""TaskIdentifier agent — scans the report and proposes enhancement tasks.

One generation call per run. The reply is expected to contain a JSON object
with ``enhancement_tasks``, ``overall_strategy`` and ``total_tasks``.
Anything that does not parse is treated as "no tasks", never as an error.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from ..client import GenerationClient
from ..models import (
    EnhancementTask,
    GenerationRequest,
    ProjectConfig,
    TaskIdentification,
    TextPart,
)
from ..retry import with_retry
from ..tools.quote_substitution import find_quote_span

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a senior investment analyst and report quality reviewer.
You identify claims in analytical reports that lack quantifiable support and
design focused research tasks to strengthen them.
"""

INSTRUCTIONS = """\
Analyze the full report below and identify at most {max_tasks} passages whose
claims lack quantifiable support (missing figures, vague competitor data,
shallow technical descriptions, unverified market data, unclear business
model details, thin team or customer information, weak risk descriptions).

For each passage, design one concrete research task.

Output ONLY a JSON object:
{{
  "enhancement_tasks": [
    {{
      "task_id": "unique id",
      "research_task": "what data is missing and must be found",
      "original_quote": "verbatim passage from the report",
      "enhancement_focus": "kind of data needed (financials, competitors, ...)",
      "expected_improvement": "why filling this gap improves the report",
      "priority": "high | medium | low",
      "data_sources_needed": ["source type", "..."]
    }}
  ],
  "overall_strategy": "one or two sentences",
  "total_tasks": 0
}}

Rules:
- original_quote MUST be copied character-for-character from the report,
  keeping all punctuation, so it can be found by exact substring lookup.
- original_quote must be one contiguous span inside a single paragraph,
  between 50 and 150 characters long.
- Avoid spans that start with list numbering or bullet markers.
- Only pick passages whose enhancement materially improves the report.
- Mark as "high" only the tasks with a direct impact on the report's conclusions.

REPORT:
{report}
"""


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _strip_fences(raw: str) -> str:
    return re.sub(r"```(?:json)?|```", "", raw).strip()


def _drop_trailing_commas(raw: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", raw)


def _attempt_repair(raw: str) -> str:
    """Heavier repair: curly quotes used as JSON delimiters, then trailing commas."""
    txt = raw.replace("“", '"').replace("”", '"')
    return _drop_trailing_commas(txt)


def extract_json_object(raw: str) -> dict[str, Any] | None:
    """Return the first JSON object found in *raw*, or ``None``.

    The widest ``{...}`` span is tried as is, then with trailing commas
    dropped, and only then with curly quotes turned into JSON quotes. Failing
    that, each ``{`` position is decoded in turn until one yields an object.
    """
    text = _strip_fences(raw or "")
    if "{" not in text:
        return None

    start, end = text.find("{"), text.rfind("}")
    if end > start:
        segment = text[start:end + 1]
        for candidate in (segment, _drop_trailing_commas(segment), _attempt_repair(segment)):
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed

    decoder = json.JSONDecoder()
    for m in re.finditer(r"\{", text):
        try:
            parsed, _ = decoder.raw_decode(text, m.start())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _unique_id(candidate: str, index: int, seen: set[str]) -> str:
    base = candidate.strip() or f"task_{index + 1}"
    task_id, n = base, 2
    while task_id in seen:
        task_id = f"{base}_{n}"
        n += 1
    seen.add(task_id)
    return task_id


def parse_identification(raw: str, *, max_tasks: int = 8) -> TaskIdentification | None:
    """Parse the identifier reply into a :class:`TaskIdentification`.

    Returns ``None`` when no JSON object is present or it carries no
    ``enhancement_tasks`` list. Individual malformed task records are dropped;
    missing or duplicate ids are made unique; the list is capped at
    *max_tasks*.
    """
    data = extract_json_object(raw)
    if data is None:
        logger.warning("No JSON object in task identification response")
        return None

    raw_tasks = data.get("enhancement_tasks")
    if not isinstance(raw_tasks, list):
        logger.warning("Task identification response has no enhancement_tasks list")
        return None

    tasks: list[EnhancementTask] = []
    seen: set[str] = set()
    for i, item in enumerate(raw_tasks):
        if not isinstance(item, dict):
            logger.warning("Dropping non-object task record #%d", i + 1)
            continue
        try:
            task = EnhancementTask.model_validate(item)
        except ValidationError as e:
            logger.warning("Dropping malformed task record #%d: %s", i + 1, e.errors()[0].get("msg", e))
            continue
        tasks.append(task.model_copy(update={"task_id": _unique_id(task.task_id, i, seen)}))

    if len(tasks) > max_tasks:
        logger.info("Truncating %d identified tasks to %d", len(tasks), max_tasks)
        tasks = tasks[:max_tasks]

    try:
        total = TaskIdentification.model_validate(
            {"total_tasks": data.get("total_tasks", len(tasks))}
        ).total_tasks
    except ValidationError:
        total = len(tasks)

    return TaskIdentification(
        enhancement_tasks=tasks,
        overall_strategy=str(data.get("overall_strategy") or ""),
        total_tasks=total,
    )


def report_unverifiable_quotes(report: str, identification: TaskIdentification) -> list[str]:
    """Log and return ids of tasks whose quote cannot be located in *report*."""
    missing: list[str] = []
    for task in identification.enhancement_tasks:
        if task.original_quote in report:
            continue
        if find_quote_span(report, task.original_quote) is None:
            logger.warning(
                "Task %s quote not found in report: %r", task.task_id, task.original_quote[:50],
            )
            missing.append(task.task_id)
    return missing


# ---------------------------------------------------------------------------
# Agent call
# ---------------------------------------------------------------------------

def build_identification_request(
    report: str,
    config: ProjectConfig,
    *,
    grounding_store: str | None = None,
) -> GenerationRequest:
    """Build the single generation request used for task identification."""
    return GenerationRequest(
        role="identifier",
        system_instruction=SYSTEM_PROMPT,
        parts=[TextPart(text=INSTRUCTIONS.format(max_tasks=config.max_tasks, report=report))],
        reasoning_effort=config.identifier_reasoning_effort,
        grounding_store=grounding_store or config.grounding_store,
    )


async def identify_enhancement_tasks(
    report: str,
    client: GenerationClient,
    config: ProjectConfig,
    *,
    grounding_store: str | None = None,
) -> TaskIdentification | None:
    """Run the identifier and return its tasks, or ``None`` for "nothing to do".

    Backend errors (after retries) propagate to the caller.
    """
    request = build_identification_request(report, config, grounding_store=grounding_store)
    text = await with_retry(
        lambda: client.generate(request),
        policy=config.retry,
        label="task identification",
    )
    identification = parse_identification(text, max_tasks=config.max_tasks)
    if identification is None or not identification.enhancement_tasks:
        return None

    report_unverifiable_quotes(report, identification)
    return identification
