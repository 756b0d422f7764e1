"""EnhancementSubAgent — researches one task and rewrites its quote.

Each call is independent: it reads the task, the report prefix, the
transcript and the reference documents, and returns a replacement for the
task's quote. Any failure yields a no-op result carrying the error.
"""

from __future__ import annotations

import logging

from ..client import GenerationClient
from ..models import (
    ContentPart,
    EnhancementResult,
    EnhancementTask,
    FileReference,
    GenerationRequest,
    InlineDocument,
    ProjectConfig,
    ReferenceDocument,
    TextPart,
)
from ..retry import with_retry

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a research sub-agent. You strengthen one passage of an analytical
report using only facts found in the materials you are given.
"""

TASK_BRIEF = """\
YOUR RESEARCH TASK:
{research_task}

ENHANCEMENT FOCUS:
{enhancement_focus}

EXPECTED IMPROVEMENT:
{expected_improvement}

ORIGINAL PASSAGE (to be replaced):
"{original_quote}"

REPORT CONTEXT:
{report_context}

SOURCE TRANSCRIPT:
{transcript}
"""

OUTPUT_RULES = """\
Search all of the materials above for details related to the original
passage, then write an enhanced version that replaces it.

Rules:
1. Only add facts (figures, dates, names, metrics) found in the provided materials.
2. Never add opinions, judgments or recommendations.
3. Preserve the sentence structure and logical position of the original passage.
4. If the materials contain no supporting data, return the original passage unchanged.

Output ONLY the replacement text, with no commentary, quotes or formatting marks.
"""


def report_context(report: str, limit: int) -> str:
    """Leading *limit* characters of *report*, marked when truncated."""
    if limit <= 0 or len(report) <= limit:
        return report
    return report[:limit] + "..."


def build_subagent_request(
    task: EnhancementTask,
    report: str,
    transcript: str,
    references: list[ReferenceDocument],
    config: ProjectConfig,
) -> GenerationRequest:
    """Assemble the content parts for one sub-agent call.

    Inline documents become text parts; file references are passed through
    untouched.
    """
    parts: list[ContentPart] = [TextPart(text=TASK_BRIEF.format(
        research_task=task.research_task,
        enhancement_focus=task.enhancement_focus or "(unspecified)",
        expected_improvement=task.expected_improvement or "(unspecified)",
        original_quote=task.original_quote,
        report_context=report_context(report, config.report_context_chars),
        transcript=transcript or "(none)",
    ))]

    if references:
        parts.append(TextPart(text="\nREFERENCE DOCUMENTS:"))
        for doc in references:
            if isinstance(doc, InlineDocument):
                parts.append(TextPart(text=f"\nDocument: {doc.display_name}\n{doc.content}"))
            elif isinstance(doc, FileReference):
                parts.append(doc)

    parts.append(TextPart(text="\n" + OUTPUT_RULES))
    return GenerationRequest(
        role="subagent",
        system_instruction=SYSTEM_PROMPT,
        parts=parts,
        reasoning_effort=config.subagent_reasoning_effort,
    )


async def execute_subagent_task(
    task: EnhancementTask,
    report: str,
    transcript: str,
    references: list[ReferenceDocument],
    client: GenerationClient,
    config: ProjectConfig,
) -> EnhancementResult:
    """Run one sub-agent. Never raises for backend or parsing failures."""
    try:
        request = build_subagent_request(task, report, transcript, references, config)
        text = await with_retry(
            lambda: client.generate(request),
            policy=config.retry,
            label=f"sub-agent {task.task_id}",
        )
    except Exception as e:
        error = str(e) or type(e).__name__
        logger.error("Sub-agent %s failed: %s", task.task_id, error)
        return EnhancementResult.unchanged(task, error=error)

    content = text.strip()
    if not content:
        logger.info("Sub-agent %s returned nothing, keeping original quote", task.task_id)
        return EnhancementResult.unchanged(task)

    result = EnhancementResult(
        task_id=task.task_id,
        original_quote=task.original_quote,
        enhanced_content=content,
        research_task=task.research_task,
        priority=task.priority,
    )
    logger.debug(
        "Sub-agent %s: %d -> %d chars",
        task.task_id, len(result.original_quote), len(result.enhanced_content),
    )
    return result
