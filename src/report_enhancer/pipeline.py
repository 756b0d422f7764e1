"""Pipeline — master/sub-agent enhancement of an analytical report.

IDENTIFYING   — one TaskIdentifier call proposes enhancement tasks
FILTERING     — only high-priority tasks go on to research
EXECUTING     — one EnhancementSubAgent per task, all running concurrently
SUBSTITUTING  — results are spliced back into the report, one at a time

Whatever happens inside a run, the caller gets a usable report back: the
enhanced one, a partially enhanced one, or the original unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .agents.sub_agent import execute_subagent_task
from .agents.task_identifier import identify_enhancement_tasks
from .client import AutogenGenerationClient, GenerationClient
from .logging_config import EventSink
from .models import (
    EnhancementEvent,
    EnhancementResult,
    EnhancementRunResult,
    EnhancementTask,
    PipelineState,
    ProjectConfig,
    ReferenceDocument,
)
from .tools.quote_substitution import apply_enhancements
from .tools.task_filter import select_eligible_tasks

logger = logging.getLogger(__name__)


class EnhancementPipeline:
    """Orchestrates identification, parallel enhancement and substitution.

    The generation client and configuration are injected; the optional
    *event_sink* receives progress events and may be ``None``.
    """

    def __init__(
        self,
        config: ProjectConfig,
        client: GenerationClient | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self.config = config
        self.client = client or AutogenGenerationClient(config)
        self.event_sink = event_sink
        self.state = PipelineState.IDLE
        self._states: list[PipelineState] = []

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Pipeline state: %s -> %s", self.state.value, state.value)
        self.state = state
        self._states.append(state)

    def _emit(self, event: EnhancementEvent, payload: Any = None) -> None:
        if self.event_sink is None:
            return
        try:
            self.event_sink(event, payload)
        except Exception as e:
            logger.warning("Event sink failed on %s: %s", event.value, e)

    def _finish(self, result: EnhancementRunResult) -> EnhancementRunResult:
        self._enter(PipelineState.DONE)
        result.states = list(self._states)
        logger.info(
            "Enhancement finished: %d -> %d chars (%+.1f%%), %d replacement(s)",
            len(result.original_report), len(result.enhanced_report),
            result.improvement_pct, result.replacements,
        )
        return result

    async def _run_subagent(
        self,
        task: EnhancementTask,
        report: str,
        transcript: str,
        references: list[ReferenceDocument],
        semaphore: asyncio.Semaphore | None,
    ) -> EnhancementResult:
        if semaphore is None:
            self._emit(EnhancementEvent.SUBTASK_STARTED, task)
            result = await execute_subagent_task(
                task, report, transcript, references, self.client, self.config,
            )
        else:
            async with semaphore:
                self._emit(EnhancementEvent.SUBTASK_STARTED, task)
                result = await execute_subagent_task(
                    task, report, transcript, references, self.client, self.config,
                )
        self._emit(EnhancementEvent.SUBTASK_COMPLETED, result)
        return result

    # -----------------------------------------------------------------------
    # Phase 3: Executing
    # -----------------------------------------------------------------------

    async def run_subagents(
        self,
        tasks: list[EnhancementTask],
        report: str,
        transcript: str = "",
        references: list[ReferenceDocument] | None = None,
    ) -> list[EnhancementResult]:
        """Fan out one sub-agent per task and wait for all of them.

        Results come back in task order. A task that fails in an unexpected
        way still yields a no-op result, so siblings are never affected.
        """
        refs = list(references or [])
        limit = self.config.max_concurrent_subagents
        semaphore = asyncio.Semaphore(limit) if limit else None

        outcomes = await asyncio.gather(
            *(self._run_subagent(t, report, transcript, refs, semaphore) for t in tasks),
            return_exceptions=True,
        )

        results: list[EnhancementResult] = []
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, EnhancementResult):
                results.append(outcome)
                continue
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            error = str(outcome) or type(outcome).__name__
            logger.error("Sub-agent %s crashed: %s", task.task_id, error)
            results.append(EnhancementResult.unchanged(task, error=error))

        for r in results:
            if r.error:
                logger.info("  %s: kept original (%s)", r.task_id, r.error)
            else:
                logger.info(
                    "  %s: %d -> %d chars", r.task_id, len(r.original_quote), len(r.enhanced_content),
                )
        return results

    # -----------------------------------------------------------------------
    # Full run
    # -----------------------------------------------------------------------

    async def run(
        self,
        report: str,
        transcript: str = "",
        references: list[ReferenceDocument] | None = None,
        *,
        grounding_store: str | None = None,
    ) -> EnhancementRunResult:
        """Enhance *report* and return the full run record.

        Raises ``ValueError`` only when no report text is supplied.
        """
        if not isinstance(report, str) or not report.strip():
            raise ValueError("A non-empty report string is required")

        self.state = PipelineState.IDLE
        self._states = [PipelineState.IDLE]
        result = EnhancementRunResult(original_report=report, enhanced_report=report)

        # Phase 1: Identifying
        self._enter(PipelineState.IDENTIFYING)
        self._emit(EnhancementEvent.TASK_STARTED)
        try:
            identification = await identify_enhancement_tasks(
                report, self.client, self.config, grounding_store=grounding_store,
            )
        except Exception as e:
            logger.error("Task identification failed, returning original report: %s", e)
            result.errors.append(f"identification: {e}")
            self._enter(PipelineState.NO_TASKS)
            return self._finish(result)

        if identification is None:
            logger.info("No enhancement tasks identified, returning original report")
            self._enter(PipelineState.NO_TASKS)
            return self._finish(result)

        result.identification = identification
        logger.info(
            "Identified %d task(s). Strategy: %s",
            len(identification.enhancement_tasks), identification.overall_strategy or "-",
        )
        self._emit(EnhancementEvent.TASKS, identification)

        # Phase 2: Filtering
        self._enter(PipelineState.FILTERING)
        eligible = select_eligible_tasks(identification.enhancement_tasks)
        result.eligible_tasks = eligible
        if not eligible:
            logger.info("No high-priority tasks, returning original report")
            self._enter(PipelineState.NO_ELIGIBLE)
            return self._finish(result)

        # Phase 3: Executing
        self._enter(PipelineState.EXECUTING)
        logger.info("Running %d high-priority sub-agent task(s)", len(eligible))
        results = await self.run_subagents(eligible, report, transcript, references)
        result.results = results
        result.errors.extend(f"{r.task_id}: {r.error}" for r in results if r.error)

        # Phase 4: Substituting
        self._enter(PipelineState.SUBSTITUTING)
        outcome = apply_enhancements(report, results)
        result.enhanced_report = outcome.report
        result.replacements = outcome.replacements
        result.unmatched = outcome.unmatched
        self._emit(EnhancementEvent.ENHANCEMENTS, results)

        return self._finish(result)

    def run_sync(
        self,
        report: str,
        transcript: str = "",
        references: list[ReferenceDocument] | None = None,
        *,
        grounding_store: str | None = None,
    ) -> EnhancementRunResult:
        """Blocking wrapper around :meth:`run` for scripts and the CLI."""
        return asyncio.run(
            self.run(report, transcript, references, grounding_store=grounding_store)
        )


async def enhance_report(
    report: str,
    transcript: str = "",
    references: list[ReferenceDocument] | None = None,
    *,
    config: ProjectConfig,
    client: GenerationClient | None = None,
    event_sink: EventSink | None = None,
) -> str:
    """Convenience entry point returning only the (possibly) enhanced report."""
    pipeline = EnhancementPipeline(config, client=client, event_sink=event_sink)
    result = await pipeline.run(report, transcript, references)
    return result.enhanced_report
