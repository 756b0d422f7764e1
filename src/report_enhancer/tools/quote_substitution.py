"""Quote-based substitution of enhanced content into the report.

Results are applied one at a time, highest priority first, against the
current state of the report:

1. exact match: the first literal occurrence of the quote is replaced;
2. normalized match: whitespace runs are collapsed to single spaces on both
   sides and trimmed. A match in the collapsed text is mapped back to the
   exact span of the original text and that span is replaced;
3. otherwise the result is recorded as unmatched and the report is left as is.

The report is a single string owned by the caller; every step returns a new
string and nothing here runs concurrently.
"""

from __future__ import annotations

import logging
import re

from ..models import EnhancementResult, SubstitutionOutcome

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to one space and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_with_offsets(text: str) -> tuple[str, list[int]]:
    """Normalize *text* like :func:`normalize_whitespace`, keeping an offset map.

    ``offsets[k]`` is the index in *text* of the character that produced
    position ``k`` of the normalized string. A collapsed whitespace run maps
    to the first character of the run. Leading and trailing runs are dropped.
    """
    chars: list[str] = []
    offsets: list[int] = []
    i, n = 0, len(text)
    while i < n:
        if text[i].isspace():
            j = i
            while j < n and text[j].isspace():
                j += 1
            if chars and j < n:
                chars.append(" ")
                offsets.append(i)
            i = j
        else:
            chars.append(text[i])
            offsets.append(i)
            i += 1
    return "".join(chars), offsets


def find_quote_span(report: str, quote: str) -> tuple[int, int] | None:
    """Locate *quote* in *report* ignoring whitespace differences.

    Returns ``(start, end)`` offsets into the unnormalized *report* such that
    ``normalize_whitespace(report[start:end]) == normalize_whitespace(quote)``,
    or ``None`` when there is no such span. The span starts and ends on
    non-whitespace characters.
    """
    needle = normalize_whitespace(quote)
    if not needle:
        return None
    haystack, offsets = normalize_with_offsets(report)
    idx = haystack.find(needle)
    if idx < 0:
        return None
    start = offsets[idx]
    end = offsets[idx + len(needle) - 1] + 1
    return start, end


def sort_by_priority(results: list[EnhancementResult]) -> list[EnhancementResult]:
    """Highest priority first; ties keep their input order."""
    return sorted(results, key=lambda r: r.priority.rank, reverse=True)


def apply_enhancements(report: str, results: list[EnhancementResult]) -> SubstitutionOutcome:
    """Splice every modified result into *report* and return the outcome."""
    outcome = SubstitutionOutcome(report=report)
    current = report

    for result in sort_by_priority(results):
        if not result.is_modified:
            outcome.skipped.append(result.task_id)
            continue

        if not result.original_quote.strip():
            outcome.unmatched.append(result.task_id)
            logger.warning("Blank quote for task %s, nothing to replace", result.task_id)
            continue

        if result.original_quote in current:
            current = current.replace(result.original_quote, result.enhanced_content, 1)
            outcome.exact_matches.append(result.task_id)
            logger.info("Enhanced quote for task %s", result.task_id)
            continue

        span = find_quote_span(current, result.original_quote)
        if span is None:
            outcome.unmatched.append(result.task_id)
            logger.warning(
                "Quote not found for task %s: %r", result.task_id, result.original_quote[:50],
            )
            continue

        start, end = span
        current = current[:start] + result.enhanced_content + current[end:]
        outcome.normalized_matches.append(result.task_id)
        logger.info("Enhanced quote (normalized match) for task %s", result.task_id)

    outcome.report = current
    outcome.replacements = len(outcome.exact_matches) + len(outcome.normalized_matches)
    logger.info("Total replacements made: %d/%d", outcome.replacements, len(results))
    return outcome
