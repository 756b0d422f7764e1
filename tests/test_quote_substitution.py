"""Tests for tools/quote_substitution.py — exact and whitespace-normalized splicing."""

from __future__ import annotations

import pytest

from report_enhancer.models import EnhancementResult
from report_enhancer.tools.quote_substitution import (
    apply_enhancements,
    find_quote_span,
    normalize_whitespace,
    normalize_with_offsets,
    sort_by_priority,
)


def result(task_id: str, quote: str, enhanced: str, priority: str = "high") -> EnhancementResult:
    return EnhancementResult(
        task_id=task_id,
        original_quote=quote,
        enhanced_content=enhanced,
        research_task=f"research {task_id}",
        priority=priority,
    )


class TestNormalizeWhitespace:
    def test_collapses_and_trims(self):
        assert normalize_whitespace("  a \t b\n\n c  ") == "a b c"

    def test_no_whitespace(self):
        assert normalize_whitespace("abc") == "abc"

    def test_offsets_point_into_original(self):
        text = "  ab \n\t cd "
        norm, offsets = normalize_with_offsets(text)
        assert norm == "ab cd"
        assert len(offsets) == len(norm)
        assert [text[i] for i in offsets] == ["a", "b", " ", "c", "d"]

    def test_offsets_agree_with_regex_normalization(self):
        text = "\r\nRevenue   grew\n\nsignificantly.  Next\t"
        norm, _ = normalize_with_offsets(text)
        assert norm == normalize_whitespace(text)


class TestFindQuoteSpan:
    @pytest.mark.parametrize("report", [
        "Intro. Revenue   grew\nsignificantly. Outro.",
        "Intro. Revenue\tgrew \n significantly. Outro.",
        "Intro. Revenue\r\n\r\ngrew significantly. Outro.",
        "Intro.\n\nRevenue grew\n        significantly.\n\nOutro.",
    ])
    def test_irregular_whitespace(self, report):
        span = find_quote_span(report, "Revenue grew significantly.")
        assert span is not None
        start, end = span
        assert report[start:end].startswith("Revenue")
        assert report[start:end].endswith("significantly.")
        assert normalize_whitespace(report[start:end]) == "Revenue grew significantly."

    def test_match_at_report_start(self):
        report = "Revenue  grew significantly. Then more."
        assert find_quote_span(report, "Revenue grew significantly.") == (0, 28)

    def test_match_at_report_end(self):
        report = "Prefix text.\nRevenue grew\nsignificantly."
        start, end = find_quote_span(report, "Revenue grew significantly.")
        assert end == len(report)
        assert report[start:] == "Revenue grew\nsignificantly."

    def test_leading_whitespace_in_report(self):
        report = "\n\n   Revenue\n grew significantly."
        start, end = find_quote_span(report, "Revenue grew significantly.")
        assert start == 5
        assert report[start:end] == "Revenue\n grew significantly."

    def test_quote_with_irregular_whitespace(self):
        report = "Revenue grew significantly."
        assert find_quote_span(report, "  Revenue\n\ngrew   significantly.\n") == (0, len(report))

    def test_span_excludes_surrounding_whitespace_runs(self):
        report = "A.   \n  Revenue grew significantly.  \n\n  B."
        start, end = find_quote_span(report, "Revenue grew significantly.")
        assert report[start - 1].isspace() and report[end].isspace()
        assert report[start:end] == "Revenue grew significantly."

    def test_not_found(self):
        assert find_quote_span("Revenue fell sharply.", "Revenue grew significantly.") is None

    def test_whitespace_only_quote(self):
        assert find_quote_span("some text", "  \n ") is None

    def test_missing_whitespace_does_not_match(self):
        assert find_quote_span("Revenuegrew significantly.", "Revenue grew significantly.") is None

    def test_first_occurrence(self):
        report = "x Revenue  grew. y Revenue\ngrew. z"
        start, end = find_quote_span(report, "Revenue grew.")
        assert start == 2
        assert report[start:end] == "Revenue  grew."


class TestSortByPriority:
    def test_descending_and_stable(self):
        results = [
            result("low1", "a", "A", "low"),
            result("high1", "b", "B", "high"),
            result("med1", "c", "C", "medium"),
            result("high2", "d", "D", "high"),
            result("low2", "e", "E", "low"),
        ]
        assert [r.task_id for r in sort_by_priority(results)] == [
            "high1", "high2", "med1", "low1", "low2",
        ]


class TestApplyEnhancements:
    def test_exact_substitution(self):
        report = "Intro.\nRevenue grew significantly. Costs were flat.\nOutro."
        outcome = apply_enhancements(report, [
            result("t1", "Revenue grew significantly.", "Revenue grew 34% YoY to $12M."),
        ])
        assert outcome.report == "Intro.\nRevenue grew 34% YoY to $12M. Costs were flat.\nOutro."
        assert outcome.replacements == 1
        assert outcome.exact_matches == ["t1"]
        assert outcome.unmatched == []

    def test_exact_replaces_first_occurrence_only(self):
        report = "Revenue grew. Later: Revenue grew."
        outcome = apply_enhancements(report, [result("t1", "Revenue grew.", "Revenue grew 34%.")])
        assert outcome.report == "Revenue grew 34%. Later: Revenue grew."

    def test_normalized_substitution(self):
        report = "Intro.\nRevenue   grew\nsignificantly. Costs were flat."
        outcome = apply_enhancements(report, [
            result("t1", "Revenue grew significantly.", "Revenue grew 34% YoY to $12M."),
        ])
        assert outcome.report == "Intro.\nRevenue grew 34% YoY to $12M. Costs were flat."
        assert outcome.normalized_matches == ["t1"]
        assert outcome.replacements == 1

    def test_normalized_preserves_neighbouring_whitespace(self):
        report = "Line one.\n\n  Revenue\tgrew  significantly.  \n\nLine three."
        outcome = apply_enhancements(report, [
            result("t1", "Revenue grew significantly.", "Revenue grew 34%."),
        ])
        assert outcome.report == "Line one.\n\n  Revenue grew 34%.  \n\nLine three."

    def test_idempotent_when_unchanged(self):
        report = "Revenue grew significantly.\n\nEverything else."
        outcome = apply_enhancements(report, [
            result("t1", "Revenue grew significantly.", "Revenue grew significantly."),
        ])
        assert outcome.report == report
        assert outcome.replacements == 0
        assert outcome.skipped == ["t1"]

    def test_failed_result_is_noop(self):
        report = "Revenue grew significantly."
        failed = EnhancementResult(
            task_id="t1", original_quote="Revenue grew significantly.",
            enhanced_content="Revenue grew significantly.", error="boom",
        )
        outcome = apply_enhancements(report, [failed])
        assert outcome.report == report

    def test_unmatched_leaves_report_untouched(self):
        report = "Revenue fell sharply."
        outcome = apply_enhancements(report, [
            result("t1", "Revenue grew significantly.", "Revenue grew 34%."),
        ])
        assert outcome.report == report
        assert outcome.unmatched == ["t1"]
        assert outcome.replacements == 0

    @pytest.mark.parametrize("quote", [" ", "\n", " \t "])
    def test_blank_quote_never_replaced(self, quote):
        report = "Revenue grew significantly. Costs flat."
        outcome = apply_enhancements(report, [result("t1", quote, "XYZ")])
        assert outcome.report == report
        assert outcome.unmatched == ["t1"]
        assert outcome.replacements == 0

    def test_priority_order_with_overlapping_quotes(self):
        report = "The market is large and growing quickly in Europe."
        medium = result("m1", "growing quickly in Europe", "growing 12% a year in Europe", "medium")
        high = result("h1", "The market is large and growing", "The market is worth $4B and growing", "high")
        outcome = apply_enhancements(report, [medium, high])
        # the shared word "growing" survives the high-priority edit
        assert outcome.exact_matches == ["h1", "m1"]
        assert outcome.report == "The market is worth $4B and growing 12% a year in Europe."

    def test_lower_priority_quote_consumed_is_unmatched(self):
        report = "Revenue grew significantly last year."
        high = result("h1", "Revenue grew significantly last year.", "Revenue grew 34% in 2023.", "high")
        medium = result("m1", "grew significantly", "grew 34%", "medium")
        outcome = apply_enhancements(report, [medium, high])
        assert outcome.report == "Revenue grew 34% in 2023."
        assert outcome.exact_matches == ["h1"]
        assert outcome.unmatched == ["m1"]

    def test_multiple_independent_replacements(self, sample_report):
        from conftest import CUSTOMER_QUOTE, REVENUE_QUOTE, TEAM_QUOTE

        outcome = apply_enhancements(sample_report, [
            result("r", REVENUE_QUOTE, "Revenue grew 34% YoY to $12M.", "high"),
            result("c", CUSTOMER_QUOTE, "The top three customers are Bosch, Magna and Valeo", "medium"),
            result("t", TEAM_QUOTE, TEAM_QUOTE, "low"),
        ])
        assert outcome.replacements == 2
        assert "Revenue grew 34% YoY to $12M." in outcome.report
        assert "Bosch, Magna and Valeo, and management expects" in outcome.report
        assert TEAM_QUOTE in outcome.report
        assert "## Competition" in outcome.report

    def test_later_results_see_mutated_report(self):
        report = "Revenue grew."
        first = result("a", "Revenue grew.", "Revenue grew strongly.", "high")
        second = result("b", "grew strongly.", "grew 34%.", "medium")
        outcome = apply_enhancements(report, [second, first])
        assert outcome.report == "Revenue grew 34%."
        assert outcome.replacements == 2

    def test_empty_results(self):
        outcome = apply_enhancements("text", [])
        assert outcome.report == "text"
        assert outcome.replacements == 0
