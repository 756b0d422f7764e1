"""Deterministic tools for task selection, quote substitution and file loading."""

from .quote_substitution import apply_enhancements, find_quote_span, normalize_whitespace
from .task_filter import select_eligible_tasks

__all__ = [
    "apply_enhancements",
    "find_quote_span",
    "normalize_whitespace",
    "select_eligible_tasks",
]
