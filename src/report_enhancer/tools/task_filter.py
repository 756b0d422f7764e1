"""Selection of the tasks that are worth a sub-agent call."""

from __future__ import annotations

from ..models import EnhancementTask, Priority


def select_eligible_tasks(tasks: list[EnhancementTask]) -> list[EnhancementTask]:
    """Return only the high-priority tasks, in their original order."""
    return [t for t in tasks if t.priority is Priority.HIGH]
