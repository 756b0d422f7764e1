"""Report enhancer: master/sub-agent enhancement of analytical reports."""

from .models import (
    EnhancementEvent,
    EnhancementResult,
    EnhancementRunResult,
    EnhancementTask,
    FileReference,
    InlineDocument,
    PipelineState,
    Priority,
    ProjectConfig,
)
from .pipeline import EnhancementPipeline, enhance_report

__all__ = [
    "EnhancementEvent",
    "EnhancementPipeline",
    "EnhancementResult",
    "EnhancementRunResult",
    "EnhancementTask",
    "FileReference",
    "InlineDocument",
    "PipelineState",
    "Priority",
    "ProjectConfig",
    "enhance_report",
]

__version__ = "0.1.0"
