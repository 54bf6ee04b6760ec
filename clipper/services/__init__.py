"""
Services for the clip export core.

Includes:
- Filter graph compilation (crop, color, speed, text overlays)
- Time range translation
- Source resolution and FFmpeg render invocation
- Stale file cleanup
"""

from clipper.services.cleanup_service import CleanupService
from clipper.services.filter_graph import FilterGraphCompiler
from clipper.services.render_invoker import ExportResult, RenderInvoker, RenderJob, RenderStatus
from clipper.services.source_resolver import SourceResolver
from clipper.services.time_range import TimeRange, format_timestamp, translate_time_range

__all__ = [
    "FilterGraphCompiler",
    "TimeRange",
    "format_timestamp",
    "translate_time_range",
    "SourceResolver",
    "RenderInvoker",
    "RenderJob",
    "RenderStatus",
    "ExportResult",
    "CleanupService",
]
