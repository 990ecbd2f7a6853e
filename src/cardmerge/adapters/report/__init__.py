"""Plan and audit report rendering."""

from __future__ import annotations

from .render import (
    ReportFormat,
    render_apply_result,
    render_csv,
    render_dedup_plan,
    render_log_entries,
    render_logs,
    render_move_preview,
    render_table,
    write_report,
)
from .schema import (
    ApplyResultDocument,
    DedupPlanDocument,
    LogEntryListDocument,
    LogEntryModel,
    LogListDocument,
    LogSummaryModel,
    MovePreviewDocument,
)

__all__ = [
    "ApplyResultDocument",
    "DedupPlanDocument",
    "LogEntryListDocument",
    "LogEntryModel",
    "LogListDocument",
    "LogSummaryModel",
    "MovePreviewDocument",
    "ReportFormat",
    "render_apply_result",
    "render_csv",
    "render_dedup_plan",
    "render_log_entries",
    "render_logs",
    "render_move_preview",
    "render_table",
    "write_report",
]
