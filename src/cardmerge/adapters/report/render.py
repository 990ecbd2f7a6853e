"""Render plans and log listings as JSON, CSV, or a fixed-width text table."""

from __future__ import annotations

import csv
import io
from enum import StrEnum
from typing import TYPE_CHECKING

from .schema import (
    ApplyResultDocument,
    DedupPlanDocument,
    LogEntryListDocument,
    LogEntryModel,
    LogListDocument,
    LogSummaryModel,
    MovePreviewDocument,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from cardmerge.domain.consolidation import (
        ApplyResult,
        DedupPlan,
        LogEntryView,
        LogSummary,
        MovePreview,
    )
    from cardmerge.domain.model import OperationKind

type Row = dict[str, object]


class ReportFormat(StrEnum):
    TEXT = "text"
    JSON = "json"
    CSV = "csv"


DEDUP_COLUMNS: tuple[str, ...] = (
    "container_id",
    "position_key",
    "display_name",
    "variant",
    "survivor_id",
    "loser_ids",
    "referenced_ids",
)
CONFLICT_COLUMNS: tuple[str, ...] = (
    "position_key",
    "source_item_id",
    "source_name",
    "destination_item_id",
    "destination_name",
)
LOG_COLUMNS: tuple[str, ...] = (
    "log_id",
    "kind",
    "status",
    "initiator",
    "created_at",
    "container_id",
    "destination_container_id",
    "moved_count",
    "merged_count",
    "deleted_count",
    "conflict_count",
)
ENTRY_COLUMNS: tuple[str, ...] = (
    "item_id",
    "action",
    "survivor_id",
    "old_container_id",
    "new_container_id",
    "old_flag",
    "new_flag",
    "conflicted",
    "reference_kind",
    "reference_id",
    "detail",
)


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, list | tuple):
        return " ".join(str(part) for part in value)  # pyright: ignore[reportUnknownVariableType]
    return str(value)


def dedup_rows(document: DedupPlanDocument) -> list[Row]:
    return [group.model_dump(include=set(DEDUP_COLUMNS)) for group in document.groups]


def conflict_rows(document: MovePreviewDocument) -> list[Row]:
    return [pair.model_dump() for pair in document.conflicts]


def log_rows(document: LogListDocument) -> list[Row]:
    return [entry.model_dump(include=set(LOG_COLUMNS)) for entry in document.logs]


def render_csv(rows: Sequence[Row], columns: Sequence[str]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: _cell(row.get(column)) for column in columns})
    return buffer.getvalue()


def render_table(rows: Sequence[Row], columns: Sequence[str]) -> str:
    """Fixed-width table: one header line, a rule, then one line per row."""

    cells = [[_cell(row.get(column)) for column in columns] for row in rows]
    widths = [len(column) for column in columns]
    for line in cells:
        for index, value in enumerate(line):
            widths[index] = max(widths[index], len(value))

    def _format(values: Sequence[str]) -> str:
        return "  ".join(value.ljust(widths[i]) for i, value in enumerate(values)).rstrip()

    lines = [_format(columns), _format(["-" * width for width in widths])]
    lines.extend(_format(line) for line in cells)
    return "\n".join(lines) + "\n"


def render_dedup_plan(plan: DedupPlan, fmt: ReportFormat) -> str:
    document = DedupPlanDocument.from_plan(plan)
    if fmt == ReportFormat.JSON:
        return document.model_dump_json(indent=2)
    rows = dedup_rows(document)
    if fmt == ReportFormat.CSV:
        return render_csv(rows, DEDUP_COLUMNS)
    header = (
        f"Deduplication plan (container: {document.container_id or 'all'}): "
        f"{document.group_count} group(s), {document.delete_count} item(s) to delete\n\n"
    )
    return header + render_table(rows, DEDUP_COLUMNS)


def render_move_preview(preview: MovePreview, fmt: ReportFormat) -> str:
    document = MovePreviewDocument.from_preview(preview)
    if fmt == ReportFormat.JSON:
        return document.model_dump_json(indent=2)
    rows = conflict_rows(document)
    if fmt == ReportFormat.CSV:
        return render_csv(rows, CONFLICT_COLUMNS)

    lines = [
        f"Move {document.source_name} (#{document.source_id}) -> "
        f"{document.destination_name} (#{document.destination_id})",
        f"  source items:        {document.source_count}",
        f"  destination items:   {document.destination_count}",
        f"  conflicts:           {document.conflict_count}",
        f"  clean moves:         {document.clean_count}",
        f"  forces insert flag:  {'yes' if document.destination_forces_insert else 'no'}",
        f"  looks like inserts:  {'yes' if document.destination_suggests_insert else 'no'}",
        f"  canonical target:    {'yes' if document.destination_canonical else 'no'}",
        f"  source auto-archive: {'yes' if document.source_can_auto_archive else 'no'}",
    ]
    lines.extend(f"  blocked: {blocker}" for blocker in document.blockers)
    text = "\n".join(lines) + "\n"
    if rows:
        text += "\n" + render_table(rows, CONFLICT_COLUMNS)
    return text


def render_apply_result(result: ApplyResult, fmt: ReportFormat) -> str:
    document = ApplyResultDocument.from_result(result)
    if fmt == ReportFormat.JSON:
        return document.model_dump_json(indent=2)
    row: Row = document.model_dump(exclude={"failure"})
    if document.failure is not None:
        row["failure"] = document.failure.message
        row["committed_units"] = document.failure.committed_units
    columns = tuple(row)
    if fmt == ReportFormat.CSV:
        return render_csv([row], columns)
    return render_table([row], columns)


def render_logs(summaries: Sequence[LogSummary], fmt: ReportFormat) -> str:
    document = LogListDocument(logs=[LogSummaryModel.from_summary(entry) for entry in summaries])
    if fmt == ReportFormat.JSON:
        return document.model_dump_json(indent=2)
    rows = log_rows(document)
    if fmt == ReportFormat.CSV:
        return render_csv(rows, LOG_COLUMNS)
    return render_table(rows, LOG_COLUMNS)


def render_log_entries(
    kind: OperationKind, log_id: int, entries: Sequence[LogEntryView], fmt: ReportFormat
) -> str:
    document = LogEntryListDocument(
        kind=kind, log_id=log_id, entries=[LogEntryModel.from_view(entry) for entry in entries]
    )
    if fmt == ReportFormat.JSON:
        return document.model_dump_json(indent=2)
    rows: list[Row] = [entry.model_dump() for entry in document.entries]
    if fmt == ReportFormat.CSV:
        return render_csv(rows, ENTRY_COLUMNS)
    return render_table(rows, ENTRY_COLUMNS)


def write_report(content: str, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
