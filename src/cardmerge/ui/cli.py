from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cardmerge.adapters.report import (
    ReportFormat,
    render_apply_result,
    render_dedup_plan,
    render_log_entries,
    render_logs,
    render_move_preview,
    write_report,
)
from cardmerge.app import (
    Scope,
    apply,
    archive,
    get_log_entries,
    get_logs,
    preview,
    rollback,
    unarchive,
)
from cardmerge.config import ConfigurationError, configure_logging, get_initiator
from cardmerge.domain.consolidation import (
    ConflictError,
    DedupPlan,
    LogFilter,
    MoveOptions,
    MovePreview,
    RollbackStateError,
    ScaleGuardError,
    ValidationError,
)
from cardmerge.domain.model import LogStatus, OperationKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

_REJECTIONS = (
    ValidationError,
    ConflictError,
    ScaleGuardError,
    RollbackStateError,
    ConfigurationError,
)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected an integer, got {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {parsed}")
    return parsed


def _add_output_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in ReportFormat],
        default=ReportFormat.TEXT.value,
        help="Report format (default: %(default)s)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the report to this file instead of stdout",
    )


def _add_apply_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--initiator",
        type=str,
        help="Operator identity recorded on the audit log (default: $CARDMERGE_INITIATOR)",
    )
    parser.add_argument(
        "--confirm",
        type=str,
        help="Exact confirmation phrase, required for conflicts or catalog-wide runs",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Execute inside a transaction that is rolled back at the end",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        help="Units per transaction (defaults to config)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Consolidate duplicate catalog items")
    subparsers = parser.add_subparsers(dest="command", required=True)

    dedupe = subparsers.add_parser("dedupe", help="Merge duplicate items onto a survivor")
    dedupe_sub = dedupe.add_subparsers(dest="action", required=True)
    for action in ("preview", "apply"):
        sub = dedupe_sub.add_parser(action, help=f"{action.capitalize()} a deduplication run")
        sub.add_argument(
            "--container",
            type=_positive_int,
            help="Limit the run to one container (default: whole catalog)",
        )
        _add_output_options(sub)
        if action == "apply":
            _add_apply_options(sub)

    move = subparsers.add_parser("move", help="Move all items of one container into another")
    move_sub = move.add_subparsers(dest="action", required=True)
    for action in ("preview", "apply"):
        sub = move_sub.add_parser(action, help=f"{action.capitalize()} a container move")
        sub.add_argument("--source", type=_positive_int, required=True, help="Source container")
        sub.add_argument(
            "--destination", type=_positive_int, required=True, help="Destination container"
        )
        _add_output_options(sub)
        if action == "apply":
            _add_apply_options(sub)
            sub.add_argument(
                "--force-insert",
                action="store_true",
                help="Flag every moved item as an insert/parallel",
            )
            sub.add_argument("--notes", type=str, help="Free-text notes stored on the log")

    rollback_parser = subparsers.add_parser("rollback", help="Reverse a container move")
    rollback_parser.add_argument("log_id", type=_positive_int, help="Migration log id")

    logs = subparsers.add_parser("logs", help="List audit logs")
    logs.add_argument("--kind", choices=[kind.value for kind in OperationKind])
    logs.add_argument("--container", type=_positive_int, help="Filter by container")
    logs.add_argument("--status", choices=[status.value for status in LogStatus])
    logs.add_argument("--limit", type=_positive_int, default=50)
    logs.add_argument(
        "--log-id",
        type=_positive_int,
        help="Show the entries of one log (requires --kind)",
    )
    _add_output_options(logs)

    archive_parser = subparsers.add_parser("archive", help="Archive a container")
    archive_parser.add_argument("container_id", type=_positive_int)
    archive_parser.add_argument(
        "--confirm", type=str, help="Exact phrase required when the container is not empty"
    )

    unarchive_parser = subparsers.add_parser("unarchive", help="Reactivate an archived container")
    unarchive_parser.add_argument("container_id", type=_positive_int)

    return parser.parse_args(list(argv))


def _emit(content: str, output: Path | None) -> None:
    if output is None:
        sys.stdout.write(content if content.endswith("\n") else content + "\n")
        return
    path = write_report(content, output)
    log.info("Report written to %s", path)


def _scope(args: argparse.Namespace) -> Scope:
    if args.command == "move":
        return Scope(source_id=args.source, destination_id=args.destination)
    return Scope(container_id=args.container)


def _operation(args: argparse.Namespace) -> OperationKind:
    if args.command == "move":
        return OperationKind.CONTAINER_MOVE
    return OperationKind.DEDUPLICATE


def _run_preview(args: argparse.Namespace) -> None:
    fmt = ReportFormat(args.format)
    plan = preview(_scope(args), _operation(args))
    if isinstance(plan, DedupPlan):
        _emit(render_dedup_plan(plan, fmt), args.output)
    elif isinstance(plan, MovePreview):
        _emit(render_move_preview(plan, fmt), args.output)


def _run_apply(args: argparse.Namespace) -> int:
    options = None
    if args.command == "move":
        options = MoveOptions(force_insert=args.force_insert, notes=args.notes)
    result = apply(
        _scope(args),
        _operation(args),
        initiator=get_initiator(args.initiator),
        options=options,
        confirmation_token=args.confirm,
        dry_run=args.dry_run,
        batch_size=args.batch_size,
    )
    _emit(render_apply_result(result, ReportFormat(args.format)), args.output)
    if result.failure is not None:
        log.error(
            "Run halted at batch %s; %s unit(s) committed before it: %s",
            result.failure.batch_index,
            result.failure.committed_units,
            result.failure.message,
        )
        return 1
    return 0


def _run_logs(args: argparse.Namespace) -> None:
    fmt = ReportFormat(args.format)
    if args.log_id is not None:
        if args.kind is None:
            raise ValidationError("--log-id requires --kind")
        kind = OperationKind(args.kind)
        entries = get_log_entries(kind, args.log_id)
        _emit(render_log_entries(kind, args.log_id, entries, fmt), args.output)
        return

    log_filter = LogFilter(
        kind=OperationKind(args.kind) if args.kind else None,
        container_id=args.container,
        status=LogStatus(args.status) if args.status else None,
        limit=args.limit,
    )
    _emit(render_logs(get_logs(log_filter), fmt), args.output)


def _dispatch(args: argparse.Namespace) -> int:
    if args.command in {"dedupe", "move"}:
        if args.action == "preview":
            _run_preview(args)
            return 0
        return _run_apply(args)
    if args.command == "rollback":
        result = rollback(args.log_id)
        log.info(
            "Rolled back log %s: restored=%s, source_reactivated=%s",
            result.log_id,
            result.restored_count,
            result.source_reactivated,
        )
        return 0
    if args.command == "logs":
        _run_logs(args)
        return 0
    if args.command == "archive":
        outcome = archive(args.container_id, confirmation=args.confirm)
        log.info("Archived container %s (%s item(s))", outcome.container_id, outcome.item_count)
        return 0
    if args.command == "unarchive":
        outcome = unarchive(args.container_id)
        log.info("Unarchived container %s", outcome.container_id)
        return 0
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    try:
        configure_logging()
    except ConfigurationError:
        configure_logging(level=logging.INFO)
        log.exception("Rejected")
        sys.exit(2)
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        exit_code = _dispatch(parsed_args)
    except _REJECTIONS:
        log.exception("Rejected")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during consolidation")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
