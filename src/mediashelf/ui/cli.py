from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from mediashelf.adapters.mal_export import read_mal_export
from mediashelf.adapters.sheets import read_sheet
from mediashelf.app import (
    build_import_services,
    import_by_external_id,
    mark_entry_complete,
    run_batch_import,
    set_manual_status,
    toggle_progress_unit,
)
from mediashelf.config import configure_logging
from mediashelf.domain.errors import ImportValidationError
from mediashelf.domain.model import MediaKind, ProgressStatus
from mediashelf.domain.sources import mal_ref

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from mediashelf.domain.batch import BatchProgress, BatchResult
    from mediashelf.domain.importing import BatchRecord

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:  # noqa: PLR0915
    parser = argparse.ArgumentParser(description="Import and track a media library")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_mal = subparsers.add_parser("import-mal", help="Import one MyAnimeList record by id")
    import_mal.add_argument("mal_id", type=int, help="MyAnimeList id")
    import_mal.add_argument(
        "--kind",
        choices=[MediaKind.ANIME.value, MediaKind.MANGA.value],
        default=MediaKind.ANIME.value,
        help="Media kind of the record (default: %(default)s)",
    )
    import_mal.add_argument(
        "--target-id",
        type=str,
        help="Merge into this existing entry (answer to an ambiguous match)",
    )
    import_mal.add_argument(
        "--force-create",
        action="store_true",
        help="Create a new entry even when similar titles exist",
    )
    _add_user_option(import_mal, required=False)
    _add_network_options(import_mal, fetch=False)

    import_xml = subparsers.add_parser("import-xml", help="Import a MyAnimeList XML export")
    import_xml.add_argument("path", type=Path, help="Path to the (optionally gzipped) export")
    _add_user_option(import_xml, required=False)
    _add_network_options(import_xml)

    import_sheet = subparsers.add_parser("import-sheet", help="Import a CSV spreadsheet")
    import_sheet.add_argument("path", type=Path, help="Path to the CSV file")
    import_sheet.add_argument(
        "--kind",
        choices=[kind.value for kind in MediaKind],
        required=True,
        help="Media kind of every row",
    )
    _add_user_option(import_sheet, required=False)
    _add_network_options(import_sheet)

    toggle = subparsers.add_parser("toggle", help="Mark one episode/volume as done or not done")
    toggle.add_argument("entry_id", type=str, help="Catalog entry id")
    toggle.add_argument("unit", type=int, help="1-based episode or volume number")
    toggle.add_argument("--undo", action="store_true", help="Mark the unit as not done")
    _add_user_option(toggle, required=True)

    status = subparsers.add_parser("status", help="Set a manual progress status")
    status.add_argument("entry_id", type=str, help="Catalog entry id")
    status.add_argument(
        "status",
        choices=[value.value for value in ProgressStatus],
        help="New status",
    )
    _add_user_option(status, required=True)

    complete = subparsers.add_parser("complete", help="Mark every unit of an entry as done")
    complete.add_argument("entry_id", type=str, help="Catalog entry id")
    _add_user_option(complete, required=True)

    return parser.parse_args(list(argv))


def _add_user_option(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument(
        "--user-id",
        type=str,
        required=required,
        help="User whose progress is recorded",
    )


def _add_network_options(parser: argparse.ArgumentParser, *, fetch: bool = True) -> None:
    if fetch:
        parser.add_argument(
            "--no-fetch",
            action="store_true",
            help="Do not refresh records from Jikan before reconciling",
        )
    parser.add_argument(
        "--no-enrich",
        action="store_true",
        help="Skip synopsis translation and cover lookups",
    )


def _parse_uuid(value: str | None) -> UUID | None:
    if value is None:
        return None
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _require_uuid(value: str | None) -> UUID:
    parsed = _parse_uuid(value)
    if parsed is None:
        raise ValueError("Missing id")
    return parsed


def _log_progress(progress: BatchProgress) -> None:
    eta = f"{progress.eta_ms / 1000:.0f}s" if progress.eta_ms is not None else "?"
    log.info(
        "[%d/%d] %s (imported=%d, updated=%d, skipped=%d, errors=%d, eta=%s)",
        progress.current,
        progress.total,
        progress.current_label,
        progress.imported_count,
        progress.updated_count,
        progress.skipped_count,
        progress.error_count,
        eta,
    )


def _run_batch(records: Sequence[BatchRecord], args: argparse.Namespace) -> BatchResult:
    services = build_import_services(fetch=not args.no_fetch, enrich=not args.no_enrich)
    result = run_batch_import(
        records,
        on_progress=_log_progress,
        user_id=_parse_uuid(args.user_id),
        services=services,
    )
    for failure in result.failures:
        log.warning("Failed #%d %s: %s", failure.index, failure.label, failure.message)
    return result


def _dispatch(args: argparse.Namespace) -> None:
    if args.command == "import-mal":
        kind = MediaKind(args.kind)
        ref = mal_ref(kind, args.mal_id)
        if ref is None:
            raise ImportValidationError("Missing MyAnimeList id")
        result = import_by_external_id(
            ref,
            kind=kind,
            user_id=_parse_uuid(args.user_id),
            confirmed_target_id=_parse_uuid(args.target_id),
            force_create=args.force_create,
            services=build_import_services(enrich=not args.no_enrich),
        )
        log.info("%s -> %s %s", ref, result.decision, result.entry_id or "")
        for candidate in result.candidates:
            log.info(
                "  candidate %s %r (%s, %.1f)",
                candidate.entry_id,
                candidate.entry.title,
                candidate.match_kind,
                candidate.similarity,
            )
        if result.error is not None:
            log.error("%s", result.error)
    elif args.command == "import-xml":
        _run_batch(read_mal_export(args.path).records, args)
    elif args.command == "import-sheet":
        _run_batch(read_sheet(args.path, kind=MediaKind(args.kind)), args)
    elif args.command == "toggle":
        outcome = toggle_progress_unit(
            _require_uuid(args.entry_id),
            _require_uuid(args.user_id),
            args.unit,
            done=not args.undo,
        )
        log.info("Status is now %s", outcome.new_status)
    elif args.command == "status":
        set_manual_status(
            _require_uuid(args.entry_id),
            _require_uuid(args.user_id),
            ProgressStatus(args.status),
        )
        log.info("Status set to %s", args.status)
    elif args.command == "complete":
        outcome = mark_entry_complete(_require_uuid(args.entry_id), _require_uuid(args.user_id))
        log.info("Status is now %s", outcome.new_status)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _dispatch(parsed_args)
    except ValueError:
        log.exception("Invalid input")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


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
