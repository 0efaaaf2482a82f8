"""Command line interface for the EUROWATCH pipeline."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from .clients import parliamentary_term_for
from .config import load_config
from .core.errors import ConfigurationError, EurowatchError
from .pipeline import sync_terms
from .runtime import create_mep_sync, create_pipeline, create_reclassifier, open_storage

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
LOGGER = logging.getLogger(__name__)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {value!r}")
    return number


def _add_run_pipeline_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--date", dest="target_date", type=_iso_date, help="Ingest this sitting date instead of discovering one")


def _add_classify_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--date", dest="date_filter", type=_iso_date, help="Only topics of the sitting on this date")
    parser.add_argument("--limit", type=_positive_int, help="Maximum number of distinct topics")
    parser.add_argument("--concurrency", type=_positive_int, help="Parallel classification requests")
    parser.add_argument("--dry-run", action="store_true", help="Classify without writing to the database")


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="Path to an explicit configuration file")

    parser = argparse.ArgumentParser(description="European Parliament sitting ingestion pipeline")
    commands = parser.add_subparsers(dest="command", required=True)

    run_parser = commands.add_parser("run-pipeline", parents=[common], help="Ingest the next (or a given) sitting")
    _add_run_pipeline_arguments(run_parser)

    classify_parser = commands.add_parser(
        "classify-topics", parents=[common], help="Re-classify topics already in the database"
    )
    _add_classify_arguments(classify_parser)

    sync_parser = commands.add_parser(
        "sync-meps", parents=[common], help="Load MEPs of parliamentary terms from the Open Data API"
    )
    sync_parser.add_argument(
        "--term",
        dest="terms",
        type=_positive_int,
        action="append",
        help="Parliamentary term number (repeatable, default: the current term)",
    )

    prune_parser = commands.add_parser(
        "prune-documents", parents=[common], help="Drop stored raw documents of older sittings"
    )
    prune_parser.add_argument("--before", type=_iso_date, required=True, help="Prune sittings before this date")
    return parser


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _run_pipeline(config, args: argparse.Namespace) -> int:
    resources = create_pipeline(config)
    try:
        summary = resources.pipeline.run(target_date=args.target_date)
    finally:
        resources.close()
    _print_json(summary.as_dict())
    if not summary.success:
        LOGGER.info("Pipeline finished without ingesting a sitting: %s", summary.reason)
        return 1
    return 0


def _classify_topics(config, args: argparse.Namespace) -> int:
    storage = open_storage(config)
    try:
        reclassifier = create_reclassifier(config, storage, concurrency=args.concurrency)
        summary = reclassifier.run(date_filter=args.date_filter, limit=args.limit, dry_run=args.dry_run)
    finally:
        storage.dispose()
    _print_json(summary.as_dict())
    return 0


def _sync_meps(config, args: argparse.Namespace) -> int:
    terms = args.terms or [parliamentary_term_for(date.today())]
    storage = open_storage(config)
    sync = create_mep_sync(config, storage)
    try:
        total = sync_terms(sync, terms)
    finally:
        sync.close()
        storage.dispose()
    LOGGER.info("Synchronised %d MEP entries", total)
    return 0


def _prune_documents(config, args: argparse.Namespace) -> int:
    storage = open_storage(config)
    try:
        storage.prune_raw_documents(args.before)
    finally:
        storage.dispose()
    return 0


_COMMANDS = {
    "run-pipeline": _run_pipeline,
    "classify-topics": _classify_topics,
    "sync-meps": _sync_meps,
    "prune-documents": _prune_documents,
}

_NEEDS_API_KEY = {"run-pipeline", "classify-topics"}


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)

    if args.command in _NEEDS_API_KEY and not config.gemini.api_key:
        LOGGER.error("Gemini API key missing - set EUROWATCH_GEMINI_API_KEY before running %s", args.command)
        return 1

    try:
        return _COMMANDS[args.command](config, args)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1
    except EurowatchError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1


def run_pipeline_main(argv: Optional[list[str]] = None) -> int:
    """Entry point of the ``run-pipeline`` console script."""

    return main(["run-pipeline", *(sys.argv[1:] if argv is None else argv)])


def classify_topics_main(argv: Optional[list[str]] = None) -> int:
    """Entry point of the ``classify-topics`` console script."""

    return main(["classify-topics", *(sys.argv[1:] if argv is None else argv)])


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
