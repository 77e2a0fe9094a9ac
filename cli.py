#!/usr/bin/env python3
"""
CLI for the appraisal core.

Usage:
    python cli.py ingest <records_json>
    python cli.py runs [--limit N]
    python cli.py show-run <run_id>
    python cli.py appraise <search_json> [--strategy S] [--top-k K]

Examples:
    # Ingest {"transactions": [...], "listings": [...]}
    python cli.py ingest data/records.json

    # Rank {"subject": {...}, "comparablesPool": [...]} and value the subject
    python cli.py appraise data/subject.json --strategy hedonic
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from core.errors import AppraisalError
from core.service import AppraisalService
from utils.config import Config


def load_json(path: str):
    """
    Load a JSON request body from file.

    Raises:
        AppraisalError: If the file is missing or not valid JSON
    """
    input_path = Path(path)
    if not input_path.exists():
        raise AppraisalError(f"File not found: {input_path}")
    try:
        with open(input_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise AppraisalError(f"Invalid JSON: {e}") from e


def emit(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_ingest(service: AppraisalService, args) -> int:
    """Run the ingestion pipeline over a records file."""
    emit(service.run_ingestion(load_json(args.records_file)))
    return 0


def cmd_runs(service: AppraisalService, args) -> int:
    """List persisted ingestion runs, most recent first."""
    emit(service.list_ingestion_runs(args.limit))
    return 0


def cmd_show_run(service: AppraisalService, args) -> int:
    """Print one ingestion run."""
    emit(service.get_ingestion_run(args.run_id))
    return 0


def cmd_appraise(service: AppraisalService, args) -> int:
    """Search comparables and value the subject in one step."""
    body = load_json(args.search_file)
    if isinstance(body, dict) and args.top_k is not None:
        body = {**body, "topK": args.top_k}

    search = service.search_comparables(body)
    valuation = service.estimate_valuation(
        {"runId": search["runId"], "strategy": args.strategy}
    )
    emit({"search": search, "valuation": valuation})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Appraisal core - ingestion, comparables and valuation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python cli.py ingest data/records.json
    python cli.py runs --limit 10
    python cli.py appraise data/subject.json --strategy mean

Environment:
    DATA_DIR, INGESTION_RUNS_PATH, DEFAULT_TOP_K, LOG_LEVEL, ...
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Clean and de-duplicate transactions and listings from a JSON file",
    )
    ingest_parser.add_argument("records_file", help="Path to JSON ingestion request")
    ingest_parser.set_defaults(func=cmd_ingest)

    # Runs command
    runs_parser = subparsers.add_parser("runs", help="List ingestion runs")
    runs_parser.add_argument("--limit", type=int, default=None, help="Maximum runs to list")
    runs_parser.set_defaults(func=cmd_runs)

    # Show-run command
    show_parser = subparsers.add_parser("show-run", help="Show one ingestion run")
    show_parser.add_argument("run_id", help="Ingestion run id (ing_...)")
    show_parser.set_defaults(func=cmd_show_run)

    # Appraise command
    appraise_parser = subparsers.add_parser(
        "appraise",
        help="Rank comparables for a subject and estimate its value",
    )
    appraise_parser.add_argument("search_file", help="Path to JSON comparable search request")
    appraise_parser.add_argument(
        "--strategy",
        default="weighted-mean",
        help="mean | weighted-mean | hedonic (default: weighted-mean)",
    )
    appraise_parser.add_argument("--top-k", type=int, default=None, help="Comparables to keep")
    appraise_parser.set_defaults(func=cmd_appraise)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    config = Config.load()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    service = AppraisalService.from_config(config)
    try:
        return args.func(service, args)
    except AppraisalError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        for reason in e.reasons:
            if reason != e.message:
                print(f"  - {reason}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
