# src/main.py — v2
"""CLI entry point — worker, status, enqueue, reconcile commands.

Usage:
    linklore worker
    linklore status <document_id>
    linklore enqueue <job> [--document ID] [--topic ID] [--room ID] [--message ID]
    linklore reconcile [--limit N] [--include-failed] [--dry-run]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from linklore.version import __version__

logger = logging.getLogger(__name__)

ENQUEUE_CHOICES = (
    "extract",
    "summarize",
    "evaluate",
    "analyzeDisagreements",
    "userPairAnalysis",
    "trackConsensus",
    "moderate",
    "chatAnalysis",
)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(args.verbose)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="linklore",
        description=f"linklore v{__version__} — document analysis pipeline",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- worker ---
    p_worker = subparsers.add_parser("worker", help="Run the broker worker")
    p_worker.set_defaults(func=_cmd_worker)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show a document's stage status")
    p_status.add_argument("document_id", help="Document id")
    p_status.set_defaults(func=_cmd_status)

    # --- enqueue ---
    p_enqueue = subparsers.add_parser("enqueue", help="Enqueue one job")
    p_enqueue.add_argument("job", choices=ENQUEUE_CHOICES, help="Job name")
    p_enqueue.add_argument("--document", default=None, help="Document id")
    p_enqueue.add_argument("--topic", default=None, help="Topic id")
    p_enqueue.add_argument("--user1", default=None, help="First user id (userPairAnalysis)")
    p_enqueue.add_argument("--user2", default=None, help="Second user id (userPairAnalysis)")
    p_enqueue.add_argument("--room", default=None, help="Chat room id")
    p_enqueue.add_argument("--message", default=None, help="Chat message id")
    p_enqueue.set_defaults(func=_cmd_enqueue)

    # --- reconcile ---
    p_reconcile = subparsers.add_parser(
        "reconcile", help="Resubmit stalled document chains",
    )
    p_reconcile.add_argument(
        "--limit", type=int, default=20,
        help="Maximum documents to act on (default: 20)",
    )
    p_reconcile.add_argument(
        "--include-failed", action="store_true",
        help="Also resubmit stages recorded as failed",
    )
    p_reconcile.add_argument(
        "--dry-run", action="store_true",
        help="Report what would be done without doing it",
    )
    p_reconcile.set_defaults(func=_cmd_reconcile)

    return parser


async def _run(args: argparse.Namespace) -> int:
    from linklore.api.facade import Linklore

    app = Linklore.from_settings()
    try:
        return await args.func(app, args)
    finally:
        await app.shutdown()


async def _cmd_worker(app: object, args: argparse.Namespace) -> int:
    """Run the broker worker until interrupted."""
    stats = await app.run_worker()  # type: ignore[attr-defined]
    print(json.dumps(stats.as_dict()))
    return 0


async def _cmd_status(app: object, args: argparse.Namespace) -> int:
    status = await app.get_processing_status(args.document_id)  # type: ignore[attr-defined]
    if status is None:
        logger.error("Document not found: %s", args.document_id)
        return 1
    print(status.model_dump_json(indent=2))
    return 0


async def _cmd_enqueue(app: object, args: argparse.Namespace) -> int:
    """Enqueue one job; the arguments each job needs are checked here."""
    required = {
        "extract": ("document",),
        "summarize": ("document",),
        "evaluate": ("document",),
        "analyzeDisagreements": ("topic",),
        "userPairAnalysis": ("topic",),
        "trackConsensus": ("topic",),
        "moderate": ("message", "room"),
        "chatAnalysis": ("room",),
    }[args.job]
    missing = [f"--{name}" for name in required if not getattr(args, name)]
    if missing:
        logger.error("%s requires %s", args.job, ", ".join(missing))
        return 2

    if args.job == "extract":
        handle = await app.enqueue_extract(args.document)  # type: ignore[attr-defined]
    elif args.job == "summarize":
        handle = await app.enqueue_summarize(args.document)  # type: ignore[attr-defined]
    elif args.job == "evaluate":
        handle = await app.enqueue_evaluate(args.document)  # type: ignore[attr-defined]
    elif args.job == "analyzeDisagreements":
        handle = await app.enqueue_analyze_disagreements(args.topic, args.document)  # type: ignore[attr-defined]
    elif args.job == "userPairAnalysis":
        handle = await app.enqueue_user_pair_analysis(args.topic, args.user1, args.user2)  # type: ignore[attr-defined]
    elif args.job == "trackConsensus":
        handle = await app.enqueue_track_consensus(args.topic, args.document)  # type: ignore[attr-defined]
    elif args.job == "moderate":
        handle = await app.enqueue_moderation(args.message, args.room)  # type: ignore[attr-defined]
    else:
        handle = await app.enqueue_chat_analysis(args.room)  # type: ignore[attr-defined]

    print(handle.model_dump_json())
    return 0


async def _cmd_reconcile(app: object, args: argparse.Namespace) -> int:
    report = await app.reconcile(  # type: ignore[attr-defined]
        limit=args.limit, include_failed=args.include_failed, dry_run=args.dry_run,
    )
    print("\nReconcile sweep:")
    print(f"  Scanned:   {report.scanned}")
    print(f"  Enqueued:  {len(report.enqueued)}")
    print(f"  Repaired:  {len(report.repaired)}")
    print(f"  Errors:    {len(report.errors)}")
    return 0


def _setup_logging(verbose: bool) -> None:
    """Configure logging from settings, forcing DEBUG with --verbose."""
    from linklore.config.settings import Settings
    from linklore.logging.logger import setup_logging

    setup_logging(Settings(), level="DEBUG" if verbose else None)
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
