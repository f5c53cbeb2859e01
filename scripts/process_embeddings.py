"""Run the workspace indexing jobs from the command line.

Examples:
    python scripts/process_embeddings.py scan
    python scripts/process_embeddings.py process --batch-size 25
    python scripts/process_embeddings.py ingest --transcript 1234
    python scripts/process_embeddings.py cron
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import settings
from src.indexing.scanner import scan_all_users
from src.indexing.worker import cleanup_queue, ingest_transcript, process_queue, run_cron
from src.ingestion.storage import get_supabase_client


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Workspace embedding jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scan", help="Queue eligible transcripts that are not indexed yet")

    process = sub.add_parser("process", help="Process one batch of the queue")
    process.add_argument("--batch-size", type=int, default=None)

    ingest = sub.add_parser("ingest", help="Index one transcript right away")
    ingest.add_argument("--transcript", required=True)

    sub.add_parser("cleanup", help="Delete finished queue items past retention")
    sub.add_parser("cron", help="scan + process + cleanup, as the scheduler does")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    client = get_supabase_client()

    if args.command == "scan":
        stats = scan_all_users(client)
        print(
            f"Checked {stats.users_checked} users, queued {stats.items_queued} transcripts "
            f"for {stats.users_with_new_items} users, {len(stats.errors)} errors."
        )
        return 1 if stats.errors else 0

    if args.command == "process":
        run = process_queue(client, args.batch_size)
        print(
            f"Processed {run.processed} of {run.total} items, {run.failed} failed, "
            f"{run.reclaimed} stale claims released."
        )
        return 1 if run.failed else 0

    if args.command == "ingest":
        chunks = ingest_transcript(client, args.transcript)
        print(f"Transcript {args.transcript} indexed with {chunks} chunks.")
        return 0

    if args.command == "cleanup":
        print(f"Removed {cleanup_queue(client)} finished queue items.")
        return 0

    results = run_cron(client)
    print(
        f"Users checked: {results.users_checked}, queued: {results.new_items_queued}, "
        f"processed: {results.queue_processed}, failed: {results.queue_failed}, "
        f"cleaned: {results.queue_cleaned}"
    )
    for error in results.errors:
        print(f"  ERROR {error}")
    return 1 if results.errors else 0


if __name__ == "__main__":
    sys.exit(main())
