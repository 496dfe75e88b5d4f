#!/usr/bin/env python3
"""Start RQ worker for dispatching campaign shippings.

Usage:
    python scripts/start_worker.py [--burst]

This script starts an RQ worker on the `campaigns` queue. The scheduler is
enabled so jobs enqueued with a delay and retried jobs are picked up.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rq import Worker
from ticketflow.infra.logging import app_logger
from ticketflow.infra.queue import campaign_queue, queue_conn


def main():
    parser = argparse.ArgumentParser(description="Start RQ worker")
    parser.add_argument(
        "--burst",
        action="store_true",
        help="Run in burst mode (exit when queue is empty)",
    )

    args = parser.parse_args()

    app_logger.info(f"Starting worker for queue: {campaign_queue.name}")
    if args.burst:
        app_logger.info("Running in burst mode")

    worker = Worker([campaign_queue], connection=queue_conn)
    worker.work(burst=args.burst, with_scheduler=True, logging_level="INFO")


if __name__ == "__main__":
    main()
