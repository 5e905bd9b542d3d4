"""Periodic job runner for the order lifecycle.

Runs the background sweeps inside the ordering domain context:
- tracking sync: refresh carrier checkpoints for every active tracked order
- unpaid orders: cancel online orders left unpaid past the checkout window
- abandoned carts: flag carts idle beyond the threshold

Usage:
    python src/scheduler.py                       # Run all jobs forever
    python src/scheduler.py --once                # Run every job once and exit
    python src/scheduler.py --job tracking-sync   # Run a single job
"""

import argparse
import asyncio
import os

import structlog

from fulfillment.tracking import TrackingSynchronizer
from ordering.cart.abandonment import DetectAbandonedCarts
from ordering.domain import ordering
from ordering.order.expiry import cancel_unpaid_orders
from ordering.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

UNPAID_THRESHOLD_MINUTES = 30
CART_IDLE_THRESHOLD_MINUTES = 30


def sync_tracking():
    return TrackingSynchronizer().sync_all()


def sweep_unpaid_orders():
    return cancel_unpaid_orders(threshold_minutes=UNPAID_THRESHOLD_MINUTES)


def sweep_abandoned_carts():
    return ordering.process(
        DetectAbandonedCarts(idle_threshold_minutes=CART_IDLE_THRESHOLD_MINUTES),
        asynchronous=False,
    )


# name -> (job, interval in seconds)
JOBS = {
    "tracking-sync": (sync_tracking, 30 * 60),
    "unpaid-orders": (sweep_unpaid_orders, 60 * 60),
    "abandoned-carts": (sweep_abandoned_carts, 30 * 60),
}


def run_job(name: str):
    """Run one job inside the domain context. Failures are logged, not raised."""
    job, _ = JOBS[name]
    with ordering.domain_context():
        try:
            result = job()
        except Exception:
            logger.exception("Scheduled job failed", job=name)
            return None
    logger.info("Scheduled job finished", job=name, result=result)
    return result


async def run_periodically(name: str, interval: float) -> None:
    while True:
        await asyncio.to_thread(run_job, name)
        await asyncio.sleep(interval)


async def run(job_names):
    await asyncio.gather(*(run_periodically(name, JOBS[name][1]) for name in job_names))


def main():
    parser = argparse.ArgumentParser(description="Order lifecycle job scheduler")
    parser.add_argument(
        "--job",
        choices=list(JOBS),
        help="Run a single job (default: run all)",
    )
    parser.add_argument("--once", action="store_true", help="Run the selected jobs once and exit")
    args = parser.parse_args()

    configure_logging(os.environ.get("LOG_DIR"))
    ordering.init()

    job_names = [args.job] if args.job else list(JOBS)
    if args.once:
        for name in job_names:
            run_job(name)
        return

    asyncio.run(run(job_names))


if __name__ == "__main__":
    main()
