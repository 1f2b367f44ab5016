"""Batch job: reconcile every subscribed user with Stripe.

Run hourly (or on demand) from the scheduler::

    python -m bonlog.jobs.sync_subscriptions

Exits 0 when the run completed, even if some users failed (those are counted
in the summary and retried on the next run), and 1 on an unhandled error.
"""

import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from stripe import StripeClient

from bonlog.billing.reconciliation import SyncSummary, sync_subscriptions
from bonlog.billing.stripe_client import build_stripe_client
from bonlog.database import make_engine, make_session_factory

logger = logging.getLogger("bonlog.jobs.sync_subscriptions")


async def run(
    session_factory: async_sessionmaker[AsyncSession], client: StripeClient
) -> SyncSummary:
    async with session_factory() as db:
        return await sync_subscriptions(db, client=client)


async def main(database_url: str | None = None) -> int:
    engine = make_engine(database_url)
    try:
        client = build_stripe_client()
        summary = await run(make_session_factory(engine), client)
    except Exception:
        logger.exception("Subscription sync failed")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        "Subscription sync done: checked=%d synced=%d errors=%d",
        summary.checked,
        summary.synced,
        summary.errors,
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(main()))
