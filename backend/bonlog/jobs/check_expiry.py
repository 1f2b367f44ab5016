"""Batch job: demote premium users whose expiry has passed.

Run daily from the scheduler::

    python -m bonlog.jobs.check_expiry

The whole sweep is one transaction: it either commits completely or, on any
error, nothing is written and the job exits 1.
"""

import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bonlog.billing.expiry import SweepResult, sweep_expired_premium
from bonlog.database import make_engine, make_session_factory

logger = logging.getLogger("bonlog.jobs.check_expiry")


async def run(session_factory: async_sessionmaker[AsyncSession]) -> SweepResult:
    async with session_factory() as db:
        try:
            sweep = await sweep_expired_premium(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return sweep


async def main(database_url: str | None = None) -> int:
    engine = make_engine(database_url)
    try:
        sweep = await run(make_session_factory(engine))
    except Exception:
        logger.exception("Expiry check failed")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        "Expiry check done: expired=%d cancelled_posts=%d",
        sweep.expired_count,
        sweep.cancelled_posts,
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(main()))
