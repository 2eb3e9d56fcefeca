import asyncio
import logging
from datetime import date, datetime, timedelta

from casamia.config import config
from casamia.database.core import AsyncSessionLocal
from casamia.services.bill_status_service import mark_overdue_bills
from casamia.services.cart_service import monthly_batch_sweep
from casamia.services.lease_service import update_lease_statuses, send_lease_expiry_warnings
from casamia.utils.ui import is_last_day_of_month


async def daily_job(session_factory=AsyncSessionLocal, today: date = None):
    """Lease statuses, lease expiry warnings and overdue bills. Each step runs on its own."""
    today = today or date.today()
    logging.info("Running daily job...")

    steps = (
        ("lease statuses", lambda s: update_lease_statuses(s)),
        ("lease expiry warnings", lambda s: send_lease_expiry_warnings(s, today, config.LEASE_WARNING_DAYS)),
        ("overdue bills", lambda s: mark_overdue_bills(s, today)),
    )
    for name, step in steps:
        async with session_factory() as session:
            try:
                result = await step(session)
                logging.info(f"Daily job: {name} -> {result}")
            except Exception as e:
                logging.error(f"Daily job step '{name}' failed: {e}")
                await session.rollback()

    logging.info("Daily job finished.")


async def monthly_billing_job(session_factory=AsyncSessionLocal, today: date = None):
    """Bill every cart still active at month end into the tenant's draft bill for the month."""
    today = today or date.today()
    async with session_factory() as session:
        try:
            result = await monthly_batch_sweep(session, today.year, today.month)
        except Exception as e:
            logging.error(f"Monthly beverage sweep failed: {e}")
            await session.rollback()
            return None

    if result.failed_cart_ids:
        logging.warning(f"Monthly sweep could not bill carts {result.failed_cart_ids}")
    return result


async def scheduler_loop(session_factory=AsyncSessionLocal):
    """Run the daily job at SCHEDULER_HOUR:SCHEDULER_MINUTE, plus the sweep on the last day of the month."""
    logging.info("Scheduler started.")

    # Initial delay to settle startup
    await asyncio.sleep(10)

    while True:
        try:
            now = datetime.now()
            today_target = now.replace(
                hour=config.SCHEDULER_HOUR, minute=config.SCHEDULER_MINUTE, second=0, microsecond=0
            )

            if now < today_target:
                next_run = today_target
            else:
                next_run = today_target + timedelta(days=1)

            wait_seconds = (next_run - now).total_seconds()
            logging.info(f"Next scheduler job at {next_run} (in {wait_seconds/3600:.1f}h)")
            await asyncio.sleep(wait_seconds)

            run_day = next_run.date()
            await daily_job(session_factory, run_day)
            if is_last_day_of_month(run_day):
                await monthly_billing_job(session_factory, run_day)

            # Buffer to skip current minute
            await asyncio.sleep(60)

        except asyncio.CancelledError:
            logging.info("Scheduler stopped.")
            raise
        except Exception as e:
            logging.error(f"Error in scheduler loop: {e}")
            await asyncio.sleep(60)  # Prevent tight loop on error
