"""
Payout Batch Jobs.

- run_daily_payout_batch: create payouts for every eligible seller
- generate_weekly_payout_report: payout counts and net totals by status
  for the trailing 7 days

Triggers:
- Daily / weekly scheduled jobs (via APScheduler)
- POST /api/v1/payouts/admin/batch-create runs the batch on demand
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Any, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from sellerhub.database import get_db_session
from sellerhub.models.payout import SellerPayout, PayoutEvent, PayoutStatus
from sellerhub.services.seller_payout_service import SellerPayoutService

logger = logging.getLogger(__name__)

REPORT_WINDOW_DAYS = 7


async def run_daily_payout_batch(payout_date: Optional[date] = None) -> Dict[str, Any]:
    """
    Run the payout batch for today (UTC) in its own session.

    Returns:
        Summary with created/skipped counts and per-seller errors
    """
    payout_date = payout_date or datetime.now(timezone.utc).date()
    logger.info(f"Starting daily payout batch for {payout_date}...")

    results = {
        "started_at": datetime.now(timezone.utc).isoformat(),
        "payout_date": payout_date.isoformat(),
        "created": 0,
        "skipped": 0,
        "errors": [],
    }

    try:
        async with get_db_session() as db:
            batch = await SellerPayoutService(db).create_batch_payouts(payout_date)
        results["created"] = batch.created
        results["skipped"] = batch.skipped
        results["errors"] = list(batch.errors)
    except Exception as e:
        logger.error(f"Daily payout batch failed: {e}")
        results["errors"].append(str(e))

    results["completed_at"] = datetime.now(timezone.utc).isoformat()

    for error in results["errors"]:
        logger.error(f"Payout batch error: {error}")
    logger.info(
        f"Daily payout batch completed: {results['created']} created, "
        f"{results['skipped']} skipped, {len(results['errors'])} errors"
    )
    return results


async def generate_weekly_payout_report(
    db: AsyncSession,
    as_of: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Summarize payouts created in the trailing week.

    Returns:
        Counts and net totals per status plus the number of events written
    """
    window_end = as_of or datetime.now(timezone.utc)
    window_start = window_end - timedelta(days=REPORT_WINDOW_DAYS)

    report: Dict[str, Any] = {
        "window_start": window_start.isoformat(),
        "window_end": window_end.isoformat(),
        "by_status": {s.value: {"count": 0, "net_amount": "0"} for s in PayoutStatus},
        "total_payouts": 0,
        "total_net": "0",
        "event_count": 0,
    }

    status_result = await db.execute(
        select(
            SellerPayout.status,
            func.count(SellerPayout.id),
            func.coalesce(func.sum(SellerPayout.net_amount), 0),
        )
        .where(
            SellerPayout.created_at >= window_start,
            SellerPayout.created_at <= window_end,
        )
        .group_by(SellerPayout.status)
    )

    total_net = Decimal("0")
    for status, count, net in status_result.all():
        net = Decimal(str(net))
        report["by_status"][status] = {"count": count, "net_amount": str(net)}
        report["total_payouts"] += count
        total_net += net
    report["total_net"] = str(total_net)

    event_result = await db.execute(
        select(func.count(PayoutEvent.id)).where(
            PayoutEvent.created_at >= window_start,
            PayoutEvent.created_at <= window_end,
        )
    )
    report["event_count"] = event_result.scalar() or 0

    logger.info(
        f"Weekly payout report: {report['total_payouts']} payouts, "
        f"net {report['total_net']}, {report['event_count']} events"
    )
    return report


async def run_weekly_payout_report() -> Dict[str, Any]:
    """Scheduler entry point for the weekly report."""
    async with get_db_session() as db:
        return await generate_weekly_payout_report(db)
