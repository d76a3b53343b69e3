import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone

import pytest

from sellerhub.jobs import payout_jobs, scheduler
from sellerhub.services.seller_payout_service import SellerPayoutService
from tests.factories import add_payout, make_eligible_seller


@pytest.fixture
def job_sessions(session_factory, monkeypatch):
    """Point the jobs' session context manager at the test database."""

    @asynccontextmanager
    async def test_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr(payout_jobs, "get_db_session", test_db_session)


async def test_daily_batch_job(db, job_sessions):
    await make_eligible_seller(db, uuid.uuid4(), auto_payout=True)

    result = await payout_jobs.run_daily_payout_batch(date(2026, 10, 19))

    assert result["payout_date"] == "2026-10-19"
    assert result["created"] == 1
    assert result["skipped"] == 0
    assert result["errors"] == []
    assert "completed_at" in result


async def test_daily_batch_job_reports_crash(job_sessions, monkeypatch):
    async def broken_batch(self, payout_date):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(SellerPayoutService, "create_batch_payouts", broken_batch)

    result = await payout_jobs.run_daily_payout_batch()

    assert result["created"] == 0
    assert result["errors"] == ["database unavailable"]


async def test_weekly_report(db, seller_id):
    now = datetime.now(timezone.utc)
    await add_payout(db, seller_id, status="settled", net="300.00")
    await add_payout(db, seller_id, status="pending", net="120.00")
    await add_payout(db, seller_id, status="pending", net="80.00")
    await add_payout(db, seller_id, status="settled", net="999.00", created_at=now - timedelta(days=10))
    await SellerPayoutService(db).fail_payout(
        (await add_payout(db, seller_id, status="processing", net="50.00")).id, "Bank rejected"
    )

    report = await payout_jobs.generate_weekly_payout_report(db, as_of=now + timedelta(minutes=1))

    assert report["total_payouts"] == 4
    assert report["by_status"]["settled"] == {"count": 1, "net_amount": "300.00"}
    assert report["by_status"]["pending"]["count"] == 2
    assert report["by_status"]["failed"]["count"] == 1
    assert report["by_status"]["on_hold"] == {"count": 0, "net_amount": "0"}
    assert report["total_net"] == "550.00"
    assert report["event_count"] == 1


async def test_weekly_report_job(job_sessions):
    report = await payout_jobs.run_weekly_payout_report()

    assert report["total_payouts"] == 0
    assert report["total_net"] == "0"


def test_register_jobs():
    scheduler.register_jobs()
    try:
        jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}

        assert set(jobs) == {"daily_payout_batch", "weekly_payout_report"}
        assert jobs["daily_payout_batch"].args == ("daily_payout_batch",)
        assert "day_of_week='mon'" in str(jobs["weekly_payout_report"].trigger)
    finally:
        scheduler.scheduler.remove_all_jobs()


async def test_scheduled_job_failure_is_logged(monkeypatch, caplog):
    async def broken_job():
        raise RuntimeError("boom")

    monkeypatch.setattr(payout_jobs, "run_weekly_payout_report", broken_job)

    await scheduler.run_scheduled_job("weekly_payout_report")

    assert "Job 'weekly_payout_report' failed: boom" in caplog.text
