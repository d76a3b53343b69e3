import re
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from sellerhub.models.payout import SellerPayout, PayoutLineItem, PayoutEvent
from sellerhub.services.payout_event_service import PayoutEventService
from sellerhub.services.payout_number_service import PayoutNumberService
from sellerhub.services.seller_payout_service import (
    SellerPayoutService, NO_VERIFIED_BANK, ELIGIBILITY_CHANGED,
)
from tests.factories import (
    add_bank, add_paid_invoice, add_payout, make_eligible_seller,
)


TODAY = datetime.now(timezone.utc).date()
PERIOD = (TODAY - timedelta(days=7), TODAY)


async def count(db, model, *conditions):
    result = await db.execute(select(func.count(model.id)).where(*conditions))
    return result.scalar()


async def test_create_payout_end_to_end(db, seller_id):
    invoice = await make_eligible_seller(db, seller_id, total="500.00")

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert result.success is True
    assert result.error is None
    payout = result.payout
    assert payout.status == "pending"
    assert payout.seller_id == seller_id
    assert payout.net_amount == Decimal("500.00")
    assert payout.gross_amount == Decimal("500.00")
    assert payout.currency == "SAR"
    assert payout.period_start == PERIOD[0]
    assert payout.period_end == PERIOD[1]
    assert re.fullmatch(r"PAY-OUT-\d{4}-\d{4}", payout.payout_number)
    assert payout.bank_name == "Al Rajhi Bank"
    assert payout.account_holder == "Test Seller Co"
    assert payout.iban_masked == "********************7519"

    line_items = (await db.execute(
        select(PayoutLineItem).where(PayoutLineItem.payout_id == payout.id)
    )).scalars().all()
    assert len(line_items) == 1
    assert line_items[0].invoice_id == invoice.id
    assert line_items[0].invoice_number == invoice.invoice_number
    assert line_items[0].net_amount == Decimal("500.00")
    assert line_items[0].invoice_status == "paid"

    events = (await db.execute(
        select(PayoutEvent).where(PayoutEvent.payout_id == payout.id)
    )).scalars().all()
    assert len(events) == 1
    created = events[0]
    assert created.event_type == "PAYOUT_CREATED"
    assert created.actor_type == "system"
    assert created.actor_id is None
    assert created.from_status is None
    assert created.to_status == "pending"
    assert created.event_metadata["invoice_count"] == 1
    assert Decimal(created.event_metadata["total_net"]) == Decimal("500")


async def test_totals_match_line_items(db, seller_id):
    await add_bank(db, seller_id)
    await add_paid_invoice(db, seller_id, total="300.00", platform_fee="7.50", net_to_seller="292.50")
    await add_paid_invoice(db, seller_id, total="120.00", platform_fee="3.00", net_to_seller="117.00")

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)
    payout = result.payout

    line_items = (await db.execute(
        select(PayoutLineItem).where(PayoutLineItem.payout_id == payout.id)
    )).scalars().all()
    assert len(line_items) == 2
    assert payout.gross_amount == sum(li.invoice_total for li in line_items) == Decimal("420.00")
    assert payout.platform_fee_total == sum(li.platform_fee for li in line_items) == Decimal("10.50")
    assert payout.net_amount == sum(li.net_amount for li in line_items) == Decimal("409.50")


async def test_requires_verified_bank(db, seller_id):
    await add_paid_invoice(db, seller_id, total="500.00")

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert result.success is False
    assert result.error == NO_VERIFIED_BANK
    assert await count(db, SellerPayout) == 0


async def test_unverified_bank_is_not_enough(db, seller_id):
    await add_bank(db, seller_id, verification_status="pending")
    await add_paid_invoice(db, seller_id, total="500.00")

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert result.error == NO_VERIFIED_BANK


async def test_ineligible_seller_gets_reason(db, seller_id):
    await add_bank(db, seller_id)
    await add_paid_invoice(db, seller_id, total="500.00", paid_days_ago=3)

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert result.success is False
    assert result.error == "Total amount (0.00 SAR) is below minimum payout threshold (100 SAR)"
    assert await count(db, SellerPayout) == 0


async def test_missing_iban_masks_to_empty(db, seller_id):
    await add_bank(db, seller_id, iban=None)
    await add_paid_invoice(db, seller_id, total="500.00")

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert result.success is True
    assert result.payout.iban_masked == ""


async def test_audit_failure_rolls_back_everything(db, seller_id, monkeypatch):
    await make_eligible_seller(db, seller_id)

    async def broken_audit(self, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(PayoutEventService, "log_payout_created", broken_audit)

    with pytest.raises(RuntimeError, match="audit store unavailable"):
        await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert await count(db, SellerPayout) == 0
    assert await count(db, PayoutLineItem) == 0
    assert await count(db, PayoutEvent) == 0

    monkeypatch.undo()
    eligibility = await SellerPayoutService(db).calculate_eligible_payouts(seller_id)
    assert eligibility.eligible is True
    assert len(eligibility.invoices) == 1


async def test_number_collision_is_retried(db, seller_id, monkeypatch):
    year = datetime.now(timezone.utc).year
    taken = f"PAY-OUT-{year}-0001"
    await add_payout(db, uuid.uuid4(), payout_number=taken)
    await make_eligible_seller(db, seller_id)

    original = PayoutNumberService.get_next_number
    issued = []

    async def stale_then_fresh(self, now=None):
        number = taken if not issued else await original(self, now)
        issued.append(number)
        return number

    monkeypatch.setattr(PayoutNumberService, "get_next_number", stale_then_fresh)

    result = await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert result.success is True
    assert issued == [taken, f"PAY-OUT-{year}-0002"]
    assert result.payout.payout_number == f"PAY-OUT-{year}-0002"
    assert await count(db, SellerPayout) == 2
    assert await count(db, PayoutEvent) == 1


async def test_number_collision_gives_up_after_retries(db, seller_id, monkeypatch):
    year = datetime.now(timezone.utc).year
    taken = f"PAY-OUT-{year}-0001"
    await add_payout(db, uuid.uuid4(), payout_number=taken)
    await make_eligible_seller(db, seller_id)

    async def always_taken(self, now=None):
        return taken

    monkeypatch.setattr(PayoutNumberService, "get_next_number", always_taken)

    with pytest.raises(IntegrityError):
        await SellerPayoutService(db).create_payout(seller_id, *PERIOD)

    assert await count(db, SellerPayout, SellerPayout.seller_id == seller_id) == 0


async def test_invoice_claimed_concurrently(db, seller_id, monkeypatch):
    await make_eligible_seller(db, seller_id)
    service = SellerPayoutService(db)
    stale = await service.calculate_eligible_payouts(seller_id)

    first = await service.create_payout(seller_id, *PERIOD)
    assert first.success is True

    async def stale_eligibility(self, seller_id, as_of=None):
        return stale

    monkeypatch.setattr(SellerPayoutService, "calculate_eligible_payouts", stale_eligibility)

    second = await service.create_payout(seller_id, *PERIOD)

    assert second.success is False
    assert second.error == ELIGIBILITY_CHANGED
    assert await count(db, SellerPayout) == 1
    assert await count(db, PayoutLineItem) == 1
    assert await count(db, PayoutEvent) == 1


async def test_each_invoice_paid_out_once(db, seller_id):
    await make_eligible_seller(db, seller_id)
    service = SellerPayoutService(db)

    first = await service.create_payout(seller_id, *PERIOD)
    second = await service.create_payout(seller_id, *PERIOD)

    assert first.success is True
    assert second.success is False
    assert await count(db, PayoutLineItem) == 1
