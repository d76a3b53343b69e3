"""
Read-only payout views for sellers and admins.

Lists, detail with history, per-status stats, a per-invoice funds timeline
and the enhanced eligibility summary shown on the seller wallet screen.
"""
import calendar
import math
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Dict

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sellerhub.config import settings
from sellerhub.core.time_utils import utcnow, as_utc
from sellerhub.models.marketplace import MarketplaceInvoice, MarketplaceOrder, InvoiceStatus, OrderStatus
from sellerhub.models.payout import (
    SellerPayout, PayoutLineItem, PayoutEvent, PayoutStatus, PayoutFrequency,
)
from sellerhub.schemas.payout import (
    PayoutFilters, PaginationMeta, SellerPayoutListItem, SellerPayoutListResponse,
    SellerPayoutDetailResponse, PayoutEventResponse, PayoutStatsResponse, NextPayout,
    FundsTimelineEntry, EnhancedEligibilityResponse,
)
from sellerhub.services.seller_payout_service import SellerPayoutService


PAYOUT_FREQUENCY_LABELS = {
    PayoutFrequency.DAILY.value: "Daily",
    PayoutFrequency.WEEKLY.value: "Weekly",
    PayoutFrequency.BIWEEKLY.value: "Bi-weekly",
    PayoutFrequency.MONTHLY.value: "Monthly",
}


def _line_item_count():
    return (
        select(func.count(PayoutLineItem.id))
        .where(PayoutLineItem.payout_id == SellerPayout.id)
        .correlate(SellerPayout)
        .scalar_subquery()
        .label("line_item_count")
    )


def _to_list_item(payout: SellerPayout, line_item_count: int) -> SellerPayoutListItem:
    item = SellerPayoutListItem.model_validate(payout)
    item.line_item_count = line_item_count or 0
    return item


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def project_next_payout_date(frequency: str, payout_day: int, today: date) -> date:
    """
    Next scheduled payout date for a seller.

    weekly/biweekly: payout_day is a weekday with 0=Sunday; never today.
    monthly: payout_day of next month.
    """
    if frequency == PayoutFrequency.DAILY.value:
        return today + timedelta(days=1)

    if frequency in (PayoutFrequency.WEEKLY.value, PayoutFrequency.BIWEEKLY.value):
        current_day = (today.weekday() + 1) % 7
        days_until = (payout_day - current_day + 7) % 7 or 7
        next_date = today + timedelta(days=days_until)
        if frequency == PayoutFrequency.BIWEEKLY.value:
            next_date += timedelta(days=7)
        return next_date

    year = today.year + (1 if today.month == 12 else 0)
    month = 1 if today.month == 12 else today.month + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(payout_day, 1), last_day))


class PayoutQueryService:
    """Query/reporting layer over payouts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.payouts = SellerPayoutService(db)

    async def get_seller_payouts(
        self,
        seller_id: uuid.UUID,
        filters: Optional[PayoutFilters] = None,
    ) -> SellerPayoutListResponse:
        """Paginated payouts for a seller, newest first."""
        filters = filters or PayoutFilters()

        conditions = [SellerPayout.seller_id == seller_id]
        if filters.status:
            conditions.append(SellerPayout.status == filters.status.value)
        if filters.date_from:
            conditions.append(SellerPayout.created_at >= _day_start(filters.date_from))
        if filters.date_to:
            conditions.append(SellerPayout.created_at < _day_start(filters.date_to + timedelta(days=1)))

        total_result = await self.db.execute(
            select(func.count(SellerPayout.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(SellerPayout, _line_item_count())
            .where(*conditions)
            .order_by(SellerPayout.created_at.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        items = [_to_list_item(payout, count) for payout, count in result.all()]

        return SellerPayoutListResponse(
            items=items,
            pagination=PaginationMeta(
                page=filters.page,
                limit=filters.limit,
                total=total,
                total_pages=math.ceil(total / filters.limit),
            ),
        )

    async def get_payout_details(
        self,
        payout_id: uuid.UUID,
        seller_id: uuid.UUID,
    ) -> Optional[SellerPayoutDetailResponse]:
        """Payout with line items and events, or None if not the seller's."""
        result = await self.db.execute(
            select(SellerPayout)
            .options(
                selectinload(SellerPayout.line_items),
                selectinload(SellerPayout.events),
            )
            .where(SellerPayout.id == payout_id, SellerPayout.seller_id == seller_id)
            .execution_options(populate_existing=True)
        )
        payout = result.scalar_one_or_none()
        if payout is None:
            return None
        return SellerPayoutDetailResponse.model_validate(payout)

    async def get_payout_history(
        self,
        payout_id: uuid.UUID,
        seller_id: uuid.UUID,
    ) -> List[PayoutEventResponse]:
        """Events for one of the seller's payouts, newest first."""
        result = await self.db.execute(
            select(PayoutEvent)
            .join(SellerPayout, SellerPayout.id == PayoutEvent.payout_id)
            .where(PayoutEvent.payout_id == payout_id, SellerPayout.seller_id == seller_id)
            .order_by(PayoutEvent.created_at.desc())
        )
        return [PayoutEventResponse.model_validate(e) for e in result.scalars().all()]

    async def _sum_by_status(self, seller_id: uuid.UUID) -> Dict[str, Dict[str, object]]:
        result = await self.db.execute(
            select(
                SellerPayout.status,
                func.count(SellerPayout.id),
                func.coalesce(func.sum(SellerPayout.net_amount), 0),
            )
            .where(SellerPayout.seller_id == seller_id)
            .group_by(SellerPayout.status)
        )
        return {
            status: {"count": count, "net": Decimal(str(net))}
            for status, count, net in result.all()
        }

    async def get_payout_stats(self, seller_id: uuid.UUID) -> PayoutStatsResponse:
        """Totals by status plus the amount of the next payout, if eligible now."""
        by_status = await self._sum_by_status(seller_id)

        payout_count = {s.value: 0 for s in PayoutStatus}
        total_paid = Decimal("0")
        pending_amount = Decimal("0")
        for status, row in by_status.items():
            payout_count[status] = row["count"]
            if status == PayoutStatus.SETTLED.value:
                total_paid += row["net"]
            if status in (PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value):
                pending_amount += row["net"]

        eligibility = await self.payouts.calculate_eligible_payouts(seller_id)
        next_payout = NextPayout(amount=eligibility.total_net, date=None) if eligibility.eligible else None

        return PayoutStatsResponse(
            total_paid=total_paid,
            pending_amount=pending_amount,
            payout_count=payout_count,
            next_payout=next_payout,
            currency=settings.PAYOUT_CURRENCY,
        )

    async def get_pending_payouts(self) -> List[SellerPayoutListItem]:
        """All pending payouts across sellers, oldest first (admin queue)."""
        result = await self.db.execute(
            select(SellerPayout, _line_item_count())
            .where(SellerPayout.status == PayoutStatus.PENDING.value)
            .order_by(SellerPayout.created_at.asc())
        )
        return [_to_list_item(payout, count) for payout, count in result.all()]

    async def get_payouts_by_status(self, status: PayoutStatus) -> List[SellerPayoutListItem]:
        """All payouts in a status, newest first (admin)."""
        result = await self.db.execute(
            select(SellerPayout, _line_item_count())
            .where(SellerPayout.status == PayoutStatus(status).value)
            .order_by(SellerPayout.created_at.desc())
        )
        return [_to_list_item(payout, count) for payout, count in result.all()]

    async def get_funds_timeline(
        self,
        seller_id: uuid.UUID,
        limit: int = 10,
    ) -> List[FundsTimelineEntry]:
        """
        Where each recently paid invoice stands on its way to the seller.

        paid            -> in a settled payout
        eligible        -> in any other payout, or payable now
        order_completed -> order not closed yet
        funds_held      -> inside the hold window or under an open dispute
        """
        payout_settings = await self.payouts.settings_service.get_payout_settings(seller_id)
        hold_period = timedelta(days=payout_settings.hold_period_days)

        result = await self.db.execute(
            select(MarketplaceInvoice)
            .where(
                MarketplaceInvoice.seller_id == seller_id,
                MarketplaceInvoice.status == InvoiceStatus.PAID.value,
                MarketplaceInvoice.paid_at.is_not(None),
            )
            .order_by(MarketplaceInvoice.paid_at.desc())
            .limit(limit)
        )
        invoices = result.scalars().all()

        now = utcnow()
        entries: List[FundsTimelineEntry] = []
        for invoice in invoices:
            order = await self.db.get(MarketplaceOrder, invoice.order_id)
            if order is None:
                continue

            paid_at = as_utc(invoice.paid_at)
            hold_end = paid_at + hold_period

            line_result = await self.db.execute(
                select(SellerPayout.id, SellerPayout.payout_number, SellerPayout.status)
                .join(PayoutLineItem, PayoutLineItem.payout_id == SellerPayout.id)
                .where(PayoutLineItem.invoice_id == invoice.id)
                .limit(1)
            )
            in_payout = line_result.first()

            payout_id = None
            payout_number = None
            if in_payout:
                payout_id, payout_number, payout_status = in_payout
                status = "paid" if payout_status == PayoutStatus.SETTLED.value else "eligible"
            elif order.status != OrderStatus.CLOSED.value:
                status = "order_completed"
            elif now < hold_end:
                status = "funds_held"
            elif await self.payouts.has_open_dispute(invoice.order_id):
                status = "funds_held"
            else:
                status = "eligible"

            entries.append(FundsTimelineEntry(
                id=invoice.id,
                order_id=invoice.order_id,
                order_number=order.order_number,
                amount=invoice.net_to_seller if invoice.net_to_seller is not None else invoice.total_amount,
                currency=invoice.currency,
                status=status,
                date=paid_at,
                hold_end_date=hold_end,
                payout_id=payout_id,
                payout_number=payout_number,
            ))

        return entries

    async def get_enhanced_eligibility(
        self,
        seller_id: uuid.UUID,
        today: Optional[date] = None,
    ) -> EnhancedEligibilityResponse:
        """Eligibility with bank state, open payout amounts and the next payout date."""
        payout_settings = await self.payouts.settings_service.get_payout_settings(seller_id)
        eligibility = await self.payouts.calculate_eligible_payouts(seller_id)
        bank_verified = await self.payouts.get_verified_bank(seller_id) is not None

        frequency = payout_settings.payout_frequency or PayoutFrequency.WEEKLY.value
        next_payout_date = project_next_payout_date(
            frequency,
            payout_settings.payout_day or 1,
            today or utcnow().date(),
        )

        if not bank_verified:
            withdrawal_disabled_reason = "Bank account not verified"
        elif not eligibility.eligible:
            withdrawal_disabled_reason = eligibility.reason or "No eligible funds"
        else:
            withdrawal_disabled_reason = None

        by_status = await self._sum_by_status(seller_id)
        pending_amount = sum(
            (row["net"] for status, row in by_status.items()
             if status in (PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value)),
            Decimal("0"),
        )
        on_hold_amount = by_status.get(PayoutStatus.ON_HOLD.value, {}).get("net", Decimal("0"))

        return EnhancedEligibilityResponse(
            eligible_amount=eligibility.total_net,
            eligible_invoices=len(eligibility.invoices),
            pending_amount=pending_amount,
            on_hold_amount=on_hold_amount,
            next_payout_date=next_payout_date,
            bank_verified=bank_verified,
            currency=eligibility.currency,
            hold_period_days=payout_settings.hold_period_days,
            min_payout_amount=payout_settings.min_payout_amount,
            payout_schedule=f"{PAYOUT_FREQUENCY_LABELS.get(frequency, 'Weekly')} payouts",
            withdrawal_disabled_reason=withdrawal_disabled_reason,
        )
