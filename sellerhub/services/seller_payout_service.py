"""
Seller Payout Service.

Eligibility, payout creation, batch runs and lifecycle transitions for
marketplace seller payouts.

Eligibility criteria for an invoice:
- Invoice PAID with paid_at at least hold_period_days ago
- Order CLOSED
- No open dispute on the order
- Not already included in any payout
The seller is eligible when the summed net reaches min_payout_amount.

Every lifecycle transition is validated against the transition table and
recorded as exactly one PayoutEvent in the same transaction.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sellerhub.config import settings
from sellerhub.core.time_utils import utcnow
from sellerhub.models.marketplace import (
    MarketplaceInvoice, MarketplaceOrder, MarketplaceDispute, SellerBank,
    InvoiceStatus, OrderStatus, CLOSED_DISPUTE_STATUSES, BANK_VERIFICATION_APPROVED,
)
from sellerhub.models.payout import (
    SellerPayout, SellerPayoutSettings, PayoutLineItem, PayoutStatus, PayoutEventType,
)
from sellerhub.schemas.payout import (
    EligibleInvoice, PayoutEligibility, PayoutResult, BatchPayoutResult, SellerPayoutResponse,
)
from sellerhub.services.payout_event_service import PayoutEventService
from sellerhub.services.payout_number_service import PayoutNumberService
from sellerhub.services.payout_settings_service import PayoutSettingsService
from sellerhub.services.payout_state_machine import is_valid_transition, mask_iban

logger = logging.getLogger(__name__)

NO_VERIFIED_BANK = "Seller must have a verified bank account"
NO_ELIGIBLE_INVOICES = "No eligible invoices for payout"
ELIGIBILITY_CHANGED = "Eligible invoices changed during payout creation, please retry"
PAYOUT_NOT_FOUND = "Payout not found"

_INVOICE_CONFLICT_MARKERS = ("payout_line_items.invoice_id", "uq_payout_line_items_invoice")
_NUMBER_CONFLICT_MARKERS = ("seller_payouts.payout_number", "ix_seller_payouts_payout_number")


def format_amount(value: Decimal) -> str:
    """Render a threshold without trailing zeros: 100, 99.5."""
    normalized = Decimal(value).normalize()
    return f"{normalized:f}"


class SellerPayoutService:
    """Payout creation and lifecycle management for sellers."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = PayoutEventService(db)
        self.settings_service = PayoutSettingsService(db)

    # ==================== Eligibility ====================

    async def calculate_eligible_payouts(
        self,
        seller_id: uuid.UUID,
        as_of: Optional[datetime] = None,
    ) -> PayoutEligibility:
        """
        Compute the seller's currently payable invoices and totals.

        Below-threshold results still carry the invoices and totals, with
        eligible=False and a human-readable reason.
        """
        payout_settings = await self.settings_service.get_payout_settings(seller_id)
        hold_cutoff = (as_of or utcnow()) - timedelta(days=payout_settings.hold_period_days)

        already_paid_out = select(PayoutLineItem.invoice_id)
        result = await self.db.execute(
            select(MarketplaceInvoice)
            .where(
                MarketplaceInvoice.seller_id == seller_id,
                MarketplaceInvoice.status == InvoiceStatus.PAID.value,
                MarketplaceInvoice.paid_at.is_not(None),
                MarketplaceInvoice.paid_at <= hold_cutoff,
                MarketplaceInvoice.id.not_in(already_paid_out),
            )
            .order_by(MarketplaceInvoice.paid_at)
        )
        candidates = result.scalars().all()

        invoices: List[EligibleInvoice] = []
        for invoice in candidates:
            order = await self.db.get(MarketplaceOrder, invoice.order_id)
            if order is None or order.status != OrderStatus.CLOSED.value:
                continue

            if await self.has_open_dispute(invoice.order_id):
                continue

            invoices.append(EligibleInvoice(
                id=invoice.id,
                invoice_number=invoice.invoice_number,
                order_id=invoice.order_id,
                order_number=order.order_number or "",
                total_amount=invoice.total_amount,
                platform_fee_amount=invoice.platform_fee_amount or Decimal("0"),
                net_to_seller=(
                    invoice.net_to_seller if invoice.net_to_seller is not None
                    else invoice.total_amount
                ),
                currency=invoice.currency,
                paid_at=invoice.paid_at,
            ))

        total_gross = sum((inv.total_amount for inv in invoices), Decimal("0"))
        total_platform_fee = sum((inv.platform_fee_amount for inv in invoices), Decimal("0"))
        total_net = sum((inv.net_to_seller for inv in invoices), Decimal("0"))

        currency = settings.PAYOUT_CURRENCY
        min_amount = payout_settings.min_payout_amount
        if total_net < min_amount:
            return PayoutEligibility(
                eligible=False,
                invoices=invoices,
                total_gross=total_gross,
                total_platform_fee=total_platform_fee,
                total_net=total_net,
                currency=currency,
                reason=(
                    f"Total amount ({total_net:.2f} {currency}) is below minimum payout "
                    f"threshold ({format_amount(min_amount)} {currency})"
                ),
            )

        return PayoutEligibility(
            eligible=len(invoices) > 0,
            invoices=invoices,
            total_gross=total_gross,
            total_platform_fee=total_platform_fee,
            total_net=total_net,
            currency=currency,
        )

    async def has_open_dispute(self, order_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(MarketplaceDispute.id)
            .where(
                MarketplaceDispute.order_id == order_id,
                MarketplaceDispute.status.not_in(CLOSED_DISPUTE_STATUSES),
            )
            .limit(1)
        )
        return result.first() is not None

    async def get_verified_bank(self, seller_id: uuid.UUID) -> Optional[SellerBank]:
        result = await self.db.execute(
            select(SellerBank)
            .where(
                SellerBank.seller_id == seller_id,
                SellerBank.verification_status == BANK_VERIFICATION_APPROVED,
            )
            .order_by(SellerBank.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ==================== Creation ====================

    async def create_payout(
        self,
        seller_id: uuid.UUID,
        period_start: date,
        period_end: date,
    ) -> PayoutResult:
        """
        Create a pending payout with one line item per eligible invoice.

        Payout, line items and the PAYOUT_CREATED event are committed
        together. A payout number collision is retried with a fresh number;
        an invoice already claimed by a concurrent payout is reported back
        as a business failure.
        """
        seller_bank = await self.get_verified_bank(seller_id)
        if not seller_bank:
            return PayoutResult(success=False, error=NO_VERIFIED_BANK)

        eligibility = await self.calculate_eligible_payouts(seller_id)
        if not eligibility.eligible:
            return PayoutResult(success=False, error=eligibility.reason or NO_ELIGIBLE_INVOICES)

        bank_name = seller_bank.bank_name or ""
        account_holder = seller_bank.account_holder_name or ""
        iban_masked = mask_iban(seller_bank.iban)

        number_service = PayoutNumberService(self.db)
        max_attempts = max(1, settings.PAYOUT_NUMBER_MAX_RETRIES)

        for attempt in range(1, max_attempts + 1):
            payout_number = await number_service.get_next_number()
            try:
                payout = await self._persist_payout(
                    seller_id=seller_id,
                    payout_number=payout_number,
                    period_start=period_start,
                    period_end=period_end,
                    eligibility=eligibility,
                    bank_name=bank_name,
                    account_holder=account_holder,
                    iban_masked=iban_masked,
                )
            except IntegrityError as e:
                await self.db.rollback()
                message = str(e.orig)
                if any(marker in message for marker in _INVOICE_CONFLICT_MARKERS):
                    logger.warning(f"Invoice already claimed while creating payout for seller {seller_id}")
                    return PayoutResult(success=False, error=ELIGIBILITY_CHANGED)
                if attempt < max_attempts and any(m in message for m in _NUMBER_CONFLICT_MARKERS):
                    logger.warning(
                        f"Payout number {payout_number} already taken, retrying "
                        f"({attempt}/{max_attempts})"
                    )
                    continue
                raise
            except Exception:
                await self.db.rollback()
                raise

            logger.info(
                f"Created payout {payout.payout_number} for seller {seller_id}: "
                f"{len(eligibility.invoices)} invoices, net {payout.net_amount} {payout.currency}"
            )
            return PayoutResult(success=True, payout=SellerPayoutResponse.model_validate(payout))

        # Loop always returns or raises
        raise RuntimeError("Payout creation retries exhausted")

    async def _persist_payout(
        self,
        seller_id: uuid.UUID,
        payout_number: str,
        period_start: date,
        period_end: date,
        eligibility: PayoutEligibility,
        bank_name: str,
        account_holder: str,
        iban_masked: str,
    ) -> SellerPayout:
        payout = SellerPayout(
            id=uuid.uuid4(),
            payout_number=payout_number,
            seller_id=seller_id,
            period_start=period_start,
            period_end=period_end,
            gross_amount=eligibility.total_gross,
            platform_fee_total=eligibility.total_platform_fee,
            net_amount=eligibility.total_net,
            currency=eligibility.currency,
            status=PayoutStatus.PENDING.value,
            bank_name=bank_name,
            account_holder=account_holder,
            iban_masked=iban_masked,
        )
        self.db.add(payout)
        await self.db.flush()

        for invoice in eligibility.invoices:
            self.db.add(PayoutLineItem(
                payout_id=payout.id,
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                order_id=invoice.order_id,
                order_number=invoice.order_number,
                invoice_total=invoice.total_amount,
                platform_fee=invoice.platform_fee_amount,
                net_amount=invoice.net_to_seller,
                currency=invoice.currency,
                invoice_status=InvoiceStatus.PAID.value,
                paid_at=invoice.paid_at,
            ))
        await self.db.flush()

        await self.events.log_payout_created(
            payout_id=payout.id,
            invoice_count=len(eligibility.invoices),
            total_net=eligibility.total_net,
        )

        await self.db.commit()
        await self.db.refresh(payout)
        return payout

    # ==================== Batch ====================

    async def get_batch_candidate_sellers(self) -> List[uuid.UUID]:
        """Sellers with auto payout enabled or an approved bank account, sorted."""
        auto_result = await self.db.execute(
            select(SellerPayoutSettings.seller_id)
            .where(SellerPayoutSettings.auto_payout_enabled == True)  # noqa: E712
        )
        bank_result = await self.db.execute(
            select(SellerBank.seller_id)
            .where(SellerBank.verification_status == BANK_VERIFICATION_APPROVED)
            .distinct()
        )
        seller_ids = set(auto_result.scalars().all()) | set(bank_result.scalars().all())
        return sorted(seller_ids, key=str)

    async def create_batch_payouts(self, payout_date: date) -> BatchPayoutResult:
        """
        Create payouts for every candidate seller.

        Each seller runs inside its own try/except: a failure is recorded
        as "Seller <id>: <message>" and the loop moves on.
        """
        result = BatchPayoutResult()
        seller_ids = await self.get_batch_candidate_sellers()
        logger.info(f"Starting payout batch for {payout_date}: {len(seller_ids)} candidate sellers")

        for seller_id in seller_ids:
            try:
                eligibility = await self.calculate_eligible_payouts(seller_id)
                if not eligibility.eligible:
                    result.skipped += 1
                    continue

                # Settings may have changed since the candidate query
                payout_settings = await self.settings_service.get_payout_settings(seller_id)
                if not payout_settings.auto_payout_enabled:
                    result.skipped += 1
                    continue

                period_end = payout_date
                period_start = payout_date - timedelta(days=settings.PAYOUT_BATCH_PERIOD_DAYS)

                outcome = await self.create_payout(seller_id, period_start, period_end)
                if outcome.success:
                    result.created += 1
                else:
                    result.errors.append(f"Seller {seller_id}: {outcome.error}")
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Batch payout failed for seller {seller_id}: {e}")
                result.errors.append(f"Seller {seller_id}: {e}")

        logger.info(
            f"Payout batch for {payout_date} done: created={result.created}, "
            f"skipped={result.skipped}, errors={len(result.errors)}"
        )
        return result

    # ==================== Lifecycle ====================

    async def get_payout(self, payout_id: uuid.UUID) -> Optional[SellerPayout]:
        """Re-read a payout from the database, bypassing the identity map."""
        return await self.db.get(SellerPayout, payout_id, populate_existing=True)

    async def _commit_transition(self, payout: SellerPayout, from_status: str) -> PayoutResult:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(payout)
        logger.info(f"Payout {payout.payout_number}: {from_status} -> {payout.status}")
        return PayoutResult(success=True, payout=SellerPayoutResponse.model_validate(payout))

    async def approve_payout(self, payout_id: uuid.UUID, admin_id: uuid.UUID) -> PayoutResult:
        """Approve a pending payout (pending -> processing)."""
        payout = await self.get_payout(payout_id)
        if not payout:
            return PayoutResult(success=False, error=PAYOUT_NOT_FOUND)

        if payout.status != PayoutStatus.PENDING.value:
            return PayoutResult(success=False, error=f"Cannot approve payout with status: {payout.status}")

        from_status = payout.status
        try:
            payout.status = PayoutStatus.PROCESSING.value
            if payout.initiated_at is None:
                payout.initiated_at = utcnow()
            if payout.initiated_by is None:
                payout.initiated_by = admin_id
            await self.events.log(
                payout_id=payout.id,
                event_type=PayoutEventType.PAYOUT_APPROVED,
                from_status=from_status,
                to_status=PayoutStatus.PROCESSING,
                actor_id=admin_id,
            )
        except Exception:
            await self.db.rollback()
            raise
        return await self._commit_transition(payout, from_status)

    async def process_payout(self, payout_id: uuid.UUID, admin_id: uuid.UUID) -> PayoutResult:
        """Start the bank transfer (-> processing), keeping any earlier initiation stamp."""
        payout = await self.get_payout(payout_id)
        if not payout:
            return PayoutResult(success=False, error=PAYOUT_NOT_FOUND)

        if not is_valid_transition(payout.status, PayoutStatus.PROCESSING):
            return PayoutResult(success=False, error=f"Cannot process payout with status: {payout.status}")

        from_status = payout.status
        try:
            payout.status = PayoutStatus.PROCESSING.value
            payout.initiated_at = payout.initiated_at or utcnow()
            payout.initiated_by = payout.initiated_by or admin_id
            await self.events.log(
                payout_id=payout.id,
                event_type=PayoutEventType.PAYOUT_PROCESSING,
                from_status=from_status,
                to_status=PayoutStatus.PROCESSING,
                actor_id=admin_id,
            )
        except Exception:
            await self.db.rollback()
            raise
        return await self._commit_transition(payout, from_status)

    async def settle_payout(
        self,
        payout_id: uuid.UUID,
        bank_reference: str,
        admin_id: Optional[uuid.UUID] = None,
    ) -> PayoutResult:
        """Record bank confirmation. Only a processing payout can settle."""
        payout = await self.get_payout(payout_id)
        if not payout:
            return PayoutResult(success=False, error=PAYOUT_NOT_FOUND)

        if payout.status != PayoutStatus.PROCESSING.value:
            return PayoutResult(success=False, error=f"Cannot settle payout with status: {payout.status}")

        from_status = payout.status
        now = utcnow()
        try:
            payout.status = PayoutStatus.SETTLED.value
            payout.settled_at = now
            payout.bank_confirmation_date = now
            payout.bank_reference = bank_reference
            await self.events.log_payout_settled(
                payout_id=payout.id,
                from_status=from_status,
                bank_reference=bank_reference,
                actor_id=admin_id,
            )
        except Exception:
            await self.db.rollback()
            raise
        return await self._commit_transition(payout, from_status)

    async def fail_payout(
        self,
        payout_id: uuid.UUID,
        reason: str,
        admin_id: Optional[uuid.UUID] = None,
    ) -> PayoutResult:
        """Mark a payout as failed. Accepted from every status except settled."""
        payout = await self.get_payout(payout_id)
        if not payout:
            return PayoutResult(success=False, error=PAYOUT_NOT_FOUND)

        if payout.status == PayoutStatus.SETTLED.value:
            return PayoutResult(success=False, error=f"Cannot fail payout with status: {payout.status}")

        from_status = payout.status
        try:
            payout.status = PayoutStatus.FAILED.value
            payout.failed_at = utcnow()
            payout.failure_reason = reason
            await self.events.log_payout_failed(
                payout_id=payout.id,
                from_status=from_status,
                reason=reason,
                actor_id=admin_id,
            )
        except Exception:
            await self.db.rollback()
            raise
        return await self._commit_transition(payout, from_status)

    async def hold_payout(
        self,
        payout_id: uuid.UUID,
        reason: str,
        hold_until: Optional[datetime] = None,
        admin_id: Optional[uuid.UUID] = None,
    ) -> PayoutResult:
        """Put a payout on hold for review. A held payout can be re-held with a new reason."""
        payout = await self.get_payout(payout_id)
        if not payout:
            return PayoutResult(success=False, error=PAYOUT_NOT_FOUND)

        if payout.status == PayoutStatus.SETTLED.value:
            return PayoutResult(success=False, error=f"Cannot hold payout with status: {payout.status}")

        from_status = payout.status
        try:
            payout.status = PayoutStatus.ON_HOLD.value
            payout.hold_reason = reason
            payout.hold_until = hold_until
            await self.events.log_payout_held(
                payout_id=payout.id,
                from_status=from_status,
                reason=reason,
                hold_until=hold_until,
                actor_id=admin_id,
            )
        except Exception:
            await self.db.rollback()
            raise
        return await self._commit_transition(payout, from_status)

    async def requeue_payout(
        self,
        payout_id: uuid.UUID,
        admin_id: Optional[uuid.UUID] = None,
    ) -> PayoutResult:
        """Send a held or failed payout back to pending."""
        payout = await self.get_payout(payout_id)
        if not payout:
            return PayoutResult(success=False, error=PAYOUT_NOT_FOUND)

        if not is_valid_transition(payout.status, PayoutStatus.PENDING):
            return PayoutResult(success=False, error=f"Cannot requeue payout with status: {payout.status}")

        from_status = payout.status
        previous_reason = (
            payout.hold_reason if from_status == PayoutStatus.ON_HOLD.value
            else payout.failure_reason
        )
        try:
            payout.status = PayoutStatus.PENDING.value
            payout.hold_reason = None
            payout.hold_until = None
            await self.events.log_payout_requeued(
                payout_id=payout.id,
                from_status=from_status,
                previous_reason=previous_reason,
                actor_id=admin_id,
            )
        except Exception:
            await self.db.rollback()
            raise
        return await self._commit_transition(payout, from_status)
