"""Pydantic schemas for the seller payout module."""
import datetime as dt
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from decimal import Decimal
from uuid import UUID
from pydantic import AliasChoices, BaseModel, Field

from sellerhub.schemas.base import (
    BaseResponseSchema, BaseUpdateSchema, OptionalUUID, OptionalDateTime,
)
from sellerhub.models.payout import PayoutStatus, PayoutFrequency


# ==================== Eligibility ====================

class EligibleInvoice(BaseModel):
    """A paid invoice that survived every eligibility filter."""
    id: UUID
    invoice_number: str
    order_id: UUID
    order_number: str = ""
    total_amount: Decimal
    platform_fee_amount: Decimal = Decimal("0")
    net_to_seller: Decimal
    currency: str
    paid_at: datetime


class PayoutEligibility(BaseModel):
    """Eligibility verdict with the invoices and totals it was computed from."""
    eligible: bool
    invoices: List[EligibleInvoice] = []
    total_gross: Decimal = Decimal("0")
    total_platform_fee: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    currency: str = "SAR"
    reason: Optional[str] = None


# ==================== Settings ====================

class PayoutSettingsResponse(BaseResponseSchema):
    """Response schema for SellerPayoutSettings."""
    id: UUID
    seller_id: UUID
    payout_frequency: str
    payout_day: int
    min_payout_amount: Decimal
    dispute_hold_enabled: bool
    hold_period_days: int
    auto_payout_enabled: bool
    created_at: datetime
    updated_at: datetime


class PayoutSettingsUpdate(BaseUpdateSchema):
    """Partial update of a seller's payout settings."""
    payout_frequency: Optional[PayoutFrequency] = None
    payout_day: Optional[int] = Field(None, ge=1, le=28)
    min_payout_amount: Optional[Decimal] = Field(None, gt=0)
    dispute_hold_enabled: Optional[bool] = None
    hold_period_days: Optional[int] = Field(None, ge=1, le=30)
    auto_payout_enabled: Optional[bool] = None


# ==================== Payout ====================

class SellerPayoutResponse(BaseResponseSchema):
    """Response schema for SellerPayout (without children)."""
    id: UUID
    payout_number: str
    seller_id: UUID
    period_start: date
    period_end: date
    gross_amount: Decimal
    platform_fee_total: Decimal
    net_amount: Decimal
    currency: str
    status: str
    bank_name: str
    account_holder: str
    iban_masked: str
    initiated_at: OptionalDateTime = None
    initiated_by: OptionalUUID = None
    settled_at: OptionalDateTime = None
    bank_reference: Optional[str] = None
    bank_confirmation_date: OptionalDateTime = None
    failed_at: OptionalDateTime = None
    failure_reason: Optional[str] = None
    hold_reason: Optional[str] = None
    hold_until: OptionalDateTime = None
    created_at: datetime
    updated_at: datetime


class PayoutLineItemResponse(BaseResponseSchema):
    """Response schema for PayoutLineItem."""
    id: UUID
    invoice_id: UUID
    invoice_number: str
    order_id: UUID
    order_number: str
    invoice_total: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    currency: str
    invoice_status: str
    paid_at: datetime


class PayoutEventResponse(BaseResponseSchema):
    """Response schema for PayoutEvent."""
    id: UUID
    payout_id: UUID
    event_type: str
    actor_id: OptionalUUID = None
    actor_type: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = Field(
        None,
        validation_alias=AliasChoices("event_metadata", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime


class SellerPayoutListItem(SellerPayoutResponse):
    """Payout row in a list, with its line item count."""
    line_item_count: int = 0


class SellerPayoutDetailResponse(SellerPayoutResponse):
    """Payout with line items and event history (newest first)."""
    line_items: List[PayoutLineItemResponse] = []
    events: List[PayoutEventResponse] = []


class PayoutResult(BaseModel):
    """Outcome of a create or lifecycle operation."""
    success: bool
    payout: Optional[SellerPayoutResponse] = None
    error: Optional[str] = None


class BatchPayoutResult(BaseModel):
    """Outcome of a batch run across sellers."""
    created: int = 0
    skipped: int = 0
    errors: List[str] = []


# ==================== Queries ====================

class PayoutFilters(BaseModel):
    """Seller payout list filters."""
    status: Optional[PayoutStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class SellerPayoutListResponse(BaseModel):
    """Paginated seller payouts."""
    items: List[SellerPayoutListItem]
    pagination: PaginationMeta


class NextPayout(BaseModel):
    amount: Decimal
    date: Optional[dt.date] = None


class PayoutStatsResponse(BaseModel):
    """Aggregate payout stats for a seller."""
    total_paid: Decimal
    pending_amount: Decimal
    payout_count: Dict[str, int]
    next_payout: Optional[NextPayout] = None
    currency: str = "SAR"


class FundsTimelineEntry(BaseModel):
    """Lifecycle view of a single paid invoice."""
    id: UUID
    order_id: UUID
    order_number: str
    amount: Decimal
    currency: str
    status: str  # order_completed, funds_held, eligible, paid
    date: datetime
    hold_end_date: datetime
    payout_id: OptionalUUID = None
    payout_number: Optional[str] = None


class EnhancedEligibilityResponse(BaseModel):
    """Eligibility plus bank state and the projected next payout date."""
    eligible_amount: Decimal
    eligible_invoices: int
    pending_amount: Decimal
    on_hold_amount: Decimal
    next_payout_date: date
    bank_verified: bool
    currency: str
    hold_period_days: int
    min_payout_amount: Decimal
    payout_schedule: str
    withdrawal_disabled_reason: Optional[str] = None


# ==================== Admin Requests ====================

class SettlePayoutRequest(BaseModel):
    bank_reference: str = Field(..., min_length=1, max_length=100)


class HoldPayoutRequest(BaseModel):
    reason: str = Field(..., min_length=5, max_length=500)
    hold_until: Optional[datetime] = None


class FailPayoutRequest(BaseModel):
    reason: str = Field(..., min_length=5, max_length=500)


class BatchCreateRequest(BaseModel):
    """Run the batch for a given date (defaults to today, UTC)."""
    payout_date: Optional[date] = None


# ==================== Event Metadata ====================
# Structured payloads per event type; serialized to JSON for storage.

class PayoutCreatedMetadata(BaseModel):
    invoice_count: int
    total_net: Decimal


class PayoutSettledMetadata(BaseModel):
    bank_reference: str


class PayoutFailedMetadata(BaseModel):
    reason: str


class PayoutHeldMetadata(BaseModel):
    reason: str
    hold_until: Optional[datetime] = None


class PayoutRequeuedMetadata(BaseModel):
    previous_reason: Optional[str] = None
