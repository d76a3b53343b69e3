"""Seller payout models.

Supports:
- Per-seller payout settings (frequency, threshold, hold period)
- Payout batches covering one or more paid invoices
- Immutable line items linking a payout to each invoice it settles
- Append-only event log for every lifecycle transition
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, Date, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerhub.database import Base
from sellerhub.db_types import UUIDType, JSONType, MoneyType


class PayoutStatus(str, Enum):
    """Payout lifecycle status."""
    PENDING = "pending"             # Created, awaiting admin approval
    PROCESSING = "processing"       # Bank transfer initiated
    SETTLED = "settled"             # Confirmed by bank (terminal)
    ON_HOLD = "on_hold"             # Held for review/dispute
    FAILED = "failed"               # Transfer failed or rejected


class PayoutFrequency(str, Enum):
    """How often a seller is paid out."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ActorType(str, Enum):
    """Who caused a payout event."""
    SELLER = "seller"
    SYSTEM = "system"
    ADMIN = "admin"


class PayoutEventType(str, Enum):
    """Audit event types written to payout_events."""
    PAYOUT_CREATED = "PAYOUT_CREATED"
    PAYOUT_APPROVED = "PAYOUT_APPROVED"
    PAYOUT_PROCESSING = "PAYOUT_PROCESSING"
    PAYOUT_SETTLED = "PAYOUT_SETTLED"
    PAYOUT_FAILED = "PAYOUT_FAILED"
    PAYOUT_ON_HOLD = "PAYOUT_ON_HOLD"
    PAYOUT_REQUEUED = "PAYOUT_REQUEUED"


class SellerPayoutSettings(Base):
    """
    Payout configuration for a seller.
    Created lazily with defaults on first access; never deleted.
    """
    __tablename__ = "seller_payout_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        unique=True,
        nullable=False,
        index=True
    )

    # Schedule
    payout_frequency: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="weekly",
        comment="daily, weekly, biweekly, monthly"
    )
    payout_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Weekday (0=Sunday) for weekly/biweekly, day of month for monthly"
    )

    # Eligibility Rules
    min_payout_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        default=Decimal("100")
    )
    dispute_hold_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    hold_period_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=7,
        comment="Days after invoice payment before funds are payable"
    )
    auto_payout_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<SellerPayoutSettings(seller='{self.seller_id}', frequency='{self.payout_frequency}')>"


class SellerPayout(Base):
    """
    Payout batch for a single seller.
    Amounts and bank details are snapshots taken at creation time;
    only status and lifecycle fields change afterwards.
    """
    __tablename__ = "seller_payouts"
    __table_args__ = (
        Index("ix_seller_payouts_seller_status", "seller_id", "status"),
        Index("ix_seller_payouts_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Payout Identification
    payout_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="PAY-OUT-YYYY-NNNN"
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    # Period
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    # Totals
    gross_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    platform_fee_total: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    net_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        default=Decimal("0"),
        comment="Always equals the sum of line item net amounts"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")

    # Status
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="pending"
    )

    # Bank Snapshot
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    account_holder: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    iban_masked: Mapped[str] = mapped_column(String(34), nullable=False, default="")

    # Lifecycle
    initiated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    initiated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    bank_reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Bank transfer reference / UTR"
    )
    bank_confirmation_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hold_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hold_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    line_items: Mapped[List["PayoutLineItem"]] = relationship(
        "PayoutLineItem",
        back_populates="payout",
        order_by="PayoutLineItem.paid_at"
    )
    events: Mapped[List["PayoutEvent"]] = relationship(
        "PayoutEvent",
        back_populates="payout",
        order_by="PayoutEvent.created_at.desc()"
    )

    def __repr__(self) -> str:
        return f"<SellerPayout(number='{self.payout_number}', status='{self.status}')>"


class PayoutLineItem(Base):
    """
    One invoice settled by a payout.
    Snapshot of invoice/order identifiers and amounts; never updated.
    An invoice can appear in at most one line item across all payouts.
    """
    __tablename__ = "payout_line_items"
    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_payout_line_items_invoice"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    payout_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("seller_payouts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Source References
    invoice_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Amounts
    invoice_total: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    net_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")

    invoice_status: Mapped[str] = mapped_column(String(30), nullable=False, default="paid")
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    payout: Mapped["SellerPayout"] = relationship(
        "SellerPayout",
        back_populates="line_items"
    )

    def __repr__(self) -> str:
        return f"<PayoutLineItem(invoice='{self.invoice_number}', net={self.net_amount})>"


class PayoutEvent(Base):
    """
    Append-only audit trail for payouts.
    actor_id is NULL for system-initiated events.
    """
    __tablename__ = "payout_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    payout_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("seller_payouts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    actor_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="system",
        comment="seller, system, admin"
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    to_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    payout: Mapped["SellerPayout"] = relationship(
        "SellerPayout",
        back_populates="events"
    )

    def __repr__(self) -> str:
        return f"<PayoutEvent(type='{self.event_type}', {self.from_status} -> {self.to_status})>"
