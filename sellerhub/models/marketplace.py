"""Marketplace entities consumed by the payout subsystem.

Orders, invoices, disputes and seller bank accounts are owned by other parts
of the seller workspace. Payout code only reads them:
- Invoice PAID with paid_at set is the source of payable funds
- Order CLOSED is required before its invoice can be paid out
- Any dispute not RESOLVED/CLOSED/REJECTED blocks the order's invoice
- A bank account with APPROVED verification is required to create a payout
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerhub.database import Base
from sellerhub.db_types import UUIDType, MoneyType


class InvoiceStatus(str, Enum):
    """Marketplace invoice status."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    """Marketplace order status (subset relevant to payouts)."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CLOSED = "closed"
    CANCELLED = "cancelled"


# Dispute statuses that no longer block a payout
CLOSED_DISPUTE_STATUSES = ("resolved", "closed", "rejected")

BANK_VERIFICATION_APPROVED = "approved"


class MarketplaceOrder(Base):
    """Buyer order fulfilled by a seller."""
    __tablename__ = "marketplace_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    seller_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    invoices: Mapped[List["MarketplaceInvoice"]] = relationship(
        "MarketplaceInvoice",
        back_populates="order"
    )

    def __repr__(self) -> str:
        return f"<MarketplaceOrder(number='{self.order_number}', status='{self.status}')>"


class MarketplaceInvoice(Base):
    """Invoice issued to the buyer for an order; PAID invoices fund payouts."""
    __tablename__ = "marketplace_invoices"
    __table_args__ = (
        Index("ix_marketplace_invoices_seller_status", "seller_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    seller_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("marketplace_orders.id"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Amounts
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, default=Decimal("0"))
    platform_fee_amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    net_to_seller: Mapped[Optional[Decimal]] = mapped_column(
        MoneyType,
        nullable=True,
        comment="Total minus platform fee; falls back to total_amount when unset"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    order: Mapped["MarketplaceOrder"] = relationship(
        "MarketplaceOrder",
        back_populates="invoices"
    )

    def __repr__(self) -> str:
        return f"<MarketplaceInvoice(number='{self.invoice_number}', status='{self.status}')>"


class MarketplaceDispute(Base):
    """Buyer dispute raised against an order."""
    __tablename__ = "marketplace_disputes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("marketplace_orders.id"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="open")
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class SellerBank(Base):
    """Seller bank account used as the payout destination."""
    __tablename__ = "seller_banks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    account_holder_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    iban: Mapped[Optional[str]] = mapped_column(String(34), nullable=True)
    verification_status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="pending",
        comment="pending, approved, rejected"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
