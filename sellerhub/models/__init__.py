from sellerhub.models.marketplace import (
    MarketplaceOrder,
    MarketplaceInvoice,
    MarketplaceDispute,
    SellerBank,
    InvoiceStatus,
    OrderStatus,
)
from sellerhub.models.payout import (
    SellerPayoutSettings,
    SellerPayout,
    PayoutLineItem,
    PayoutEvent,
    PayoutStatus,
    PayoutFrequency,
    ActorType,
    PayoutEventType,
)

__all__ = [
    "MarketplaceOrder",
    "MarketplaceInvoice",
    "MarketplaceDispute",
    "SellerBank",
    "InvoiceStatus",
    "OrderStatus",
    "SellerPayoutSettings",
    "SellerPayout",
    "PayoutLineItem",
    "PayoutEvent",
    "PayoutStatus",
    "PayoutFrequency",
    "ActorType",
    "PayoutEventType",
]
