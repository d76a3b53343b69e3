"""
Shared pydantic bases for payout schemas.

Schemas validated straight from ORM rows (payouts, line items, events,
settings) inherit BaseResponseSchema. Settings patches inherit
BaseUpdateSchema so unknown keys such as seller_id are dropped instead of
being written through.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Read model built from an ORM instance.

    Usage:
        SellerPayoutResponse.model_validate(payout)
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """Partial update: every field optional, extra keys ignored."""
    model_config = ConfigDict(extra='ignore')


OptionalUUID = Optional[UUID]
OptionalDateTime = Optional[datetime]
