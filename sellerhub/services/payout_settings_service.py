"""Per-seller payout settings with lazy default creation."""
import logging
import uuid
from typing import Any, Dict, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sellerhub.config import settings
from sellerhub.core.enum_utils import get_enum_value
from sellerhub.models.payout import SellerPayoutSettings, PayoutFrequency
from sellerhub.schemas.payout import PayoutSettingsUpdate

logger = logging.getLogger(__name__)


class PayoutSettingsService:
    """Settings store. Callers never see a seller without settings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_settings(self, seller_id: uuid.UUID) -> Optional[SellerPayoutSettings]:
        result = await self.db.execute(
            select(SellerPayoutSettings).where(SellerPayoutSettings.seller_id == seller_id)
        )
        return result.scalar_one_or_none()

    async def get_payout_settings(self, seller_id: uuid.UUID) -> SellerPayoutSettings:
        """Fetch the seller's settings, creating and persisting defaults if absent."""
        payout_settings = await self._find_settings(seller_id)
        if payout_settings:
            return payout_settings

        payout_settings = SellerPayoutSettings(
            seller_id=seller_id,
            payout_frequency=PayoutFrequency.WEEKLY.value,
            payout_day=1,
            min_payout_amount=settings.DEFAULT_MIN_PAYOUT_AMOUNT,
            dispute_hold_enabled=True,
            hold_period_days=settings.DEFAULT_HOLD_PERIOD_DAYS,
            auto_payout_enabled=False,
        )
        self.db.add(payout_settings)
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request created the row first
            await self.db.rollback()
            logger.info(f"Payout settings for seller {seller_id} created concurrently, re-reading")
            return await self._find_settings(seller_id)
        await self.db.refresh(payout_settings)

        logger.info(f"Created default payout settings for seller {seller_id}")
        return payout_settings

    async def update_payout_settings(
        self,
        seller_id: uuid.UUID,
        patch: Union[PayoutSettingsUpdate, Dict[str, Any]],
    ) -> SellerPayoutSettings:
        """Apply a partial update; only fields present in the patch change."""
        payout_settings = await self.get_payout_settings(seller_id)

        if isinstance(patch, PayoutSettingsUpdate):
            update_data = patch.model_dump(exclude_unset=True)
        else:
            update_data = dict(patch)

        for field, value in update_data.items():
            setattr(payout_settings, field, get_enum_value(value) if field == "payout_frequency" else value)

        await self.db.commit()
        await self.db.refresh(payout_settings)

        logger.info(f"Updated payout settings for seller {seller_id}: {sorted(update_data)}")
        return payout_settings
