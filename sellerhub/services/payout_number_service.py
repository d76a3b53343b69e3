"""
Payout Number Generation

Format: PAY-OUT-{YEAR}-{SEQUENCE}
Example: PAY-OUT-2026-0001

- Sequence is scoped to the calendar year (the prefix changes every January)
- Padded to 4 digits; past 9999 the number grows to 5 digits
- Read-then-increment: uniqueness is enforced by the unique index on
  seller_payouts.payout_number and the creator retries on collision
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from sellerhub.models.payout import SellerPayout

logger = logging.getLogger(__name__)

PAYOUT_NUMBER_PREFIX = "PAY-OUT"
SEQUENCE_PADDING = 4


class PayoutNumberService:
    """Generates sequential, human-readable payout numbers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def year_prefix(year: int) -> str:
        return f"{PAYOUT_NUMBER_PREFIX}-{year}-"

    async def get_last_number(self, year: int) -> Optional[str]:
        """Highest payout number issued for the year, or None."""
        prefix = self.year_prefix(year)
        # Longer suffix first so 10000 sorts above 9999
        result = await self.db.execute(
            select(SellerPayout.payout_number)
            .where(SellerPayout.payout_number.like(f"{prefix}%"))
            .order_by(
                func.length(SellerPayout.payout_number).desc(),
                SellerPayout.payout_number.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_next_number(self, now: Optional[datetime] = None) -> str:
        """
        Get the next payout number for the current year.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            e.g. PAY-OUT-2026-0042
        """
        year = (now or datetime.now(timezone.utc)).year
        prefix = self.year_prefix(year)

        last_number = await self.get_last_number(year)
        next_seq = 1
        if last_number:
            try:
                next_seq = int(last_number[len(prefix):]) + 1
            except ValueError:
                logger.warning(f"Unparseable payout number {last_number}, restarting sequence")
                next_seq = 1

        return f"{prefix}{str(next_seq).zfill(SEQUENCE_PADDING)}"
