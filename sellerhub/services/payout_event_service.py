from typing import Optional, Dict, Any, Union
import uuid

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sellerhub.core.enum_utils import get_enum_value
from sellerhub.models.payout import PayoutEvent, PayoutEventType, ActorType
from sellerhub.schemas.payout import (
    PayoutCreatedMetadata,
    PayoutSettledMetadata,
    PayoutFailedMetadata,
    PayoutHeldMetadata,
    PayoutRequeuedMetadata,
)


class PayoutEventService:
    """
    Writes the append-only payout audit trail.

    Events are added to the caller's session and flushed; committing is the
    caller's job so the event lands in the same transaction as the change it
    records.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        payout_id: uuid.UUID,
        event_type: Union[PayoutEventType, str],
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
        metadata: Optional[Union[BaseModel, Dict[str, Any]]] = None,
    ) -> PayoutEvent:
        """
        Create a payout event.

        Args:
            payout_id: Payout the event belongs to
            event_type: One of PayoutEventType
            from_status: Status before the transition (None on creation)
            to_status: Status after the transition
            actor_id: Admin who caused the event; None means system
            metadata: Event-specific payload, serialized to JSON

        Returns:
            The created PayoutEvent
        """
        if isinstance(metadata, BaseModel):
            metadata = metadata.model_dump(mode="json")

        event = PayoutEvent(
            payout_id=payout_id,
            event_type=get_enum_value(event_type),
            actor_id=actor_id,
            actor_type=ActorType.ADMIN.value if actor_id else ActorType.SYSTEM.value,
            from_status=get_enum_value(from_status),
            to_status=get_enum_value(to_status),
            event_metadata=metadata,
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def log_payout_created(
        self,
        payout_id: uuid.UUID,
        invoice_count: int,
        total_net,
    ) -> PayoutEvent:
        """Log payout creation (always system-initiated)."""
        return await self.log(
            payout_id=payout_id,
            event_type=PayoutEventType.PAYOUT_CREATED,
            to_status="pending",
            metadata=PayoutCreatedMetadata(invoice_count=invoice_count, total_net=total_net),
        )

    async def log_payout_settled(
        self,
        payout_id: uuid.UUID,
        from_status: str,
        bank_reference: str,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayoutEvent:
        """Log bank confirmation of a payout."""
        return await self.log(
            payout_id=payout_id,
            event_type=PayoutEventType.PAYOUT_SETTLED,
            from_status=from_status,
            to_status="settled",
            actor_id=actor_id,
            metadata=PayoutSettledMetadata(bank_reference=bank_reference),
        )

    async def log_payout_failed(
        self,
        payout_id: uuid.UUID,
        from_status: str,
        reason: str,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayoutEvent:
        """Log payout failure."""
        return await self.log(
            payout_id=payout_id,
            event_type=PayoutEventType.PAYOUT_FAILED,
            from_status=from_status,
            to_status="failed",
            actor_id=actor_id,
            metadata=PayoutFailedMetadata(reason=reason),
        )

    async def log_payout_held(
        self,
        payout_id: uuid.UUID,
        from_status: str,
        reason: str,
        hold_until=None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayoutEvent:
        """Log a payout being put on hold."""
        return await self.log(
            payout_id=payout_id,
            event_type=PayoutEventType.PAYOUT_ON_HOLD,
            from_status=from_status,
            to_status="on_hold",
            actor_id=actor_id,
            metadata=PayoutHeldMetadata(reason=reason, hold_until=hold_until),
        )

    async def log_payout_requeued(
        self,
        payout_id: uuid.UUID,
        from_status: str,
        previous_reason: Optional[str],
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayoutEvent:
        """Log a held or failed payout going back to pending."""
        return await self.log(
            payout_id=payout_id,
            event_type=PayoutEventType.PAYOUT_REQUEUED,
            from_status=from_status,
            to_status="pending",
            actor_id=actor_id,
            metadata=PayoutRequeuedMetadata(previous_reason=previous_reason),
        )
