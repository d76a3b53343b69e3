"""API endpoints for seller payouts (seller wallet + admin payout desk)."""
from typing import Optional, List
from uuid import UUID
from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from sellerhub.api.deps import DB, CurrentUser, AdminUser
from sellerhub.core.time_utils import utcnow
from sellerhub.models.payout import PayoutStatus
from sellerhub.schemas.payout import (
    PayoutFilters, PayoutResult, BatchPayoutResult,
    SellerPayoutResponse, SellerPayoutListItem, SellerPayoutListResponse, SellerPayoutDetailResponse,
    PayoutEventResponse, PayoutStatsResponse, FundsTimelineEntry, EnhancedEligibilityResponse,
    PayoutSettingsResponse, PayoutSettingsUpdate,
    SettlePayoutRequest, HoldPayoutRequest, FailPayoutRequest, BatchCreateRequest,
)
from sellerhub.services.seller_payout_service import SellerPayoutService, PAYOUT_NOT_FOUND
from sellerhub.services.payout_query_service import PayoutQueryService
from sellerhub.services.payout_settings_service import PayoutSettingsService

router = APIRouter()

TIMELINE_MAX_ENTRIES = 50


def _unwrap(result: PayoutResult) -> SellerPayoutResponse:
    """Turn a failed service result into an HTTP error."""
    if not result.success:
        if result.error == PAYOUT_NOT_FOUND:
            raise HTTPException(status_code=404, detail=result.error)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result.payout


# ==================== Seller ====================

@router.get("/seller", response_model=SellerPayoutListResponse)
async def list_seller_payouts(
    db: DB,
    current_user: CurrentUser,
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """List the current seller's payouts, newest first."""
    filters = PayoutFilters(
        status=payout_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return await PayoutQueryService(db).get_seller_payouts(current_user.id, filters)


@router.get("/seller/stats", response_model=PayoutStatsResponse)
async def get_seller_payout_stats(db: DB, current_user: CurrentUser):
    """Payout totals by status."""
    return await PayoutQueryService(db).get_payout_stats(current_user.id)


@router.get("/seller/eligible", response_model=EnhancedEligibilityResponse)
async def get_seller_eligibility(db: DB, current_user: CurrentUser):
    """Eligible amount, bank state and next payout date."""
    return await PayoutQueryService(db).get_enhanced_eligibility(current_user.id)


@router.get("/seller/timeline", response_model=List[FundsTimelineEntry])
async def get_seller_funds_timeline(
    db: DB,
    current_user: CurrentUser,
    limit: int = Query(10, ge=1),
):
    """Where each recent paid invoice stands on its way to a payout."""
    return await PayoutQueryService(db).get_funds_timeline(
        current_user.id, limit=min(limit, TIMELINE_MAX_ENTRIES)
    )


@router.get("/seller/settings", response_model=PayoutSettingsResponse)
async def get_seller_payout_settings(db: DB, current_user: CurrentUser):
    """Get payout settings (created with defaults on first access)."""
    return await PayoutSettingsService(db).get_payout_settings(current_user.id)


@router.put("/seller/settings", response_model=PayoutSettingsResponse)
async def update_seller_payout_settings(
    settings_in: PayoutSettingsUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Update payout settings. Only fields present in the body change."""
    return await PayoutSettingsService(db).update_payout_settings(current_user.id, settings_in)


@router.get("/seller/{payout_id}", response_model=SellerPayoutDetailResponse)
async def get_seller_payout(payout_id: UUID, db: DB, current_user: CurrentUser):
    """Get one payout with line items and history."""
    payout = await PayoutQueryService(db).get_payout_details(payout_id, current_user.id)
    if not payout:
        raise HTTPException(status_code=404, detail=PAYOUT_NOT_FOUND)
    return payout


@router.get("/seller/{payout_id}/history", response_model=List[PayoutEventResponse])
async def get_seller_payout_history(payout_id: UUID, db: DB, current_user: CurrentUser):
    """Get the event history of one payout, newest first."""
    return await PayoutQueryService(db).get_payout_history(payout_id, current_user.id)


# ==================== Admin ====================

@router.get("/admin/pending", response_model=List[SellerPayoutListItem])
async def list_pending_payouts(db: DB, admin: AdminUser):
    """Payouts awaiting approval, oldest first."""
    return await PayoutQueryService(db).get_pending_payouts()


@router.get("/admin/status/{payout_status}", response_model=List[SellerPayoutListItem])
async def list_payouts_by_status(payout_status: PayoutStatus, db: DB, admin: AdminUser):
    """Payouts in a given status, newest first."""
    return await PayoutQueryService(db).get_payouts_by_status(payout_status)


@router.post("/admin/batch-create", response_model=BatchPayoutResult)
async def create_batch_payouts(
    db: DB,
    admin: AdminUser,
    batch_in: Optional[BatchCreateRequest] = None,
):
    """Run the payout batch now."""
    payout_date = (batch_in.payout_date if batch_in else None) or utcnow().date()
    return await SellerPayoutService(db).create_batch_payouts(payout_date)


@router.post("/admin/{payout_id}/approve", response_model=SellerPayoutResponse)
async def approve_payout(payout_id: UUID, db: DB, admin: AdminUser):
    """Approve a pending payout."""
    return _unwrap(await SellerPayoutService(db).approve_payout(payout_id, admin.id))


@router.post("/admin/{payout_id}/process", response_model=SellerPayoutResponse)
async def process_payout(payout_id: UUID, db: DB, admin: AdminUser):
    """Move a payout to processing."""
    return _unwrap(await SellerPayoutService(db).process_payout(payout_id, admin.id))


@router.post("/admin/{payout_id}/settle", response_model=SellerPayoutResponse)
async def settle_payout(
    payout_id: UUID,
    settle_in: SettlePayoutRequest,
    db: DB,
    admin: AdminUser,
):
    """Record the bank confirmation for a processing payout."""
    return _unwrap(await SellerPayoutService(db).settle_payout(
        payout_id, settle_in.bank_reference, admin_id=admin.id
    ))


@router.post("/admin/{payout_id}/hold", response_model=SellerPayoutResponse)
async def hold_payout(
    payout_id: UUID,
    hold_in: HoldPayoutRequest,
    db: DB,
    admin: AdminUser,
):
    """Put a payout on hold."""
    return _unwrap(await SellerPayoutService(db).hold_payout(
        payout_id, hold_in.reason, hold_until=hold_in.hold_until, admin_id=admin.id
    ))


@router.post("/admin/{payout_id}/fail", response_model=SellerPayoutResponse)
async def fail_payout(
    payout_id: UUID,
    fail_in: FailPayoutRequest,
    db: DB,
    admin: AdminUser,
):
    """Mark a payout as failed."""
    return _unwrap(await SellerPayoutService(db).fail_payout(
        payout_id, fail_in.reason, admin_id=admin.id
    ))


@router.post("/admin/{payout_id}/requeue", response_model=SellerPayoutResponse)
async def requeue_payout(payout_id: UUID, db: DB, admin: AdminUser):
    """Send a held or failed payout back to pending."""
    return _unwrap(await SellerPayoutService(db).requeue_payout(payout_id, admin_id=admin.id))
