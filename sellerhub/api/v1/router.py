from fastapi import APIRouter

from sellerhub.api.v1.endpoints import payouts


api_router = APIRouter(prefix="/api/v1")

# Seller wallet (/payouts/seller/...) and admin payout desk (/payouts/admin/...)
api_router.include_router(payouts.router, prefix="/payouts", tags=["Seller Payouts"])
