"""Primary API router definition."""

from fastapi import APIRouter

from . import coupons, mileage, redemptions, referrals, settlements

api_router = APIRouter()

api_router.include_router(redemptions.router)
api_router.include_router(mileage.router)
api_router.include_router(settlements.router)
api_router.include_router(coupons.router)
api_router.include_router(referrals.router)


@api_router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Basic health probe endpoint."""
    return {"status": "ok"}
