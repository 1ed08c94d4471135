from fastapi import APIRouter, Depends

from laundry_service import tracking
from laundry_service.auth import get_current_user, staff_required
from laundry_service.schemas import AuthUser, Tracking, TrackingUpdate

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.get("/{order_id}", response_model=Tracking)
async def get_tracking(order_id: str, user: AuthUser = Depends(get_current_user)):
    return await tracking.get_tracking(order_id, user)


@router.patch("/{order_id}", response_model=Tracking)
async def update_tracking(order_id: str, body: TrackingUpdate, user: AuthUser = Depends(staff_required)):
    return await tracking.update_step(order_id, body, user)
