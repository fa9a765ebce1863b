import logging

from fastapi import APIRouter, Depends, Query

from ..schemas.account import (
    BillingSummary,
    CheckoutRequest,
    CheckoutResponse,
    ProfileUpdate,
    SearchHistoryEntry,
    SearchLimitInfo,
    UserProfile,
)
from ..services import billing_service, usage_service
from ..services.auth_service import AuthUser
from ..services.supabase_service import require_user_profile, update_user_profile
from .deps import get_current_user


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/account", tags=["account"])


@router.get("/profile", response_model=UserProfile)
def profile(user: AuthUser = Depends(get_current_user)):
    return require_user_profile(user.id)


@router.post("/profile", response_model=UserProfile)
def update_profile(update: ProfileUpdate, user: AuthUser = Depends(get_current_user)):
    require_user_profile(user.id)
    update_user_profile(user.id, {"full_name": update.full_name.strip()})
    return require_user_profile(user.id)


@router.get("/usage", response_model=SearchLimitInfo)
def usage(user: AuthUser = Depends(get_current_user)):
    return usage_service.get_search_limit_info(user.id)


@router.get("/history", response_model=list[SearchHistoryEntry])
def history(limit: int = Query(default=20, ge=1, le=100), user: AuthUser = Depends(get_current_user)):
    return usage_service.get_search_history(user.id, limit)


@router.get("/billing", response_model=BillingSummary)
def billing(user: AuthUser = Depends(get_current_user)):
    return billing_service.get_billing_summary(require_user_profile(user.id))


@router.post("/billing/checkout", response_model=CheckoutResponse)
def checkout(request: CheckoutRequest, user: AuthUser = Depends(get_current_user)):
    profile = require_user_profile(user.id)
    logger.info(f"Creating {request.plan} checkout session for {user.id}")
    return billing_service.create_checkout_session(profile, request.plan)
