from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


PlanTier = Literal["free", "pro"]
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SearchLimitInfo(BaseModel):
    can_search: bool
    remaining: Optional[int] = None
    limit_count: Optional[int] = None
    is_pro: bool


class SearchHistoryEntry(BaseModel):
    id: str
    search_query: str = ""
    results_count: int = 0
    created_at: Optional[datetime] = None


class UserProfile(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    subscription_status: PlanTier = "free"
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)


class SignUpRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=200)


class SignInRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    user_id: str
    profile: Optional[UserProfile] = None


class SignUpResponse(BaseModel):
    user_id: Optional[str] = None
    confirmation_required: bool
    session: Optional[SessionTokens] = None


class CheckoutRequest(BaseModel):
    plan: Literal["monthly", "yearly"] = "monthly"


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class BillingSummary(BaseModel):
    plan: PlanTier
    current_period_end: Optional[datetime] = None
    has_billing_account: bool
    usage: SearchLimitInfo
    payment_links: dict[str, str]

