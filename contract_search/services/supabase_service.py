import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException
from supabase import create_client, Client

from ..core.config import Config


logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_client() -> Client:
    """Shared service-role client used for all table access."""
    global _client
    if _client is None:
        _client = create_client(Config.SUPABASE_URL, Config.SUPABASE_SERVICE_KEY)
    return _client


def get_anon_client() -> Client:
    """Fresh anon-key client for auth flows; it carries the caller's session, so it is never shared."""
    return create_client(Config.SUPABASE_URL, Config.SUPABASE_ANON_KEY)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ping() -> None:
    get_client().table('contracts').select('id').limit(1).execute()


def get_user_profile(user_id: str) -> Optional[dict[str, Any]]:
    try:
        result = (
            get_client()
            .table('users')
            .select('*')
            .eq('id', user_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Failed to fetch user profile {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch user profile")


def require_user_profile(user_id: str) -> dict[str, Any]:
    profile = get_user_profile(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail=f"User profile not found: {user_id}")
    return profile


def update_user_profile(user_id: str, updates: dict[str, Any]) -> list[dict[str, Any]]:
    try:
        result = get_client().table('users').update({
            **updates,
            'updated_at': utc_now_iso(),
        }).eq('id', user_id).execute()
        return result.data
    except Exception as e:
        logger.error(f"Failed to update user profile {user_id}: {e}")
        raise


def update_users_by_customer(customer_id: str, updates: dict[str, Any]) -> list[dict[str, Any]]:
    """Apply billing fields to the user row linked to a Stripe customer."""
    if not customer_id:
        raise ValueError("Stripe customer id is required")
    try:
        result = get_client().table('users').update({
            **updates,
            'updated_at': utc_now_iso(),
        }).eq('stripe_customer_id', customer_id).execute()
        if not result.data:
            logger.warning(f"No user linked to Stripe customer {customer_id}")
        return result.data
    except Exception as e:
        logger.error(f"Failed to update user for customer {customer_id}: {e}")
        raise
