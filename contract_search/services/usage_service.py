import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException

from ..core.config import Config
from ..schemas.account import SearchLimitInfo
from .supabase_service import get_client, require_user_profile


logger = logging.getLogger(__name__)

TABLE = 'search_usage'
SEARCH_TYPE = 'contract_search'


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def is_pro(profile: dict[str, Any]) -> bool:
    return profile.get('subscription_status') == 'pro'


def count_searches_since(user_id: str, since: datetime) -> int:
    try:
        result = (
            get_client()
            .table(TABLE)
            .select('id', count='exact')
            .eq('user_id', user_id)
            .gte('created_at', since.isoformat())
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to count searches for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch search usage")
    if result.count is not None:
        return result.count
    return len(result.data or [])


def get_search_limit_info(user_id: str, profile: Optional[dict[str, Any]] = None,
                          now: Optional[datetime] = None) -> SearchLimitInfo:
    profile = profile or require_user_profile(user_id)
    if is_pro(profile):
        return SearchLimitInfo(can_search=True, remaining=None, limit_count=None, is_pro=True)

    limit = Config.FREE_SEARCH_LIMIT
    used = count_searches_since(user_id, start_of_month(now))
    remaining = max(0, limit - used)
    return SearchLimitInfo(can_search=remaining > 0, remaining=remaining, limit_count=limit, is_pro=False)


def ensure_can_search(user_id: str, profile: Optional[dict[str, Any]] = None) -> SearchLimitInfo:
    info = get_search_limit_info(user_id, profile)
    if not info.can_search:
        logger.info(f"Search limit reached for user {user_id}")
        raise HTTPException(
            status_code=402,
            detail=f"Search limit reached. Free plans include {info.limit_count} searches per month.",
        )
    return info


def record_search(user_id: str, query: Optional[str], results_count: int) -> None:
    try:
        get_client().table(TABLE).insert({
            'user_id': user_id,
            'search_type': SEARCH_TYPE,
            'search_query': query or '',
            'results_count': results_count,
        }).execute()
    except Exception as e:
        logger.error(f"Failed to record search usage for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to record search usage")


def get_search_history(user_id: str, limit: int = 20) -> list[dict[str, Any]]:
    try:
        result = (
            get_client()
            .table(TABLE)
            .select('id, search_query, results_count, created_at')
            .eq('user_id', user_id)
            .order('created_at', desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to fetch search history for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch search history")
    return result.data or []
