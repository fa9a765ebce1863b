import logging
import re
from datetime import date
from typing import Optional

from fastapi import HTTPException


logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
MAX_SEARCH_LENGTH = 200


def is_uuid(value: Optional[str]) -> bool:
    return bool(value) and bool(UUID_PATTERN.match(value))


def validate_user_id(user_id: Optional[str]) -> None:
    if not is_uuid(user_id):
        raise HTTPException(status_code=400, detail="Invalid user ID format")


def validate_contract_id(contract_id: Optional[str]) -> None:
    if not contract_id or not ID_PATTERN.match(contract_id):
        raise HTTPException(status_code=400, detail="Invalid contract_id format")


def validate_search_text(search: Optional[str]) -> Optional[str]:
    if search is None:
        return None
    search = search.strip()
    if len(search) > MAX_SEARCH_LENGTH:
        raise HTTPException(status_code=400, detail=f"Search text too long. Maximum is {MAX_SEARCH_LENGTH} characters")
    return search or None


def validate_date_range(start: Optional[date], end: Optional[date]) -> None:
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="date_start must be on or before date_end")


def validate_redirect_path(path: Optional[str], default: str = "/dashboard") -> str:
    """Only same-site absolute paths are allowed as post-login redirects."""
    if not path or not path.startswith("/") or path.startswith("//") or "\\" in path:
        return default
    return path
