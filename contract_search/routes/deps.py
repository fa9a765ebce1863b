from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..services.auth_service import AuthUser, get_user_from_token


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        raise HTTPException(status_code=401, detail="Authorization header must be 'Bearer <token>'")
    return token.strip()


def get_current_user(token: Optional[str] = Depends(bearer_token)) -> AuthUser:
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    return get_user_from_token(token)


def get_optional_user(token: Optional[str] = Depends(bearer_token)) -> Optional[AuthUser]:
    """Anonymous callers get None; a token that is present but invalid is still rejected."""
    if not token:
        return None
    return get_user_from_token(token)
