import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from ..core.config import Config
from ..core.validation import validate_redirect_path
from ..schemas.account import RefreshRequest, SessionTokens, SignInRequest, SignUpRequest, SignUpResponse
from ..services import auth_service
from .deps import bearer_token, get_current_user


logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])


def _redirect(path: str, **params: str) -> RedirectResponse:
    url = f"{Config.SITE_URL.rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=303)


def _login_error(error: str, message: str) -> RedirectResponse:
    return _redirect("/login", error=error, message=message)


@router.post("/api/auth/signup", response_model=SignUpResponse)
def sign_up(request: SignUpRequest):
    return auth_service.sign_up(request.email, request.password, request.name.strip())


@router.post("/api/auth/signin", response_model=SessionTokens)
def sign_in(request: SignInRequest):
    return auth_service.sign_in(request.email, request.password)


@router.post("/api/auth/refresh", response_model=SessionTokens)
def refresh(request: RefreshRequest):
    return auth_service.refresh_session(request.refresh_token)


@router.post("/api/auth/signout", dependencies=[Depends(get_current_user)])
def sign_out(token: str = Depends(bearer_token)):
    auth_service.sign_out(token)
    return {"signed_out": True}


@router.get("/auth/callback")
def auth_callback(
    code: Optional[str] = None,
    next: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
):
    """Exchange the one-time authorization code from a confirmation/OAuth link for a session."""
    if error:
        logger.error(f"OAuth error: {error} {error_description}")
        return _login_error(error, error_description or "Authentication failed")

    if not code:
        logger.error("No authorization code received")
        return _login_error("missing_code", "No authorization code received")

    try:
        response = auth_service.exchange_code_for_session(code)
    except Exception as e:
        logger.error(f"Error exchanging code for session: {e}")
        return _login_error("session_exchange_failed", str(e) or "Session exchange failed")

    user = getattr(response, "user", None)
    if user is None:
        logger.error("No user data received after session exchange")
        return _login_error("no_user_data", "Authentication failed - no user data received")

    try:
        auth_user = auth_service.AuthUser.from_provider(user)
        auth_service.create_user_profile(auth_user.id, auth_user.email, auth_user.display_name)
    except Exception as e:
        # The account exists either way; profile creation is retried on next callback
        logger.warning(f"Profile creation skipped for {user.id}: {e}")

    return _redirect(validate_redirect_path(next), message="Email confirmed successfully!")
