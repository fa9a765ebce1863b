import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import HTTPException

from ..core.config import Config
from ..core.validation import validate_user_id
from ..schemas.account import SessionTokens, SignUpResponse, UserProfile
from . import billing_service
from .supabase_service import get_anon_client, get_client, get_user_profile, update_user_profile


logger = logging.getLogger(__name__)


@dataclass
class AuthUser:
    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.metadata.get('name') or self.email.split('@')[0]

    @classmethod
    def from_provider(cls, user) -> "AuthUser":
        return cls(id=str(user.id), email=user.email or '', metadata=dict(user.user_metadata or {}))


class SessionListener:
    """Tracks the signed-in user and profile from auth state change notifications.

    Register with ``client.auth.on_auth_state_change(listener)``. Profile
    lookups that fail are logged and never interrupt the auth flow.
    """

    def __init__(self):
        self.user: Optional[AuthUser] = None
        self.profile: Optional[dict[str, Any]] = None

    def __call__(self, event: str, session) -> None:
        logger.debug(f"Auth state change: {event} ({'session exists' if session else 'no session'})")

        if event == 'TOKEN_REFRESHED':
            logger.info("Token refreshed successfully")
        elif event == 'SIGNED_OUT':
            self.user = None
            self.profile = None
            return

        user = getattr(session, 'user', None) if session else None
        if user is None:
            self.user = None
            self.profile = None
            return

        self.user = AuthUser.from_provider(user)
        try:
            self.profile = get_user_profile(self.user.id)
        except Exception as e:
            logger.error(f"Failed to load user profile for {self.user.id}: {e}")


def get_user_from_token(access_token: str) -> AuthUser:
    try:
        response = get_client().auth.get_user(access_token)
    except Exception as e:
        logger.info(f"Access token rejected by auth provider: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    if not response or not response.user:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return AuthUser.from_provider(response.user)


def create_user_profile(user_id: str, email: str, name: str) -> dict[str, Any]:
    """Create the users row for a new account and link a Stripe customer when possible."""
    validate_user_id(user_id)

    existing = get_user_profile(user_id)
    if existing:
        logger.debug(f"User profile already exists for {user_id}, skipping creation")
        return existing

    email = email.lower().strip()
    try:
        result = get_client().table('users').insert({
            'id': user_id,
            'email': email,
            'full_name': name.strip(),
            'subscription_status': 'free',
        }).execute()
    except Exception as e:
        logger.error(f"Failed to create user profile for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to create user profile")
    profile = result.data[0]

    # Billing can be linked later; a Stripe failure must not fail sign-up
    try:
        customer_id = billing_service.create_customer(
            email=email,
            name=name.strip(),
            metadata={'supabase_user_id': user_id, 'plan': 'free'},
        )
        update_user_profile(user_id, {
            'stripe_customer_id': customer_id,
            'stripe_subscription_id': None,
            'current_period_end': None,
        })
        profile = {**profile, 'stripe_customer_id': customer_id}
    except Exception as e:
        logger.warning(f"Stripe customer not linked for {user_id}: {e}")

    return profile


def _tokens(session, profile: Optional[dict[str, Any]] = None) -> SessionTokens:
    return SessionTokens(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        user_id=str(session.user.id),
        profile=UserProfile(**profile) if profile else None,
    )


def sign_up(email: str, password: str, name: str) -> SignUpResponse:
    client = get_anon_client()
    try:
        response = client.auth.sign_up({
            'email': email,
            'password': password,
            'options': {
                'data': {'name': name},
                'email_redirect_to': f"{Config.SITE_URL}/auth/callback",
            },
        })
    except Exception as e:
        logger.warning(f"Sign up failed for {email}: {e}")
        raise HTTPException(status_code=400, detail=str(e) or "Sign up failed")

    user = response.user
    if user is None:
        raise HTTPException(status_code=400, detail="Sign up failed")

    if response.session is None:
        # Email confirmation pending; the profile is created in the auth callback
        return SignUpResponse(user_id=str(user.id), confirmation_required=True)

    profile = create_user_profile(str(user.id), user.email or email, name)
    return SignUpResponse(user_id=str(user.id), confirmation_required=False,
                          session=_tokens(response.session, profile))


def sign_in(email: str, password: str) -> SessionTokens:
    client = get_anon_client()
    listener = SessionListener()
    subscription = client.auth.on_auth_state_change(listener)
    try:
        response = client.auth.sign_in_with_password({'email': email, 'password': password})
    except Exception as e:
        logger.info(f"Sign in failed for {email}: {e}")
        raise HTTPException(status_code=401, detail="Invalid login credentials")
    finally:
        subscription.unsubscribe()

    if response.session is None:
        raise HTTPException(status_code=401, detail="Invalid login credentials")
    profile = listener.profile
    if profile is None:
        profile = get_user_profile(str(response.session.user.id))
    return _tokens(response.session, profile)


def refresh_session(refresh_token: str) -> SessionTokens:
    client = get_anon_client()
    try:
        response = client.auth.refresh_session(refresh_token)
    except Exception as e:
        logger.info(f"Session refresh failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    if response.session is None:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    return _tokens(response.session)


def sign_out(access_token: str) -> None:
    try:
        get_client().auth.admin.sign_out(access_token)
    except Exception as e:
        logger.error(f"Error signing out: {e}")
        raise HTTPException(status_code=502, detail="Failed to sign out")


def exchange_code_for_session(code: str):
    """One-time exchange of an authorization code; returns the provider's auth response.

    Works with email links issued under the implicit or OTP flow only. A fresh
    anon client holds no PKCE code verifier, so PKCE codes are rejected.
    """
    return get_anon_client().auth.exchange_code_for_session({'auth_code': code})
