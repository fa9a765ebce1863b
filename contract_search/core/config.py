import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables.

    Provides validated access to Supabase, Stripe and Anthropic settings.
    """

    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:3000")

    FREE_SEARCH_LIMIT: int = int(os.getenv("FREE_SEARCH_LIMIT", "10"))
    ALLOW_ANONYMOUS_SEARCH: bool = _env_bool("ALLOW_ANONYMOUS_SEARCH", True)
    SAVED_CONTRACTS_PRO_ONLY: bool = _env_bool("SAVED_CONTRACTS_PRO_ONLY", True)

    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_PRO_MONTHLY_PRICE_ID: str = os.getenv("STRIPE_PRO_MONTHLY_PRICE_ID", "price_1SB5Y8I8PNaNPVmz4WzNzujr")
    STRIPE_PRO_YEARLY_PRICE_ID: str = os.getenv("STRIPE_PRO_YEARLY_PRICE_ID", "price_1SB5Y7I8PNaNPVmz5GCOeIEm")
    STRIPE_PRO_MONTHLY_LINK: str = os.getenv("STRIPE_PRO_MONTHLY_LINK", "https://buy.stripe.com/8x2aEX108g2m7Ge6SN5wI02")
    STRIPE_PRO_YEARLY_LINK: str = os.getenv("STRIPE_PRO_YEARLY_LINK", "https://buy.stripe.com/7sY28raAIeYigcK1yt5wI03")

    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-20241022")
    ANTHROPIC_TIMEOUT_SECONDS: int = int(os.getenv("ANTHROPIC_TIMEOUT_SECONDS", "20"))
    QUERY_CACHE_TTL_SECONDS: int = int(os.getenv("QUERY_CACHE_TTL_SECONDS", "300"))

    CORS_ALLOWED_ORIGINS_ENV: str = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000")

    @staticmethod
    def allowed_origins(extra_origins: List[str] | None = None) -> List[str]:
        env_origins = [o.strip() for o in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
        site_url = os.getenv("SITE_URL", "").strip().rstrip("/")
        merged = env_origins + ([site_url] if site_url else [])
        if extra_origins:
            merged.extend(extra_origins)
        # Deduplicate while preserving order
        seen = set()
        result: List[str] = []
        for origin in merged:
            if origin not in seen:
                seen.add(origin)
                result.append(origin)
        return result

    @classmethod
    def pro_price_ids(cls) -> List[str]:
        return [p for p in (cls.STRIPE_PRO_MONTHLY_PRICE_ID, cls.STRIPE_PRO_YEARLY_PRICE_ID) if p]

    @classmethod
    def validate(cls) -> None:
        if not cls.SUPABASE_URL:
            raise ValueError("SUPABASE_URL environment variable is required")
        if not cls.SUPABASE_ANON_KEY:
            raise ValueError("SUPABASE_ANON_KEY environment variable is required")
        if not cls.SUPABASE_SERVICE_KEY:
            raise ValueError("SUPABASE_SERVICE_KEY environment variable is required")
