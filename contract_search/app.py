import logging
import time
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Config
from .core.middleware import ALLOWED_METHODS, global_exception_handler, log_requests
from .routes import account, auth, contracts, enhance, saved, webhooks
from .services.query_enhancer import get_query_enhancer
from .services.supabase_service import ping

logger = logging.getLogger(__name__)

SERVICE_NAME = "contract-search-api"

# Initialize FastAPI
app = FastAPI(title="Contract Search API")

# CORS setup
ALLOWED_ORIGINS = Config.allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=ALLOWED_METHODS,
    allow_headers=["*"],
)

@app.middleware("http")
async def _log_requests(request, call_next):
    return await log_requests(request, call_next)

@app.exception_handler(Exception)
async def _global_exception_handler(request, exc):
    return await global_exception_handler(request, exc)


app.include_router(contracts.router)
app.include_router(saved.router)
app.include_router(account.router)
app.include_router(auth.router)
app.include_router(webhooks.router)
app.include_router(enhance.router)


@app.get("/health")
def health_check():
    """Basic health and dependency checks for the API."""
    health_start_time = time.time()

    try:
        # Check configuration and Supabase connection
        Config.validate()
        ping()

        health_duration = time.time() - health_start_time

        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "timestamp": datetime.now().isoformat(),
            "response_time_ms": round(health_duration * 1000, 2),
            "query_cache": get_query_enhancer().stats().model_dump(),
        }
    except Exception as e:
        health_duration = time.time() - health_start_time
        logger.error(f"Health check failed: {str(e)} - Duration: {health_duration:.1f}s")

        return {
            "status": "unhealthy",
            "service": SERVICE_NAME,
            "timestamp": datetime.now().isoformat(),
            "error": str(e),
            "response_time_ms": round(health_duration * 1000, 2)
        }


@app.get("/")
async def root():
    """Return basic API information."""

    return {
        "service": "Contract Search API",
        "version": "1.0",
        "endpoints": {
            "search": "/api/contracts/search",
            "filters": "/api/contracts/filters",
            "contract": "/api/contracts/{contract_id}",
            "saved": "/api/saved",
            "account": "/api/account/profile",
            "usage": "/api/account/usage",
            "billing": "/api/account/billing",
            "enhance_query": "/api/enhance-query",
            "auth_callback": "/auth/callback",
            "stripe_webhook": "/api/webhooks/stripe",
            "health": "/health"
        },
        "timestamp": datetime.now().isoformat(),
        "description": "Search cooperative purchasing contracts with plan-gated usage and saved contracts"
    }
