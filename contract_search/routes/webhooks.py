import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..core.config import Config
from ..services import billing_service


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(request: Request):
    """Apply Stripe subscription/invoice events to the user's plan fields.

    Handler failures return 500 so Stripe redelivers the event.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        logger.error("No Stripe signature found")
        return JSONResponse(status_code=400, content={"error": "No signature found"})

    webhook_secret = Config.STRIPE_WEBHOOK_SECRET
    if not webhook_secret:
        logger.error("No webhook secret configured")
        return JSONResponse(status_code=500, content={"error": "Webhook not configured"})

    if not billing_service.verify_webhook(payload, signature, webhook_secret):
        return JSONResponse(status_code=400, content={"error": "Invalid signature"})

    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.error(f"Invalid JSON received: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    try:
        billing_service.handle_event(event)
    except Exception as e:
        logger.error(f"Webhook handler failed for {event.get('type')} {event.get('id')}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Webhook handler failed"})

    return {"received": True}
