import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import stripe
from fastapi import HTTPException

from ..core.config import Config
from ..schemas.account import BillingSummary, CheckoutResponse
from .supabase_service import update_user_profile, update_users_by_customer
from .usage_service import get_search_limit_info


logger = logging.getLogger(__name__)


def get_stripe():
    """Configure the Stripe SDK lazily; None when no secret key is set."""
    if not Config.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set - Stripe functionality is disabled")
        return None
    stripe.api_key = Config.STRIPE_SECRET_KEY
    return stripe


def tier_for_price(price_id: Optional[str]) -> str:
    return 'pro' if price_id and price_id in Config.pro_price_ids() else 'free'


def payment_links() -> dict[str, str]:
    return {
        'monthly': Config.STRIPE_PRO_MONTHLY_LINK,
        'yearly': Config.STRIPE_PRO_YEARLY_LINK,
    }


def create_customer(email: str, name: Optional[str] = None, metadata: Optional[dict[str, str]] = None) -> str:
    client = get_stripe()
    if client is None:
        raise RuntimeError("Stripe is not configured - STRIPE_SECRET_KEY environment variable is not set")
    customer = client.Customer.create(email=email, name=name, metadata=metadata or {})
    return customer.id


def _link_customer(profile: dict[str, Any]) -> str:
    """Create the Stripe customer a profile is missing and store its id.

    Subscription webhooks find users by stripe_customer_id only.
    """
    try:
        customer_id = create_customer(
            email=profile['email'],
            name=profile.get('full_name'),
            metadata={'supabase_user_id': profile['id']},
        )
    except (RuntimeError, stripe.StripeError) as e:
        logger.error(f"Failed to create Stripe customer for {profile['id']}: {e}")
        raise HTTPException(status_code=502, detail="Failed to create billing account")

    update_user_profile(profile['id'], {'stripe_customer_id': customer_id})
    logger.info(f"Linked Stripe customer {customer_id} to user {profile['id']}")
    return customer_id


def create_checkout_session(profile: dict[str, Any], plan: str) -> CheckoutResponse:
    client = get_stripe()
    if client is None:
        raise HTTPException(status_code=503, detail="Billing is not configured")

    price_id = Config.STRIPE_PRO_YEARLY_PRICE_ID if plan == 'yearly' else Config.STRIPE_PRO_MONTHLY_PRICE_ID
    params: dict[str, Any] = {
        'mode': 'subscription',
        'line_items': [{'price': price_id, 'quantity': 1}],
        'success_url': f"{Config.SITE_URL}/account/billing?checkout=success&session_id={{CHECKOUT_SESSION_ID}}",
        'cancel_url': f"{Config.SITE_URL}/pricing",
        'client_reference_id': profile['id'],
        'metadata': {'supabase_user_id': profile['id'], 'plan': plan},
    }
    params['customer'] = profile.get('stripe_customer_id') or _link_customer(profile)

    try:
        session = client.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Failed to create checkout session for {profile['id']}: {e}")
        raise HTTPException(status_code=502, detail="Failed to create checkout session")
    return CheckoutResponse(checkout_url=session.url, session_id=session.id)


def get_billing_summary(profile: dict[str, Any]) -> BillingSummary:
    return BillingSummary(
        plan=profile.get('subscription_status') or 'free',
        current_period_end=profile.get('current_period_end'),
        has_billing_account=bool(profile.get('stripe_customer_id')),
        usage=get_search_limit_info(profile['id'], profile),
        payment_links=payment_links(),
    )


def verify_webhook(payload: bytes, signature: str, secret: str) -> bool:
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
        return True
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return False


# --- Webhook event handlers -------------------------------------------------

def _first_item(subscription: dict[str, Any]) -> dict[str, Any]:
    items = (subscription.get('items') or {}).get('data') or []
    return items[0] if items else {}


def _period_end(subscription: dict[str, Any]) -> Optional[str]:
    # Newer API versions moved current_period_end onto subscription items
    epoch = subscription.get('current_period_end') or _first_item(subscription).get('current_period_end')
    if not epoch:
        return None
    return datetime.fromtimestamp(int(epoch), tz=timezone.utc).isoformat()


def _price_id(subscription: dict[str, Any]) -> Optional[str]:
    return (_first_item(subscription).get('price') or {}).get('id')


def handle_subscription_created(subscription: dict[str, Any]) -> None:
    logger.info(f"Processing subscription created: {subscription.get('id')}")
    customer_id = subscription.get('customer')
    update_users_by_customer(customer_id, {
        'stripe_customer_id': customer_id,
        'stripe_subscription_id': subscription.get('id'),
        'subscription_status': tier_for_price(_price_id(subscription)),
        'current_period_end': _period_end(subscription),
    })


def handle_subscription_updated(subscription: dict[str, Any]) -> None:
    logger.info(f"Processing subscription updated: {subscription.get('id')}")
    status = 'free'
    if subscription.get('status') == 'active':
        status = tier_for_price(_price_id(subscription))
    update_users_by_customer(subscription.get('customer'), {
        'stripe_subscription_id': subscription.get('id'),
        'subscription_status': status,
        'current_period_end': _period_end(subscription),
    })


def handle_subscription_deleted(subscription: dict[str, Any]) -> None:
    logger.info(f"Processing subscription deleted: {subscription.get('id')}")
    update_users_by_customer(subscription.get('customer'), {
        'stripe_subscription_id': None,
        'subscription_status': 'free',
        'current_period_end': None,
    })


def handle_payment_succeeded(invoice: dict[str, Any]) -> None:
    logger.info(f"Processing payment succeeded: {invoice.get('id')}")
    if invoice.get('subscription'):
        update_users_by_customer(invoice.get('customer'), {})


def handle_payment_failed(invoice: dict[str, Any]) -> None:
    logger.warning(f"Payment failed for customer {invoice.get('customer')} (invoice {invoice.get('id')})")


EVENT_HANDLERS: dict[str, Callable[[dict[str, Any]], None]] = {
    'customer.subscription.created': handle_subscription_created,
    'customer.subscription.updated': handle_subscription_updated,
    'customer.subscription.deleted': handle_subscription_deleted,
    'invoice.payment_succeeded': handle_payment_succeeded,
    'invoice.payment_failed': handle_payment_failed,
}


def handle_event(event: dict[str, Any]) -> bool:
    """Dispatch a verified event. Returns False for event types we do not handle."""
    event_type = event.get('type')
    logger.info(f"Received Stripe webhook: {event_type} {event.get('id')}")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return False
    handler((event.get('data') or {}).get('object') or {})
    return True
