from fastapi import APIRouter, Depends, Request
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import logging

import stripe

from app.core.config import Settings, get_settings
from app.db.mongo import db_session
from app.services.account_service import account_service
from app.services.billing_service import billing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["payments"])

INVOICE_CREATED_EVENTS = {"invoice.created"}
PAYMENT_SUCCEEDED_EVENTS = {"invoice.payment_succeeded", "invoice.paid", "invoice_payment.paid"}

ACK = {"received": True}


@router.post("/payments", include_in_schema=False)
async def payment_webhook(request: Request, settings: Settings = Depends(get_settings)):
    """
    Handle payment provider webhook events.

    Always acknowledged with 200 so the provider does not retry; failures
    are only logged.
    """
    payload = await request.body()

    try:
        event = parse_event(payload, request.headers.get("stripe-signature"), settings.STRIPE_WEBHOOK_SECRET)
    except ValueError:
        logger.warning("Ignoring webhook with invalid payload")
        return ACK
    except stripe.SignatureVerificationError:
        logger.warning("Ignoring webhook with invalid signature")
        return ACK

    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info(f"Received payment webhook {event_type}")

    try:
        async with db_session() as session:
            if event_type in INVOICE_CREATED_EVENTS:
                await handle_invoice_created(obj, session=session)
            elif event_type in PAYMENT_SUCCEEDED_EVENTS:
                await handle_payment_succeeded(obj, session=session)
            else:
                logger.info(f"Ignoring unhandled webhook event {event_type}")
    except Exception as e:
        logger.error(f"Error processing webhook {event_type}: {e}")

    return ACK


def parse_event(payload: bytes, sig_header: Optional[str], webhook_secret: Optional[str]) -> Dict[str, Any]:
    """Verify the signature when a secret is configured and decode the event."""
    if webhook_secret:
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        return event.to_dict()
    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError("Event payload must be an object")
    return event


def _subscription_id(obj: Dict[str, Any]) -> Optional[str]:
    subscription = obj.get("subscription")
    if not subscription:
        details = (obj.get("parent") or {}).get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, dict):
        subscription = subscription.get("id")
    return subscription


def _timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _description(invoice: Dict[str, Any]) -> Optional[str]:
    if invoice.get("description"):
        return invoice["description"]
    lines = (invoice.get("lines") or {}).get("data") or []
    for line in lines:
        if line.get("description"):
            return line["description"]
    return None


async def handle_invoice_created(invoice: Dict[str, Any], session=None):
    """Create a pending billing row for a new invoice issued under a subscription."""
    subscription_id = _subscription_id(invoice)
    if not subscription_id:
        logger.info(f"Invoice {invoice.get('id')} is not part of a subscription, skipping")
        return

    customer_id = invoice.get("customer")
    user = await account_service.get_by_billing_customer(customer_id, session=session)
    if not user:
        logger.warning(f"No account for billing customer {customer_id}")
        return

    amount = invoice.get("amount_due")
    await billing_service.create_pending(
        user_id=str(user["_id"]),
        payment_id=invoice.get("id"),
        subscription_id=subscription_id,
        amount=amount / 100 if amount is not None else None,
        payment_link=invoice.get("hosted_invoice_url"),
        due_date=_timestamp(invoice.get("due_date")),
        description=_description(invoice),
        session=session
    )


async def handle_payment_succeeded(obj: Dict[str, Any], session=None):
    """Mark paid the billing rows matching the payment id or the subscription id."""
    identifiers: List[str] = []
    if obj.get("id"):
        identifiers.append(obj["id"])
    invoice_ref = obj.get("invoice")
    if isinstance(invoice_ref, str):
        identifiers.append(invoice_ref)
    subscription_id = _subscription_id(obj)
    if subscription_id:
        identifiers.append(subscription_id)

    updated = await billing_service.mark_paid(identifiers, session=session)
    if not updated:
        logger.warning(f"No billing rows matched payment {identifiers}")
