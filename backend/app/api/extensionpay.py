"""
ExtensionPay webhook handler.

Keeps the users/payments tables in sync with subscription events so the
premium gate can trust the store.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from backend.app.api.deps import get_premium_cache
from backend.app.core.config import get_settings
from backend.app.core.database import db
from backend.app.core.premium import PremiumStatusCache
from backend.app.storage import postgres

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["extensionpay"])


def verify_extensionpay_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify an HMAC-SHA256 hex signature over the raw body."""
    expected_signature = hmac.new(
        secret.encode(),
        body,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(expected_signature, signature or "")


def _first_str(data: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_period_end(data: Dict[str, Any]) -> Optional[datetime]:
    raw = data.get("periodEnd") or data.get("currentPeriodEnd") or data.get("period_end")
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        seconds = raw / 1000.0 if raw >= 100_000_000_000 else raw
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(raw, str) and raw.strip():
        try:
            dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.info("Ignoring unparseable period end: %r", raw)
            return None
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def _parse_amount(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


async def _resolve_user_id(conn, data: Dict[str, Any]) -> Optional[str]:
    """
    Find the user a webhook refers to.

    Priority order:
    1. explicit user id in the payload
    2. existing row with the same subscription id
    3. existing row with the same email
    4. the email itself (users can be created by their first webhook)
    """
    user_id = _first_str(data, "userId", "user_id", "extensionUserId")
    if user_id:
        return user_id

    subscription_id = _first_str(data, "subscriptionId", "subscription_id")
    if subscription_id:
        user = await postgres.find_user_by_subscription(conn, subscription_id)
        if user:
            return user["id"]

    email = _first_str(data, "email")
    if email:
        user = await postgres.find_user_by_email(conn, email)
        if user:
            return user["id"]
        return email

    return None


async def _apply_subscription(conn, user_id: str, data: Dict[str, Any], status: str) -> None:
    await postgres.upsert_user(
        conn,
        user_id,
        email=_first_str(data, "email"),
        subscription_status=status,
        subscription_id=_first_str(data, "subscriptionId", "subscription_id"),
        subscription_period_end=_parse_period_end(data),
    )


async def _handle_subscription_started(conn, user_id: str, data: Dict[str, Any]) -> None:
    """subscription.created / subscription.trial_started"""
    await _apply_subscription(conn, user_id, data, "active")
    logger.info("Activated subscription for user %s", user_id)


async def _handle_subscription_updated(conn, user_id: str, data: Dict[str, Any]) -> None:
    status = _first_str(data, "status")
    if status is None:
        existing = await postgres.get_user(conn, user_id)
        status = (existing or {}).get("subscription_status") or "active"
    await _apply_subscription(conn, user_id, data, status)
    logger.info("Updated subscription for user %s to %s", user_id, postgres.normalize_status(status))


async def _handle_subscription_cancelled(conn, user_id: str, data: Dict[str, Any]) -> None:
    await _apply_subscription(conn, user_id, data, "cancelled")
    logger.info("Cancelled subscription for user %s", user_id)


async def _handle_payment_succeeded(conn, user_id: str, data: Dict[str, Any]) -> None:
    await _apply_subscription(conn, user_id, data, "active")

    payment_id = _first_str(data, "paymentId", "payment_id", "id")
    if payment_id and await postgres.payment_exists(conn, payment_id):
        logger.info("Payment %s already recorded, skipping", payment_id)
        return
    await postgres.create_payment(
        conn,
        user_id,
        amount=_parse_amount(data.get("amount")),
        currency=(_first_str(data, "currency") or "usd").lower(),
        status="succeeded",
        extensionpay_payment_id=payment_id,
    )
    logger.info("Recorded payment %s for user %s", payment_id, user_id)


EVENT_HANDLERS = {
    "subscription.created": _handle_subscription_started,
    "subscription.trial_started": _handle_subscription_started,
    "subscription.updated": _handle_subscription_updated,
    "subscription.cancelled": _handle_subscription_cancelled,
    "payment.succeeded": _handle_payment_succeeded,
}


@router.post("/extensionpay")
async def handle_extensionpay_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias="x-extensionpay-signature"),
    cache: PremiumStatusCache = Depends(get_premium_cache),
):
    """
    Handle ExtensionPay webhook events.

    Unknown or malformed events are acknowledged with 200 and ignored; only
    a body that is not JSON at all gets a 400. Persistence failures return
    500 so the sender retries delivery.
    """
    settings = get_settings()
    body = await request.body()

    if settings.extensionpay_webhook_secret:
        if not verify_extensionpay_signature(body, signature, settings.extensionpay_webhook_secret):
            raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = json.loads(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {str(e)}")
    # Well-formed JSON that is not an event we understand is acknowledged.
    event_type = event.get("event") if isinstance(event, dict) else None
    data = (event.get("data") if isinstance(event, dict) else None) or {}

    handler = EVENT_HANDLERS.get(event_type) if isinstance(event_type, str) else None
    if handler is None or not isinstance(data, dict):
        logger.info("Unhandled ExtensionPay event: %r", event_type)
        return {"received": True, "handled": False}

    if not db.enabled:
        logger.error("ExtensionPay event %s received but no database is configured", event_type)
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    try:
        async with db.connection() as conn:
            async with conn.transaction():
                user_id = await _resolve_user_id(conn, data)
                if user_id is None:
                    logger.warning("No user identity in ExtensionPay %s event", event_type)
                    return {"received": True, "handled": False}
                await handler(conn, user_id, data)
    except Exception:
        logger.exception("ExtensionPay webhook processing failed (%s)", event_type)
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    cache.invalidate(user_id)
    return {"received": True, "handled": True}
