# payments/gateway.py
"""
Thin client for the Razorpay orders API and its checkout signature.
"""
import hashlib
import hmac
import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    def __init__(self, message, status_code=502):
        super().__init__(message)
        self.status_code = status_code


def to_paise(amount):
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def create_order(amount, notes=None):
    """Opens an order for `amount` rupees. Returns the gateway's order dict."""
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        logger.error("RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET missing in settings.")
        raise GatewayError("Server misconfiguration: Missing payment gateway keys", status_code=500)

    payload = {
        "amount": to_paise(amount),
        "currency": settings.PAYMENT_CURRENCY,
        "receipt": uuid.uuid4().hex[:20],
        "notes": notes or {},
    }

    try:
        # Timeout is crucial to prevent server hanging
        resp = requests.post(
            f"{settings.RAZORPAY_API_URL}/orders",
            json=payload,
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
            timeout=20,
        )
    except requests.exceptions.Timeout:
        raise GatewayError("Payment gateway timed out. Please try again.", status_code=504)
    except requests.exceptions.ConnectionError:
        raise GatewayError("Network error. Could not connect to the payment gateway.", status_code=503)

    if resp.status_code >= 400:
        try:
            description = resp.json().get('error', {}).get('description')
        except ValueError:
            description = None
        logger.error(f"Order creation failed ({resp.status_code}): {description or resp.text[:200]}")
        raise GatewayError(description or "Payment gateway rejected the order")

    return resp.json()


def expected_signature(order_id, payment_id, secret=None):
    secret = secret if secret is not None else settings.RAZORPAY_KEY_SECRET
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(order_id, payment_id, signature, secret=None):
    return hmac.compare_digest(expected_signature(order_id, payment_id, secret), signature or '')
