"""Webhook signature scheme shared by the gateway adapters.

The signature header has the form ``t=<unix time>,v1=<hex digest>`` where
the digest is HMAC-SHA256 over ``"<t>.<raw body>"`` keyed with the webhook
secret. Only the exact bytes received can be verified, so callers must pass
the raw request body, never a re-serialized one.
"""

import hashlib
import hmac
import json
import time

from protean.exceptions import ValidationError

from ordering.exceptions import SignatureError
from payments.gateway.port import WebhookEvent

DEFAULT_TOLERANCE_SECONDS = 300


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = str(timestamp).encode() + b"." + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a signature header for ``payload`` (used by fakes and tests)."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp = None
    signatures = []
    for part in (header or "").split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as exc:
                raise SignatureError("Malformed signature timestamp") from exc
        elif key == "v1" and value:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise SignatureError("Malformed signature header")
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Raise SignatureError unless ``header`` signs ``payload`` with ``secret``."""
    if not secret:
        raise SignatureError("Webhook secret is not configured")

    timestamp, signatures = _parse_header(header)
    expected = compute_signature(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureError("Signature does not match payload")

    current = time.time() if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        raise SignatureError("Signature timestamp outside tolerance")


def parse_event(payload: bytes) -> WebhookEvent:
    """Decode a verified payload into a WebhookEvent."""
    try:
        body = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise ValidationError({"payload": ["Webhook body is not valid JSON"]}) from exc

    if not isinstance(body, dict) or not body.get("id") or not body.get("type"):
        raise ValidationError({"payload": ["Webhook event id and type are required"]})

    return WebhookEvent(
        event_id=str(body["id"]),
        type=str(body["type"]),
        data=(body.get("data") or {}).get("object") or {},
    )
