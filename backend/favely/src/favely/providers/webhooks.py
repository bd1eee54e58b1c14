"""
Identity-provider webhook signature check.

Clerk delivers webhooks through Svix: the signed content is
`{svix-id}.{svix-timestamp}.{body}`, signed with HMAC-SHA256 using the
base64 secret that follows the `whsec_` prefix. The `svix-signature`
header holds space-separated `v1,<base64 signature>` entries.
"""

import base64
import hashlib
import hmac
import time
from typing import Callable, Mapping, Optional

from favely.errors import UnauthorizedError

TOLERANCE_SECONDS = 5 * 60


def sign(secret: str, msg_id: str, timestamp: str, payload: bytes) -> str:
    key = base64.b64decode(secret.split("_", 1)[1] if secret.startswith("whsec_") else secret)
    content = f"{msg_id}.{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(key, content, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook(
    payload: bytes,
    headers: Mapping[str, str],
    secret: str,
    clock: Optional[Callable[[], float]] = None,
) -> None:
    """Raise UnauthorizedError unless the payload carries a valid signature."""
    if not secret:
        raise UnauthorizedError("Webhook secret is not configured")

    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signatures = headers.get("svix-signature")
    if not (msg_id and timestamp and signatures):
        raise UnauthorizedError("Missing webhook signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError:
        raise UnauthorizedError("Invalid webhook timestamp")
    now = (clock or time.time)()
    if abs(now - sent_at) > TOLERANCE_SECONDS:
        raise UnauthorizedError("Webhook timestamp outside tolerance")

    expected = sign(secret, msg_id, timestamp, payload)
    for entry in signatures.split():
        version, _, signature = entry.partition(",")
        if version == "v1" and hmac.compare_digest(signature, expected):
            return
    raise UnauthorizedError("Invalid webhook signature")
