from .base import IdentityProvider, IdentityUser
from .clerk import ClerkIdentityProvider
from .webhooks import verify_webhook

__all__ = [
    "IdentityProvider",
    "IdentityUser",
    "ClerkIdentityProvider",
    "verify_webhook",
]
