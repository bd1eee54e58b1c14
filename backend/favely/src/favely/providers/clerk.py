from typing import Any, Dict, List, Optional

import jwt
import requests
from loguru import logger

from favely.config import Settings
from favely.errors import IdentityProviderError
from favely.providers.base import IdentityProvider, IdentityUser

# Users fetched per listing request
MAX_USERS_PER_REQUEST = 100

SESSION_ALGORITHMS = ["RS256"]


def _primary_email(payload: Dict[str, Any]) -> Optional[str]:
    addresses = payload.get("email_addresses") or []
    primary_id = payload.get("primary_email_address_id")
    for address in addresses:
        if address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None


def user_from_payload(payload: Dict[str, Any]) -> IdentityUser:
    return IdentityUser(
        id=payload["id"],
        username=payload.get("username"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        image_url=payload.get("image_url"),
        email=_primary_email(payload),
    )


class ClerkIdentityProvider(IdentityProvider):
    """
    Clerk Backend API client.

    Session tokens are verified locally against Clerk's JWKS; the key set is
    cached by `PyJWKClient`, so only user lookups hit the network.
    """

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        jwks_client: Optional[jwt.PyJWKClient] = None,
    ):
        self.base_url = settings.clerk_api_url.rstrip("/")
        self.timeout = settings.clerk_timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {settings.clerk_secret_key}",
            "Content-Type": "application/json",
        })
        self.jwks_client = jwks_client or jwt.PyJWKClient(
            settings.clerk_jwks_url,
            headers={"Authorization": f"Bearer {settings.clerk_secret_key}"},
            timeout=settings.clerk_timeout_seconds,
        )
        self.authorized_parties = list(settings.clerk_authorized_parties)
        self.leeway = settings.clerk_jwt_leeway_seconds

    def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"  ✖ [Identity] {method} {path} failed: {e}")
            raise IdentityProviderError(cause=e)

        if resp.status_code in (400, 401, 404, 422):
            logger.debug(f"  • [Identity] {method} {path} -> {resp.status_code}")
            return None
        if resp.status_code >= 300:
            logger.error(f"  ✖ [Identity] {method} {path} -> {resp.status_code}: {resp.text[:200]}")
            raise IdentityProviderError(f"Identity provider answered {resp.status_code}")
        return resp.json()

    def verify_session(self, token: str) -> Optional[str]:
        """Return the user id (`sub`) of a valid session JWT, else None."""
        if not token:
            return None
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=SESSION_ALGORITHMS,
                options={"require": ["exp", "sub"]},
                leeway=self.leeway,
            )
        except jwt.PyJWKClientConnectionError as e:
            logger.error(f"  ✖ [Identity] JWKS fetch failed: {e}")
            raise IdentityProviderError(cause=e)
        except (jwt.PyJWKClientError, jwt.InvalidTokenError) as e:
            logger.debug(f"  • [Identity] Rejected session token: {e}")
            return None

        if self.authorized_parties and claims.get("azp") not in self.authorized_parties:
            logger.debug(f"  • [Identity] Session issued for unexpected party {claims.get('azp')}")
            return None
        return claims["sub"]

    def get_user(self, user_id: str) -> Optional[IdentityUser]:
        payload = self._request("GET", f"/users/{user_id}")
        return user_from_payload(payload) if payload else None

    def get_user_list(self, user_ids: List[str]) -> List[IdentityUser]:
        users: List[IdentityUser] = []
        for start in range(0, len(user_ids), MAX_USERS_PER_REQUEST):
            batch = user_ids[start:start + MAX_USERS_PER_REQUEST]
            params = [("user_id", uid) for uid in batch] + [("limit", str(len(batch)))]
            payload = self._request("GET", "/users", params=params) or []
            users.extend(user_from_payload(item) for item in payload)
        return users

    def get_user_by_username(self, username: str) -> Optional[IdentityUser]:
        payload = self._request("GET", "/users", params=[("username", username), ("limit", "1")]) or []
        return user_from_payload(payload[0]) if payload else None
