"""Tests for the Clerk client and webhook signature checks."""

import base64
import json
import time
from types import SimpleNamespace

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa

from favely.config import Settings
from favely.errors import IdentityProviderError, UnauthorizedError
from favely.providers.clerk import ClerkIdentityProvider
from favely.providers.webhooks import sign, verify_webhook

SECRET = "whsec_" + base64.b64encode(b"super-secret-key").decode()


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def clerk(responses, jwks=None, **settings):
    session = FakeSession(responses)
    provider = ClerkIdentityProvider(
        Settings(clerk_secret_key="sk_test", **settings),
        session=session,
        jwks_client=jwks or FakeJWKSClient(SIGNING_KEY.public_key()),
    )
    return provider, session


SIGNING_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
OTHER_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


class FakeJWKSClient:
    def __init__(self, public_key=None, error=None):
        self.public_key = public_key
        self.error = error

    def get_signing_key_from_jwt(self, token):
        if self.error is not None:
            raise self.error
        jwt.get_unverified_header(token)
        return SimpleNamespace(key=self.public_key)


def session_token(key=None, **claims):
    payload = {"sub": "user_1", "exp": int(time.time()) + 60, "azp": "https://favely.app", **claims}
    return jwt.encode(payload, key or SIGNING_KEY, algorithm="RS256", headers={"kid": "ins_1"})


CLERK_USER = {
    "id": "user_1",
    "username": "alice",
    "first_name": "Alice",
    "last_name": "Anders",
    "image_url": "https://img/alice.png",
    "primary_email_address_id": "e2",
    "email_addresses": [
        {"id": "e1", "email_address": "old@example.com"},
        {"id": "e2", "email_address": "alice@example.com"},
    ],
}


def test_get_user_parses_payload():
    provider, session = clerk([FakeResponse(200, CLERK_USER)])
    user = provider.get_user("user_1")
    assert user.username == "alice"
    assert user.display_name == "Alice Anders"
    assert user.email == "alice@example.com"
    assert session.headers["Authorization"] == "Bearer sk_test"
    assert session.calls[0][1].endswith("/users/user_1")


def test_unknown_user_is_none():
    provider, _ = clerk([FakeResponse(404, {"errors": []})])
    assert provider.get_user("missing") is None


def test_transport_failure_raises():
    provider, _ = clerk([requests.ConnectionError("boom")])
    with pytest.raises(IdentityProviderError):
        provider.get_user("user_1")


def test_server_error_raises():
    provider, _ = clerk([FakeResponse(503, {"errors": []})])
    with pytest.raises(IdentityProviderError):
        provider.get_user_list(["user_1"])


def test_verify_session_reads_subject_locally():
    provider, session = clerk([], jwks=FakeJWKSClient(SIGNING_KEY.public_key()))
    assert provider.verify_session(session_token()) == "user_1"
    assert session.calls == []


@pytest.mark.parametrize("token", [
    session_token(exp=int(time.time()) - 60),
    session_token(nbf=int(time.time()) + 600),
    session_token(key=OTHER_KEY),
    jwt.encode({"sub": "user_1", "exp": int(time.time()) + 60}, "shared-secret", algorithm="HS256"),
    "not-a-jwt",
])
def test_verify_session_rejects_invalid_tokens(token):
    provider, _ = clerk([], jwks=FakeJWKSClient(SIGNING_KEY.public_key()))
    assert provider.verify_session(token) is None


def test_verify_session_checks_authorized_party():
    provider, _ = clerk(
        [],
        jwks=FakeJWKSClient(SIGNING_KEY.public_key()),
        clerk_authorized_parties=["https://favely.app"],
    )
    assert provider.verify_session(session_token()) == "user_1"
    assert provider.verify_session(session_token(azp="https://elsewhere.example")) is None


def test_verify_session_unknown_key_is_rejected():
    provider, _ = clerk([], jwks=FakeJWKSClient(error=jwt.PyJWKClientError("Unable to find a signing key")))
    assert provider.verify_session(session_token()) is None


def test_verify_session_jwks_outage_raises():
    provider, _ = clerk([], jwks=FakeJWKSClient(error=jwt.PyJWKClientConnectionError("timed out")))
    with pytest.raises(IdentityProviderError):
        provider.verify_session(session_token())


def test_get_user_list_batches_requests():
    ids = [f"user_{i}" for i in range(150)]
    provider, session = clerk([FakeResponse(200, [CLERK_USER]), FakeResponse(200, [])])
    users = provider.get_user_list(ids)
    assert len(users) == 1
    assert len(session.calls) == 2
    first_params = session.calls[0][2]["params"]
    assert len([p for p in first_params if p[0] == "user_id"]) == 100


def signed_headers(payload: bytes, timestamp: int = 1_700_000_000):
    return {
        "svix-id": "msg_1",
        "svix-timestamp": str(timestamp),
        "svix-signature": "v1,invalid v1," + sign(SECRET, "msg_1", str(timestamp), payload),
    }


def test_valid_webhook_signature_passes():
    payload = b'{"type": "user.created"}'
    verify_webhook(payload, signed_headers(payload), SECRET, clock=lambda: 1_700_000_010)


def test_tampered_webhook_payload_fails():
    headers = signed_headers(b'{"type": "user.created"}')
    with pytest.raises(UnauthorizedError):
        verify_webhook(b'{"type": "user.deleted"}', headers, SECRET, clock=lambda: 1_700_000_010)


def test_stale_webhook_fails():
    payload = b"{}"
    with pytest.raises(UnauthorizedError):
        verify_webhook(payload, signed_headers(payload), SECRET, clock=lambda: 1_700_000_000 + 301)


def test_missing_headers_fail():
    with pytest.raises(UnauthorizedError):
        verify_webhook(b"{}", {}, SECRET)
