"""
Pytest config.

Local imports like `import gatekeeper` rely on the repo root being on sys.path. When
invoking a global `pytest` entrypoint that doesn't happen reliably during collection,
so we pin it here.
"""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict
from unittest.mock import MagicMock

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

import jwt  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402

from gatekeeper.auth.config import load_auth_config  # noqa: E402

CLIENT_ID = "test-client-id.apps.googleusercontent.com"
CLIENT_SECRET = "test-client-secret-do-not-leak"
REDIRECT_URI = "http://localhost:3000/auth/callback"
SESSION_SECRET = "test-secret-key-for-testing-purposes-only"
PROFILE_URL = "http://localhost:5173/profile"
TEST_KID = "test-key-1"

_ENV_VARS = (
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_REDIRECT_URI",
    "SESSION_SECRET",
    "PROFILE_REDIRECT_URL",
    "SESSION_TTL_SECONDS",
    "COOKIE_SECURE",
    "COOKIE_SAMESITE",
    "SESSION_COOKIE_NAME",
    "CORS_ALLOW_ORIGINS",
    "OAUTH_AUTHORIZATION_ENDPOINT",
    "OAUTH_TOKEN_ENDPOINT",
    "OAUTH_JWKS_URI",
    "OAUTH_ISSUERS",
    "OAUTH_HTTP_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _isolated_auth_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from an empty auth environment and a cold config cache."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()


@pytest.fixture
def auth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OAUTH_CLIENT_ID", CLIENT_ID)
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", CLIENT_SECRET)
    monkeypatch.setenv("OAUTH_REDIRECT_URI", REDIRECT_URI)
    monkeypatch.setenv("SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("PROFILE_REDIRECT_URL", PROFILE_URL)
    # TestClient talks plain http; Secure cookies would never be sent back.
    monkeypatch.setenv("COOKIE_SECURE", "0")


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(rsa_private_key) -> Dict[str, Any]:
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    jwk.update({"kid": TEST_KID, "alg": "RS256", "use": "sig"})
    return {"keys": [jwk]}


@pytest.fixture
def make_id_token(rsa_private_key) -> Callable[..., str]:
    """Sign an identity token like Google's. Pass `claim=None` to drop a claim."""

    def _make(*, key=None, kid: str = TEST_KID, **overrides: Any) -> str:
        now = int(time.time())
        claims: Dict[str, Any] = {
            "iss": "https://accounts.google.com",
            "aud": CLIENT_ID,
            "sub": "110248495921238986420",
            "email": "ada@example.com",
            "email_verified": True,
            "name": "Ada Lovelace",
            "picture": "https://lh3.googleusercontent.com/a/ada.png",
            "iat": now - 10,
            "exp": now + 3600,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, key or rsa_private_key, algorithm="RS256", headers={"kid": kid})

    return _make


def fake_response(status_code: int = 200, body: Any = None) -> MagicMock:
    """Stand-in for `requests.Response` with just what the provider client reads."""
    import requests

    r = MagicMock()
    r.status_code = status_code
    if body is None:
        r.json.side_effect = ValueError("No JSON body")
    else:
        r.json.return_value = body
    if status_code >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    else:
        r.raise_for_status.return_value = None
    return r


def token_response(id_token: str) -> MagicMock:
    return fake_response(
        200,
        {
            "access_token": "ya29.test-access-token",
            "expires_in": 3599,
            "id_token": id_token,
            "scope": "openid https://www.googleapis.com/auth/userinfo.email https://www.googleapis.com/auth/userinfo.profile",
            "token_type": "Bearer",
        },
    )
