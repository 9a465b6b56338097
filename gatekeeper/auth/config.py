from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Tuple

from gatekeeper.auth.errors import ConfigurationError

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_JWKS_URI = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")


@dataclass(frozen=True)
class ProviderCredentials:
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str


@dataclass(frozen=True)
class ProviderEndpoints:
    authorization_endpoint: str = GOOGLE_AUTHORIZATION_ENDPOINT
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    jwks_uri: str = GOOGLE_JWKS_URI
    issuers: Tuple[str, ...] = GOOGLE_ISSUERS


@dataclass(frozen=True)
class AuthConfig:
    credentials: ProviderCredentials
    endpoints: ProviderEndpoints

    # Session configuration
    session_secret: str = field(repr=False)
    session_ttl_seconds: int
    profile_redirect_url: str
    cookie_name: str
    cookie_secure: bool
    cookie_samesite: str

    # Outbound calls to the provider (token exchange, JWKS)
    http_timeout_seconds: float

    # Client application origins allowed to send the session cookie
    cors_allow_origins: List[str]


def _env(name: str) -> str:
    return (os.getenv(name, "") or "").strip()


def _parse_csv(value: str) -> List[str]:
    items = [x.strip() for x in (value or "").split(",")]
    return [x for x in items if x]


def _parse_bool(value: str) -> bool | None:
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return None


def _parse_number(name: str, default: str) -> float:
    raw = _env(name) or default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError([], f"Invalid {name}={raw!r} (expected a number of seconds)") from e
    if not math.isfinite(value):
        raise ConfigurationError([], f"Invalid {name}={raw!r} (expected a number of seconds)")
    return value


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load and validate configuration from environment variables.

    Client id, client secret, redirect URI, session secret and profile redirect URL are
    required. Raises ConfigurationError listing every missing variable, so a process
    without a signing secret never starts serving.
    """
    required = {
        "OAUTH_CLIENT_ID": _env("OAUTH_CLIENT_ID"),
        "OAUTH_CLIENT_SECRET": _env("OAUTH_CLIENT_SECRET"),
        "OAUTH_REDIRECT_URI": _env("OAUTH_REDIRECT_URI"),
        "SESSION_SECRET": _env("SESSION_SECRET"),
        "PROFILE_REDIRECT_URL": _env("PROFILE_REDIRECT_URL"),
    }
    missing = [k for k, v in required.items() if not v]
    if missing:
        raise ConfigurationError(missing)

    redirect_uri = required["OAUTH_REDIRECT_URI"]

    ttl = int(_parse_number("SESSION_TTL_SECONDS", "86400"))  # 1 day default
    if ttl <= 60:
        ttl = 60

    samesite = (_env("COOKIE_SAMESITE") or "lax").lower()
    if samesite not in ("lax", "strict", "none"):
        raise ConfigurationError([], f"Invalid COOKIE_SAMESITE={samesite!r} (expected lax, strict or none)")

    cookie_secure = _parse_bool(_env("COOKIE_SECURE"))
    if cookie_secure is None:
        # Default: secure cookies when the callback is served over https; otherwise allow local dev.
        cookie_secure = redirect_uri.startswith("https://")
    if samesite == "none":
        # Browsers drop SameSite=None cookies that are not Secure.
        cookie_secure = True

    timeout = _parse_number("OAUTH_HTTP_TIMEOUT_SECONDS", "10")
    timeout = min(max(timeout, 1.0), 60.0)

    issuers = tuple(_parse_csv(_env("OAUTH_ISSUERS"))) or GOOGLE_ISSUERS

    return AuthConfig(
        credentials=ProviderCredentials(
            client_id=required["OAUTH_CLIENT_ID"],
            client_secret=required["OAUTH_CLIENT_SECRET"],
            redirect_uri=redirect_uri,
        ),
        endpoints=ProviderEndpoints(
            authorization_endpoint=_env("OAUTH_AUTHORIZATION_ENDPOINT") or GOOGLE_AUTHORIZATION_ENDPOINT,
            token_endpoint=_env("OAUTH_TOKEN_ENDPOINT") or GOOGLE_TOKEN_ENDPOINT,
            jwks_uri=_env("OAUTH_JWKS_URI") or GOOGLE_JWKS_URI,
            issuers=issuers,
        ),
        session_secret=required["SESSION_SECRET"],
        session_ttl_seconds=ttl,
        profile_redirect_url=required["PROFILE_REDIRECT_URL"],
        cookie_name=_env("SESSION_COOKIE_NAME") or "session",
        cookie_secure=cookie_secure,
        cookie_samesite=samesite,
        http_timeout_seconds=timeout,
        cors_allow_origins=_parse_csv(_env("CORS_ALLOW_ORIGINS")),
    )
