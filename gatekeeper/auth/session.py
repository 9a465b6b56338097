from __future__ import annotations

import hmac
import time
from dataclasses import asdict
from typing import Any, Dict, Optional

from itsdangerous import BadData, URLSafeSerializer

from gatekeeper.auth.config import AuthConfig
from gatekeeper.auth.errors import SessionDecodeFailure
from gatekeeper.auth.models import UserClaims

SESSION_SALT = "gatekeeper-session-v1"


def _serializer(secret: str | bytes) -> URLSafeSerializer:
    return URLSafeSerializer(secret_key=secret, salt=SESSION_SALT)


def encode_session(claims: UserClaims, secret: str | bytes, ttl_seconds: int, *, now: Optional[float] = None) -> str:
    """
    Sign `claims` plus an absolute expiry into a cookie-safe token.

    The token is signed, not encrypted. Same inputs and `now` produce the same token.
    """
    issued = int(time.time() if now is None else now)
    payload = asdict(claims)
    payload["exp"] = issued + int(ttl_seconds)
    return _serializer(secret).dumps(payload)


def _load(token: str, secret: str | bytes, now: float) -> Dict[str, Any]:
    s = _serializer(secret)
    try:
        data = s.loads(token)
    except BadData as e:
        raise SessionDecodeFailure("bad signature or payload") from e
    if not isinstance(data, dict):
        raise SessionDecodeFailure("payload is not an object")
    # base64 ignores trailing pad bits; only the exact token we would have issued is accepted.
    if not hmac.compare_digest(s.dumps(data).encode("utf-8"), token.encode("utf-8")):
        raise SessionDecodeFailure("non-canonical encoding")
    exp = data.get("exp")
    if not isinstance(exp, int) or isinstance(exp, bool):
        raise SessionDecodeFailure("missing expiry")
    if now >= exp:
        raise SessionDecodeFailure("expired")
    return data


def decode_session(token: str | None, secret: str | bytes, *, now: Optional[float] = None) -> Optional[UserClaims]:
    """
    Return the claims carried by a session token, or None.

    Tampered, foreign-secret, malformed and expired tokens are all just "no session".
    """
    if not token:
        return None
    try:
        data = _load(token, secret, time.time() if now is None else now)
    except (SessionDecodeFailure, ValueError, UnicodeError):
        return None
    email = data.get("email")
    name = data.get("name")
    picture = data.get("picture")
    return UserClaims(
        email=str(email) if email else None,
        name=str(name) if name else None,
        picture=str(picture) if picture else None,
    )


def clear_session_cookie_kwargs(cfg: AuthConfig) -> dict:
    return {
        "key": cfg.cookie_name,
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": cfg.cookie_samesite,
        "path": "/",
    }


def session_cookie_kwargs(cfg: AuthConfig, value: str) -> dict:
    return {
        "key": cfg.cookie_name,
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": cfg.cookie_samesite,
        "path": "/",
    }
