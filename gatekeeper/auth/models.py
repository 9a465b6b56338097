from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class AuthorizationRequest:
    """What to ask the provider for when sending the browser to its consent screen."""

    scopes: Tuple[str, ...] = ("email", "profile")
    access_type: str = "offline"  # online|offline
    prompt: str = "select_account"

    def __post_init__(self) -> None:
        if self.access_type not in ("online", "offline"):
            raise ValueError(f"Invalid access_type: {self.access_type}")
        # Ordered set: keep first occurrence of each scope.
        object.__setattr__(self, "scopes", tuple(dict.fromkeys(self.scopes)))


@dataclass(frozen=True)
class TokenSet:
    """Token endpoint response. Lives only for the duration of the callback request."""

    access_token: str = field(repr=False)
    id_token: str = field(repr=False)
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = field(default=None, repr=False)
    token_type: str = "Bearer"


@dataclass(frozen=True)
class IdentityTokenClaims:
    issuer: str
    audience: str
    subject: str
    expires_at: int
    issued_at: int
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IdentityTokenClaims":
        aud = payload.get("aud")
        if isinstance(aud, (list, tuple)):
            aud = aud[0] if aud else ""
        return cls(
            issuer=str(payload.get("iss") or ""),
            audience=str(aud or ""),
            subject=str(payload.get("sub") or ""),
            expires_at=int(payload.get("exp") or 0),
            issued_at=int(payload.get("iat") or 0),
            email=_opt_str(payload.get("email")),
            name=_opt_str(payload.get("name")),
            picture=_opt_str(payload.get("picture")),
        )


@dataclass(frozen=True)
class UserClaims:
    """The only data kept in the session cookie."""

    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None

    @classmethod
    def from_identity(cls, claims: IdentityTokenClaims) -> "UserClaims":
        return cls(email=claims.email, name=claims.name, picture=claims.picture)


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None
