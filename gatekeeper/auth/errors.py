from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """Base class for failures in the login flow."""


class ConfigurationError(AuthError):
    """A required credential or secret is missing. Fatal at startup."""

    def __init__(self, missing: list[str], message: Optional[str] = None):
        self.missing = list(missing)
        super().__init__(message or f"Missing required configuration: {', '.join(self.missing)}")


class CodeExchangeError(AuthError):
    """The provider did not redeem the authorization code."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, provider_error: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_error = provider_error


class IdentityTokenInvalid(AuthError):
    """The identity token failed signature or claim validation."""

    MALFORMED = "malformed"
    KEY_UNAVAILABLE = "key_unavailable"
    BAD_SIGNATURE = "bad_signature"
    AUDIENCE_MISMATCH = "audience_mismatch"
    ISSUER_MISMATCH = "issuer_mismatch"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    MISSING_CLAIM = "missing_claim"

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or f"Identity token rejected ({reason})")


class SessionDecodeFailure(AuthError):
    """Session cookie could not be trusted. Never surfaced; callers see "no session"."""
