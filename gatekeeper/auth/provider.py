from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import jwt  # PyJWT
import requests

from gatekeeper.auth.config import AuthConfig, ProviderCredentials, ProviderEndpoints
from gatekeeper.auth.errors import CodeExchangeError, IdentityTokenInvalid
from gatekeeper.auth.models import AuthorizationRequest, IdentityTokenClaims, TokenSet

logger = logging.getLogger(__name__)

JWKS_CACHE_SECONDS = 3600


class ProviderClient:
    """
    Talks to the identity provider on behalf of one registered client.

    Built once at startup and handed to the login flow; there is no module-level
    instance. The only state it keeps is the provider's public signing keys.
    """

    def __init__(
        self,
        credentials: ProviderCredentials,
        endpoints: Optional[ProviderEndpoints] = None,
        *,
        timeout: float = 10.0,
    ):
        self.credentials = credentials
        self.endpoints = endpoints or ProviderEndpoints()
        self.timeout = timeout
        self._jwks: Tuple[float, Optional[Dict[str, Any]]] = (0.0, None)

    @classmethod
    def from_config(cls, cfg: AuthConfig) -> "ProviderClient":
        return cls(cfg.credentials, cfg.endpoints, timeout=cfg.http_timeout_seconds)

    def build_authorization_url(self, request: AuthorizationRequest) -> str:
        """
        Build the provider's consent-screen URL. Pure function of credentials + request.
        The client secret never appears here.
        """
        params = {
            "client_id": self.credentials.client_id,
            "redirect_uri": self.credentials.redirect_uri,
            "response_type": "code",
            "scope": " ".join(request.scopes),
            "access_type": request.access_type,
            "prompt": request.prompt,
        }
        endpoint = self.endpoints.authorization_endpoint
        sep = "&" if "?" in endpoint else "?"
        return f"{endpoint}{sep}{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenSet:
        """
        Redeem an authorization code at the token endpoint.

        Exactly one POST per call. Codes are single-use, so a failed exchange is never
        retried and a redeemed code is never cached.
        """
        code = (code or "").strip()
        if not code:
            raise CodeExchangeError("Missing authorization code")

        payload = {
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.credentials.redirect_uri,
        }
        try:
            r = requests.post(
                self.endpoints.token_endpoint,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise CodeExchangeError(f"Token endpoint timed out after {self.timeout:g}s") from e
        except requests.RequestException as e:
            raise CodeExchangeError(f"Token endpoint unreachable: {type(e).__name__}") from e

        if r.status_code >= 400:
            # Avoid leaking sensitive info; include minimal context.
            provider_error = _provider_error(r)
            raise CodeExchangeError(
                f"Token exchange failed (status={r.status_code}, error={provider_error or 'unknown'})",
                status_code=r.status_code,
                provider_error=provider_error,
            )
        try:
            data = r.json()
        except ValueError as e:
            raise CodeExchangeError("Invalid token response", status_code=r.status_code) from e
        if not isinstance(data, dict):
            raise CodeExchangeError("Invalid token response", status_code=r.status_code)

        id_token = str(data.get("id_token") or "").strip()
        if not id_token:
            raise CodeExchangeError("Token response missing id_token", status_code=r.status_code)

        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError) as e:
                raise CodeExchangeError("Invalid token response", status_code=r.status_code) from e
        return TokenSet(
            access_token=str(data.get("access_token") or ""),
            id_token=id_token,
            expires_in=expires_in,
            refresh_token=str(data["refresh_token"]) if data.get("refresh_token") else None,
            token_type=str(data.get("token_type") or "Bearer"),
        )

    def validate_identity_token(self, token: str, expected_audience: Optional[str] = None) -> IdentityTokenClaims:
        """
        Verify the identity token against the provider's published keys.

        - Signature must verify (RS256, key selected by `kid`)
        - `aud` must equal our client id (or `expected_audience`)
        - `iss` must be one of the provider's issuers
        - now must fall within [iat, exp]

        Raises IdentityTokenInvalid with a `reason` naming the failed check.
        """
        audience = expected_audience or self.credentials.client_id

        try:
            hdr = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.MALFORMED, "Identity token is not a JWT") from e
        if str(hdr.get("alg") or "") != "RS256":
            raise IdentityTokenInvalid(IdentityTokenInvalid.MALFORMED, "Unsupported signing algorithm")
        kid = str(hdr.get("kid") or "")
        if not kid:
            raise IdentityTokenInvalid(IdentityTokenInvalid.MALFORMED, "Identity token missing kid")

        key = self._signing_key(kid)

        try:
            payload = jwt.decode(
                token,
                key=key,
                algorithms=["RS256"],
                audience=audience,
                options={"require": ["exp", "iat", "iss", "aud", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.EXPIRED) from e
        except jwt.ImmatureSignatureError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.NOT_YET_VALID) from e
        except jwt.InvalidAudienceError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.AUDIENCE_MISMATCH) from e
        except jwt.InvalidSignatureError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.BAD_SIGNATURE) from e
        except jwt.MissingRequiredClaimError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.MISSING_CLAIM, str(e)) from e
        except jwt.InvalidTokenError as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.MALFORMED, str(e)) from e

        # PyJWT accepts any overlap with a list `aud`; we must be the sole audience.
        if payload.get("aud") not in (audience, [audience]):
            raise IdentityTokenInvalid(IdentityTokenInvalid.AUDIENCE_MISMATCH)

        claims = IdentityTokenClaims.from_payload(payload)
        if claims.issuer not in self.endpoints.issuers:
            raise IdentityTokenInvalid(IdentityTokenInvalid.ISSUER_MISMATCH)
        # Older PyJWT releases do not reject a future `iat`.
        if claims.issued_at > int(time.time()):
            raise IdentityTokenInvalid(IdentityTokenInvalid.NOT_YET_VALID)
        return claims

    def _signing_key(self, kid: str) -> Any:
        jwk = _find_key(self._get_jwks(), kid)
        if jwk is None:
            # Provider may have rotated keys since we cached them.
            jwk = _find_key(self._get_jwks(force=True), kid)
        if jwk is None:
            raise IdentityTokenInvalid(IdentityTokenInvalid.KEY_UNAVAILABLE, "Unknown signing key (kid)")
        try:
            return jwt.algorithms.RSAAlgorithm.from_jwk(json.dumps(jwk))
        except (jwt.InvalidKeyError, ValueError, KeyError) as e:
            raise IdentityTokenInvalid(IdentityTokenInvalid.KEY_UNAVAILABLE, "Invalid signing key") from e

    def _get_jwks(self, *, force: bool = False) -> Dict[str, Any]:
        """
        Fetch JWKS (JSON Web Key Set) from provider.
        Caches result for 1 hour.
        """
        ts, cached = self._jwks
        now = time.time()
        if not force and cached is not None and now - ts < JWKS_CACHE_SECONDS:
            return cached
        try:
            r = requests.get(self.endpoints.jwks_uri, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            raise IdentityTokenInvalid(
                IdentityTokenInvalid.KEY_UNAVAILABLE, f"Signing keys unavailable: {type(e).__name__}"
            ) from e
        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise IdentityTokenInvalid(IdentityTokenInvalid.KEY_UNAVAILABLE, "Invalid JWKS")
        self._jwks = (now, data)
        logger.debug("Fetched %d signing keys from %s", len(data["keys"]), self.endpoints.jwks_uri)
        return data


def _find_key(jwks: Dict[str, Any], kid: str) -> Optional[Dict[str, Any]]:
    for k in jwks.get("keys") or []:
        if isinstance(k, dict) and str(k.get("kid") or "") == kid:
            return k
    return None


def _provider_error(r: requests.Response) -> Optional[str]:
    try:
        body = r.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None
