"""
Browser login flow: initiate -> callback -> profile / logout.

All continuity between requests lives in the signed session cookie; the flow holds
no per-browser state. Each handler takes what it needs from the request and returns
a response describing the new cookie (if any).
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

from gatekeeper.auth.config import AuthConfig
from gatekeeper.auth.errors import CodeExchangeError, IdentityTokenInvalid
from gatekeeper.auth.models import AuthorizationRequest, UserClaims
from gatekeeper.auth.provider import ProviderClient
from gatekeeper.auth.session import (
    clear_session_cookie_kwargs,
    decode_session,
    encode_session,
    session_cookie_kwargs,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
AUTH_FAILED_MESSAGE = "Authentication with the identity provider failed."

# Fixed for this application: identity only, offline access, always show the account chooser.
LOGIN_REQUEST = AuthorizationRequest(scopes=("email", "profile"), access_type="offline", prompt="select_account")


class LoginFlow:
    def __init__(self, cfg: AuthConfig, provider: ProviderClient, *, login_path: str = LOGIN_PATH):
        self.cfg = cfg
        self.provider = provider
        self.login_path = login_path

    def initiate(self) -> Response:
        """Send the browser to the provider. Creates no state; safe to call repeatedly."""
        url = self.provider.build_authorization_url(LOGIN_REQUEST)
        resp = RedirectResponse(url=url, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    def callback(self, code: Optional[str], *, error: Optional[str] = None) -> Response:
        """
        Redeem the code, validate the identity token and start a session.

        Any failure yields a 500 with a generic message and no session cookie; the
        detailed cause is only logged.
        """
        if error:
            logger.warning("Provider returned an error on callback: %s", error)
            return self._failed()
        if not code:
            logger.warning("Callback without an authorization code")
            return self._failed()

        try:
            tokens = self.provider.exchange_code(code)
            claims = self.provider.validate_identity_token(tokens.id_token, self.cfg.credentials.client_id)
        except CodeExchangeError as e:
            logger.warning("Code exchange failed: %s", str(e))
            return self._failed()
        except IdentityTokenInvalid as e:
            logger.warning("Identity token rejected (reason=%s): %s", e.reason, str(e))
            return self._failed()

        user = UserClaims.from_identity(claims)
        session_value = encode_session(user, self.cfg.session_secret, self.cfg.session_ttl_seconds)
        logger.info("Login succeeded for subject %s", claims.subject)

        resp = RedirectResponse(url=self.cfg.profile_redirect_url, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**session_cookie_kwargs(self.cfg, session_value))
        return resp

    def profile(self, session_value: Optional[str]) -> Response:
        user = decode_session(session_value, self.cfg.session_secret)
        if user is None:
            return RedirectResponse(url=self.login_path, status_code=302)
        resp = JSONResponse(content=asdict(user))
        resp.headers["Cache-Control"] = "no-store"
        return resp

    def logout(self) -> Response:
        resp = HTMLResponse(content=f"Session closed. <a href='{self.login_path}'>Login</a>")
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**clear_session_cookie_kwargs(self.cfg))
        return resp

    def _failed(self) -> Response:
        return PlainTextResponse(AUTH_FAILED_MESSAGE, status_code=500)
