"""
HTTP surface for the login flow.

    GET /auth/login      -> 302 to the provider's consent screen
    GET /auth/callback   -> set session cookie, 302 to the profile destination
    GET /profile         -> 200 {email, name, picture} or 302 to /auth/login
    GET /logout          -> clear session cookie, 200
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from gatekeeper.auth.config import AuthConfig, load_auth_config
from gatekeeper.auth.flow import LoginFlow
from gatekeeper.auth.provider import ProviderClient

logger = logging.getLogger(__name__)


def create_app(cfg: Optional[AuthConfig] = None, provider: Optional[ProviderClient] = None) -> FastAPI:
    """
    Build the app. Loading configuration here means a missing credential or signing
    secret raises ConfigurationError before anything is served.
    """
    cfg = cfg or load_auth_config()
    provider = provider or ProviderClient.from_config(cfg)
    flow = LoginFlow(cfg, provider)

    app = FastAPI(title="Gatekeeper login service")

    if cfg.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming HTTP requests."""
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/auth/login")
    @app.get("/auth/google")
    def auth_login() -> Response:
        """Initiate the authorization-code flow."""
        return flow.initiate()

    @app.get("/auth/callback")
    @app.get("/auth/google/callback")
    def auth_callback(
        code: Optional[str] = Query(None),
        error: Optional[str] = Query(None),
    ) -> Response:
        """Handle the provider redirect after the user consents (or declines)."""
        return flow.callback(code, error=error)

    @app.get("/profile")
    def profile(request: Request) -> Response:
        return flow.profile(request.cookies.get(cfg.cookie_name))

    @app.get("/logout")
    def logout() -> Response:
        return flow.logout()

    return app


def run(host: str = "0.0.0.0", port: int = 3000) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = create_app()
    logger.info("Starting login service on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
