"""HTTP API for the waitlist and the application factory."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .auth import register_auth_routes
from .config import Settings, load_settings
from .database import ConflictError, Database, StoreError, ValidationError
from .identity import GoogleIdentityVerifier, IdentityVerifier
from .sessions import SessionManager

logger = logging.getLogger("waitlist.service")

OAUTH_COOKIE_NAME = "waitlist_oauth"
OAUTH_HANDSHAKE_MAX_AGE = 10 * 60


class WaitlistEntryView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str
    created_at: datetime


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _signup_email(request: Request) -> Optional[str]:
    """Return the ``email`` string from a JSON body, or ``None`` if there is none."""

    try:
        payload = await request.json()
    except ValueError:
        # Empty or malformed bodies are treated like a missing email.
        return None
    if not isinstance(payload, dict):
        return None
    email = payload.get("email")
    return email if isinstance(email, str) else None


def register_waitlist_routes(app: FastAPI, database: Database) -> None:
    """Expose the public waitlist endpoints on the provided FastAPI application."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/waitlist", status_code=status.HTTP_201_CREATED)
    async def add_to_waitlist(request: Request):
        email = await _signup_email(request)
        try:
            database.add_waitlist_entry(email)
        except ValidationError:
            return _error(status.HTTP_400_BAD_REQUEST, "Email is required")
        except ConflictError:
            return _error(status.HTTP_409_CONFLICT, "Email already exists in waitlist")
        except StoreError:
            logger.exception("Error adding to waitlist")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error adding to waitlist")

        logger.info("New waitlist signup recorded")
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "Successfully added to waitlist"},
        )

    @app.get("/api/waitlist", response_model=List[WaitlistEntryView])
    async def list_waitlist():
        try:
            entries = database.list_waitlist_entries()
        except StoreError:
            logger.exception("Error fetching waitlist")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error fetching waitlist")
        return [WaitlistEntryView(email=entry.email, created_at=entry.created_at) for entry in entries]


def _build_verifier(settings: Settings) -> Optional[IdentityVerifier]:
    if not settings.oauth_enabled:
        logger.warning("Google OAuth credentials are not configured; sign-in is disabled")
        return None
    return GoogleIdentityVerifier(
        settings.google_client_id or "",
        settings.google_client_secret or "",
    )


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    verifier: IdentityVerifier | None = None,
    session_manager: SessionManager | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    Collaborators that are not supplied are built from ``settings``; tests pass
    their own database, identity verifier and session manager.
    """

    app_settings = (settings or load_settings()).with_session_secret()

    db = database or Database(app_settings.database_path)
    db.initialize()

    identity_verifier = verifier if verifier is not None else _build_verifier(app_settings)
    sessions = session_manager or SessionManager(
        db.get_user,
        ttl=timedelta(hours=app_settings.session_ttl_hours),
    )

    if not app_settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    app = FastAPI(
        title="Waitlist API",
        version="0.1.0",
        description="Google sign-in and waitlist signups.",
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=app_settings.session_secret,
        session_cookie=OAUTH_COOKIE_NAME,
        max_age=OAUTH_HANDSHAKE_MAX_AGE,
        same_site="lax",
        https_only=app_settings.secure_cookies,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[app_settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=list(app_settings.trusted_proxies))

    app.state.settings = app_settings
    app.state.database = db
    app.state.session_manager = sessions
    app.state.verifier = identity_verifier

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Unexpected data store failure on %s", request.url.path, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    register_auth_routes(
        app,
        db,
        verifier=identity_verifier,
        session_manager=sessions,
        settings=app_settings,
    )
    register_waitlist_routes(app, db)

    return app


__all__ = ["create_app", "register_waitlist_routes"]
