"""Google sign-in and session routes."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .config import Settings
from .database import Database
from .identity import AuthError, IdentityVerifier
from .models import User
from .sessions import SessionManager

logger = logging.getLogger("waitlist.auth")

SESSION_COOKIE_NAME = "waitlist_session"
LOGOUT_MESSAGE = "Logged out successfully"


class UserView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    google_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    created_at: datetime


def _user_to_view(user: User) -> UserView:
    return UserView(
        id=user.id,
        google_id=user.google_id,
        email=user.email,
        name=user.name,
        picture=user.picture,
        created_at=user.created_at,
    )


def register_auth_routes(
    app: FastAPI,
    database: Database,
    *,
    verifier: Optional[IdentityVerifier],
    session_manager: SessionManager,
    settings: Settings,
) -> None:
    """Expose the login handshake and session endpoints on ``app``."""

    def _callback_url(request: Request) -> str:
        if settings.google_callback_url:
            return settings.google_callback_url
        return str(request.url_for("google_callback"))

    def _failure_redirect() -> RedirectResponse:
        return RedirectResponse(settings.failure_redirect, status_code=status.HTTP_302_FOUND)

    def _issue_session_cookie(response: Response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=session_manager.cookie_max_age,
            secure=settings.secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _clear_session_cookie(response: Response, token: Optional[str]) -> None:
        session_manager.destroy(token)
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")

    @app.get("/auth/google", name="google_login")
    async def google_login(request: Request):
        if verifier is None:
            logger.error(
                "Google sign-in requested but GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are not configured"
            )
            return _failure_redirect()

        return await verifier.authorize_redirect(request, _callback_url(request))

    @app.get("/auth/google/callback", name="google_callback")
    async def google_callback(request: Request, error: Optional[str] = None):
        if error:
            logger.warning("Google sign-in was rejected by the provider: %s", error)
            return _failure_redirect()
        if verifier is None:
            logger.error("Google callback received but sign-in is not configured")
            return _failure_redirect()

        try:
            profile = await verifier.verify(request)
        except AuthError as exc:
            logger.warning("Google sign-in verification failed: %s", exc)
            return _failure_redirect()

        user = database.find_or_create_user(
            profile.external_id,
            profile.email,
            profile.name,
            profile.picture,
        )

        session_manager.destroy(request.cookies.get(SESSION_COOKIE_NAME))
        token = session_manager.serialize(user)
        logger.info("User %s signed in with Google", user.id)

        response = RedirectResponse(settings.profile_redirect, status_code=status.HTTP_302_FOUND)
        _issue_session_cookie(response, token)
        return response

    @app.get("/api/user", response_model=Optional[UserView])
    async def current_user(request: Request, response: Response) -> Optional[UserView]:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        user = session_manager.deserialize(token)
        if user is None:
            if token:
                _clear_session_cookie(response, token)
            return None
        return _user_to_view(user)

    @app.get("/api/logout")
    async def logout(request: Request) -> JSONResponse:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        request.session.clear()
        response = JSONResponse({"message": LOGOUT_MESSAGE})
        _clear_session_cookie(response, token)
        if token:
            logger.info("Session ended")
        return response


__all__ = ["SESSION_COOKIE_NAME", "UserView", "register_auth_routes"]
