from __future__ import annotations

import secrets
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlencode

import pytest
from starlette.requests import Request
from starlette.responses import RedirectResponse

from waitlist_api.config import Settings
from waitlist_api.database import Database
from waitlist_api.identity import AuthError, IdentityProfile

CLIENT_URL = "http://client.test"


class FakeVerifier:
    """Stands in for Google: hands out a fixed profile for any code.

    Like the real client it keeps the pending ``state`` in the handshake
    session and refuses callbacks that do not echo it back.
    """

    session_key = "_fake_google_state"

    def __init__(self, profile: Optional[IdentityProfile] = None) -> None:
        self.profile = profile or IdentityProfile(
            external_id="google-123",
            email="ada@example.com",
            name="Ada Lovelace",
            picture="https://example.com/ada.png",
        )
        self.error: Optional[str] = None
        self.calls: List[Tuple[str, str]] = []

    async def authorize_redirect(self, request: Request, redirect_uri: str) -> RedirectResponse:
        state = secrets.token_urlsafe(16)
        request.session[self.session_key] = {"state": state, "redirect_uri": redirect_uri}
        query = urlencode({"redirect_uri": redirect_uri, "state": state, "scope": "profile email"})
        return RedirectResponse(f"https://accounts.example.test/auth?{query}", status_code=302)

    async def verify(self, request: Request) -> IdentityProfile:
        pending = request.session.pop(self.session_key, None)
        if not pending or request.query_params.get("state") != pending["state"]:
            raise AuthError("mismatching_state")
        code = request.query_params.get("code") or ""
        self.calls.append((code, pending["redirect_uri"]))
        if self.error:
            raise AuthError(self.error)
        return self.profile


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        client_url=CLIENT_URL,
        session_secret="tests-secret-key",
        database_path=tmp_path / "waitlist.sqlite3",
    )


@pytest.fixture()
def database(settings: Settings) -> Database:
    db = Database(settings.database_path)
    db.initialize()
    return db


@pytest.fixture()
def verifier() -> FakeVerifier:
    return FakeVerifier()
