"""Google OAuth 2.0 sign-in built on Authlib's Starlette client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("waitlist.identity")

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

DEFAULT_SCOPES: tuple[str, ...] = ("profile", "email")


class AuthError(RuntimeError):
    """Raised when the identity provider does not vouch for the user."""


@dataclass(frozen=True)
class IdentityProfile:
    """Profile details returned by the provider for a verified identity."""

    external_id: str
    email: Optional[str]
    name: Optional[str]
    picture: Optional[str]


class IdentityVerifier(Protocol):
    async def authorize_redirect(self, request: Request, redirect_uri: str) -> Response:
        ...

    async def verify(self, request: Request) -> IdentityProfile:
        ...


def _first_str(payload: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value:
            return str(value)
    return None


def profile_from_userinfo(payload: Dict[str, Any]) -> IdentityProfile:
    """Extract the fields we keep from a userinfo document."""

    external_id = _first_str(payload, "sub", "id")
    if not external_id:
        raise AuthError("Userinfo response did not include a subject identifier")

    email = _first_str(payload, "email")
    if email is None:
        emails = payload.get("emails")
        if isinstance(emails, list) and emails and isinstance(emails[0], dict):
            email = _first_str(emails[0], "value")

    return IdentityProfile(
        external_id=external_id,
        email=email,
        name=_first_str(payload, "name", "displayName"),
        picture=_first_str(payload, "picture"),
    )


class GoogleIdentityVerifier:
    """Authorization-code flow with PKCE against Google's OAuth endpoints.

    The ``state`` and PKCE verifier are kept by Authlib in ``request.session``,
    so the application must install Starlette's ``SessionMiddleware``.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        scopes: Sequence[str] = DEFAULT_SCOPES,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not client_id or not client_secret:
            raise ValueError("Google client id and secret must both be provided")
        self._scopes = tuple(scopes)

        client_kwargs: Dict[str, Any] = {
            "scope": " ".join(self._scopes),
            "code_challenge_method": "S256",
            "timeout": timeout,
        }
        if transport is not None:
            client_kwargs["transport"] = transport

        self._oauth = OAuth()
        self._client = self._oauth.register(
            name="google",
            client_id=client_id,
            client_secret=client_secret,
            authorize_url=GOOGLE_AUTHORIZE_URL,
            access_token_url=GOOGLE_TOKEN_URL,
            userinfo_endpoint=GOOGLE_USERINFO_URL,
            client_kwargs=client_kwargs,
        )

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._scopes

    async def authorize_redirect(self, request: Request, redirect_uri: str) -> Response:
        return await self._client.authorize_redirect(request, redirect_uri)

    async def verify(self, request: Request) -> IdentityProfile:
        if not request.query_params.get("code"):
            raise AuthError("Missing authorization code")

        try:
            token = await self._client.authorize_access_token(request)
            if not token.get("access_token"):
                raise AuthError("Token response did not include an access token")
            userinfo = await self._client.userinfo(token=token)
        except OAuthError as exc:
            # The provider's description may echo the code; keep only the error name.
            raise AuthError(f"Google rejected the sign-in ({exc.error})") from exc
        except httpx.HTTPStatusError as exc:
            raise AuthError(f"Google request failed (status={exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"Could not reach Google: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            raise AuthError("Google returned a malformed response") from exc

        profile = profile_from_userinfo(dict(userinfo))
        logger.debug("Google vouched for identity %s", profile.external_id)
        return profile


__all__ = [
    "AuthError",
    "DEFAULT_SCOPES",
    "GoogleIdentityVerifier",
    "IdentityProfile",
    "IdentityVerifier",
    "profile_from_userinfo",
]
