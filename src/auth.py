from __future__ import annotations

from urllib.parse import urlencode

from fastapi import Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from config import config
from errors import OAUTH_ERROR, AuthenticationError
from models import AuthenticatedUser
from web_app import db as database
from web_app.db import run_db


AUTH_PARAM = "auth"
AUTH_OAUTH = "oauth"


class Authenticator:
    """Resolve the caller of a request, or build the response that asks for credentials."""

    method = "session"

    async def authenticate(self, request: Request) -> AuthenticatedUser:
        raise NotImplementedError

    def challenge(self, request: Request, exc: AuthenticationError) -> Response:
        raise NotImplementedError


class SessionAuthenticator(Authenticator):
    method = "session"

    async def authenticate(self, request: Request) -> AuthenticatedUser:
        session_id = request.cookies.get(config.session_cookie)
        if not session_id:
            raise AuthenticationError("no session")
        nickname = await run_db(database.get_login_user, session_id)
        if not nickname:
            raise AuthenticationError("unknown session")
        return AuthenticatedUser(nickname=nickname, method="session")

    def challenge(self, request: Request, exc: AuthenticationError) -> Response:
        target = f"{config.login_url}?{urlencode({'next': request.url.path})}"
        return RedirectResponse(target, status_code=status.HTTP_302_FOUND)


class OAuthAuthenticator(Authenticator):
    method = "oauth"

    async def authenticate(self, request: Request) -> AuthenticatedUser:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("missing bearer token")
        if token.strip() not in config.oauth_tokens:
            raise AuthenticationError("invalid token")
        nickname = config.oauth_tokens[token.strip()]
        if not nickname:
            # token known but bound to nobody
            raise AuthenticationError()
        return AuthenticatedUser(nickname=nickname, method="oauth")

    def challenge(self, request: Request, exc: AuthenticationError) -> Response:
        detail = OAUTH_ERROR
        if exc.reason:
            detail += "\n Reason: " + exc.reason
        return JSONResponse(
            {"detail": detail},
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


def resolve_authenticator(request: Request) -> Authenticator:
    """Pick OAuth when ``?auth=oauth`` is given, session login otherwise."""
    mode = request.query_params.get(AUTH_PARAM, "")
    if mode.lower() == AUTH_OAUTH:
        return OAuthAuthenticator()
    return SessionAuthenticator()
