from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Form, Request, status
from fastapi.responses import RedirectResponse

from config import config
from .. import db as database
from ..db import run_db
from ..pages import LOGOUT_URL, UPLOAD_URL, render

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_NEXT = UPLOAD_URL


def _safe_next(target: str | None) -> str:
    """Only follow same-site relative paths after login."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return DEFAULT_NEXT
    return target


def _check_password(username: str, password: str) -> bool:
    expected = config.users.get(username)
    if expected is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8"))


@router.get("/login")
async def login_page(request: Request, next: str | None = None):
    return render(
        request,
        "login.html",
        {"title": "Log in", "action": config.login_url, "next": _safe_next(next)},
    )


@router.post("/login")
async def login(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    next: str | None = Form(None),
):
    """Check credentials and open a login session."""
    if not _check_password(username, password):
        logger.warning("Failed login for %s", username)
        return render(
            request,
            "login.html",
            {
                "title": "Log in",
                "action": config.login_url,
                "next": _safe_next(next),
                "error": "Unknown user name or wrong password",
            },
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    session_id = await run_db(database.create_login_session, username)
    logger.info("User %s logged in", username)
    response = RedirectResponse(_safe_next(next), status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(config.session_cookie, session_id, httponly=True, samesite="lax")
    return response


@router.get(LOGOUT_URL)
async def logout(request: Request):
    session_id = request.cookies.get(config.session_cookie)
    if session_id:
        await run_db(database.delete_login_session, session_id)
    response = RedirectResponse(config.login_url, status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(config.session_cookie)
    return response
