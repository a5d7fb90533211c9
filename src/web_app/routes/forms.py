from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from auth import resolve_authenticator
from errors import AuthenticationError
from models import FormDefinition
from .. import db as database
from ..db import run_db
from ..pages import render

router = APIRouter()
logger = logging.getLogger(__name__)


async def _form_or_404(form_id: str) -> FormDefinition:
    form = await run_db(database.get_form, form_id)
    if form is None:
        logger.debug("Form %s not found", form_id)
        raise HTTPException(status_code=404, detail="Form not found")
    return form


@router.get("/forms")
async def list_forms(request: Request):
    """List uploaded forms, newest first."""
    authenticator = resolve_authenticator(request)
    try:
        user = await authenticator.authenticate(request)
    except AuthenticationError as exc:
        return authenticator.challenge(request, exc)
    forms = await run_db(database.list_forms)
    return render(request, "forms.html", {"title": "Forms", "user": user, "forms": forms})


@router.get("/forms/{form_id}", response_model=FormDefinition)
async def get_form(form_id: str, request: Request):
    authenticator = resolve_authenticator(request)
    try:
        await authenticator.authenticate(request)
    except AuthenticationError as exc:
        return authenticator.challenge(request, exc)
    return await _form_or_404(form_id)


@router.get("/forms/{form_id}/xml")
async def get_form_xml(form_id: str, request: Request):
    """Return the form definition exactly as it was uploaded."""
    authenticator = resolve_authenticator(request)
    try:
        await authenticator.authenticate(request)
    except AuthenticationError as exc:
        return authenticator.challenge(request, exc)
    form = await _form_or_404(form_id)
    return Response(
        content=form.xml,
        media_type="application/xml",
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(form.filename)}"},
    )
