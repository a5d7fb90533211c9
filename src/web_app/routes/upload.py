from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from auth import AUTH_OAUTH, AUTH_PARAM, SessionAuthenticator, resolve_authenticator
from config import config
from errors import (
    AuthenticationError,
    FORM_WITH_ID_EXISTS,
    MISSING_FORM_ID,
    MISSING_FORM_INFO,
    NO_MULTI_PART_CONTENT,
    PARSING_PROBLEM,
    UPLOAD_FAILED,
    FormAlreadyExistsError,
    IncompleteReason,
    IncompleteSubmissionError,
)
from logging_config import DUMP_LOGGER
from models import AuthenticatedUser, FormDefinition, UploadRequest
from xform_parser import parse_xform
from .. import db as database
from ..db import run_db
from ..pages import UPLOAD_URL, render

router = APIRouter()

logger = logging.getLogger(__name__)
dump_logger = logging.getLogger(DUMP_LOGGER)

ADDR = UPLOAD_URL
FORM_NAME_PARAM = "form_name"
FORM_DEF_PARAM = "form_def_file"
FORM_DEF_FILENAME_PARAM = "form_def_filename"
# set by the title page, whose hidden field carries the XML base64-encoded
FORM_DEF_ENCODING_PARAM = "form_def_encoding"
BASE64_ENCODING = "base64"
DEFAULT_FILENAME = "default.xml"


def is_multipart(request: Request) -> bool:
    return request.headers.get("content-type", "").lower().startswith("multipart/")


async def _read_part(value) -> Tuple[str, Optional[str]]:
    """Return the UTF-8 text of a form part and its filename, if it was a file."""
    if isinstance(value, UploadFile):
        raw = await value.read()
        try:
            return raw.decode("utf-8"), value.filename
        except UnicodeDecodeError as exc:
            raise IncompleteSubmissionError(
                IncompleteReason.BAD_PARSE, f"{value.filename or 'upload'} is not valid UTF-8"
            ) from exc
    return str(value), None


def encode_form_xml(xml: str) -> str:
    """Encode XML for a hidden input so browsers cannot rewrite its line breaks."""
    return base64.b64encode(xml.encode("utf-8")).decode("ascii")


def decode_form_xml(encoded: str) -> str:
    try:
        return base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise IncompleteSubmissionError(
            IncompleteReason.BAD_PARSE, "resubmitted form definition is not valid base64 UTF-8"
        ) from exc


async def _read_upload(request: Request) -> UploadRequest:
    try:
        async with request.form(max_part_size=config.max_form_part_bytes) as form:
            name_part = form.get(FORM_NAME_PARAM)
            xml_part = form.get(FORM_DEF_PARAM)
            filename_part = form.get(FORM_DEF_FILENAME_PARAM)
            encoding_part = form.get(FORM_DEF_ENCODING_PARAM)

            form_name = None
            if name_part is not None:
                form_name, _ = await _read_part(name_part)
                form_name = form_name.strip() or None

            form_xml = None
            filename = DEFAULT_FILENAME
            if xml_part is not None:
                form_xml, part_filename = await _read_part(xml_part)
                if part_filename:
                    filename = part_filename
                else:
                    if isinstance(filename_part, str) and filename_part.strip():
                        filename = filename_part.strip()
                    if isinstance(encoding_part, str) and encoding_part.strip().lower() == BASE64_ENCODING:
                        form_xml = decode_form_xml(form_xml)
    except (MultiPartException, StarletteHTTPException) as exc:
        # request.form() reports decoding failures as HTTPException once mounted in an app
        logger.error("Failed to decode multipart upload", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=UPLOAD_FAILED) from exc

    return UploadRequest(form_name=form_name, form_xml=form_xml, filename=filename)


def store_form(upload: UploadRequest, user: AuthenticatedUser) -> FormDefinition:
    """Parse and persist an upload inside one persistence session."""
    with database.form_session() as session:
        form = parse_xform(
            upload.form_name, user.nickname, upload.form_xml, upload.filename, session
        )
        session.persist(form)
        for line in form.dump_tree():
            dump_logger.debug(line)
    return form


def _incomplete_response(
    request: Request, upload: UploadRequest, user: AuthenticatedUser, exc: IncompleteSubmissionError
):
    reason = exc.reason
    logger.warning("Upload of %s by %s incomplete: %s", upload.filename, user.nickname, exc)
    if reason is IncompleteReason.TITLE_MISSING:
        return render(
            request,
            "title.html",
            {
                "title": "Xform Title Entry",
                "user": user,
                "action": ADDR,
                "form_name_field": FORM_NAME_PARAM,
                "form_def_field": FORM_DEF_PARAM,
                "filename_field": FORM_DEF_FILENAME_PARAM,
                "encoding_field": FORM_DEF_ENCODING_PARAM,
                "encoding": BASE64_ENCODING,
                "form_xml": encode_form_xml(upload.form_xml),
                "filename": upload.filename,
            },
        )
    if reason is IncompleteReason.ID_MISSING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MISSING_FORM_ID)
    if reason is IncompleteReason.BAD_PARSE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=PARSING_PROBLEM + exc.message)
    logger.error("Unrecognised incomplete submission reason %r", reason)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=UPLOAD_FAILED)


@router.get(ADDR)
async def upload_page(request: Request):
    """Render the XForm upload page."""
    authenticator = SessionAuthenticator()
    try:
        user = await authenticator.authenticate(request)
    except AuthenticationError as exc:
        return authenticator.challenge(request, exc)
    return render(
        request,
        "upload.html",
        {"title": "Xform Upload", "user": user, "action": ADDR, "form_def_field": FORM_DEF_PARAM},
    )


@router.post(ADDR)
async def upload_form(request: Request):
    """Take an XForm from a multipart body, parse it and store it."""
    authenticator = resolve_authenticator(request)
    try:
        user = await authenticator.authenticate(request)
    except AuthenticationError as exc:
        logger.info("Rejected %s upload: %s", authenticator.method, exc)
        return authenticator.challenge(request, exc)

    if not is_multipart(request):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_MULTI_PART_CONTENT)

    upload = UploadRequest()
    try:
        upload = await _read_upload(request)
        if not upload.form_xml:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MISSING_FORM_INFO)
        form = await run_db(store_form, upload, user)
    except FormAlreadyExistsError as exc:
        logger.warning("Upload of %s by %s rejected: %s", upload.filename, user.nickname, exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=FORM_WITH_ID_EXISTS) from exc
    except IncompleteSubmissionError as exc:
        return _incomplete_response(request, upload, user, exc)

    logger.info("Stored form %s (%s) uploaded by %s", form.form_id, form.title, user.nickname)
    target = config.forms_url
    if user.method == AUTH_OAUTH:
        # bearer clients following the redirect must stay in OAuth mode
        target = f"{target}?{AUTH_PARAM}={AUTH_OAUTH}"
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
