"""Exceptions raised while authenticating, parsing and storing uploaded forms."""

from __future__ import annotations

import enum
from typing import Optional


# Client-facing messages
NO_MULTI_PART_CONTENT = "Request does not contain multipart content"
MISSING_FORM_INFO = "Missing form info: the form definition file was not supplied"
MISSING_FORM_ID = "Missing form id: the main instance has no id attribute"
PARSING_PROBLEM = "Problem parsing the form definition: "
FORM_WITH_ID_EXISTS = "A form with the same id already exists"
OAUTH_ERROR = "OAuth authentication failed"
UPLOAD_FAILED = "Internal error while reading the upload"


class IncompleteReason(enum.Enum):
    TITLE_MISSING = "title_missing"
    ID_MISSING = "id_missing"
    BAD_PARSE = "bad_parse"


class AuthenticationError(Exception):
    """Caller identity could not be resolved."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(reason or "not authenticated")
        self.reason = reason


class FormAlreadyExistsError(Exception):
    def __init__(self, form_id: str):
        super().__init__(f"form {form_id!r} already exists")
        self.form_id = form_id


class IncompleteSubmissionError(Exception):
    """The form definition is missing required data or could not be parsed."""

    def __init__(self, reason: IncompleteReason, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason
        self.message = message


__all__ = [
    "AuthenticationError",
    "FormAlreadyExistsError",
    "IncompleteReason",
    "IncompleteSubmissionError",
]
