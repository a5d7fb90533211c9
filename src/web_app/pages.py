from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from fastapi import Request
from fastapi.templating import Jinja2Templates

from config import config

TEMPLATES_DIR = Path(__file__).parent / "templates"
UPLOAD_URL = "/upload"
LOGOUT_URL = "/logout"

templates = Jinja2Templates(directory=TEMPLATES_DIR)


def render(request: Request, name: str, context: Dict[str, Any] | None = None, status_code: int = 200):
    """Render an HTML template from ``templates/`` with the navigation URLs filled in."""
    values: Dict[str, Any] = {
        "forms_url": config.forms_url,
        "login_url": config.login_url,
        "upload_url": UPLOAD_URL,
        "logout_url": LOGOUT_URL,
    }
    values.update(context or {})
    return templates.TemplateResponse(request, name, values, status_code=status_code)
