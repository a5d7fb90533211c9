from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
import uvicorn

from config import config
from logging_config import setup_logging
from . import db as database
from .routes import forms, login, upload

app = FastAPI(title="XForm upload")

logger = logging.getLogger(__name__)


@app.get("/")
async def index():
    """Send visitors to the upload page."""
    return RedirectResponse(upload.ADDR)


# --------- Database ----------


@app.on_event("startup")
async def startup() -> None:
    await database.run_db(database.init_db)


@app.on_event("shutdown")
def _shutdown() -> None:
    database.close_db()

# --------- Routes ----------
app.include_router(upload.router)
app.include_router(forms.router)
app.include_router(login.router)


def main() -> None:
    """Start the server.

    Values come from environment variables:
    ``HOST`` (default ``0.0.0.0``), ``PORT`` (default ``8000``)
    and ``RELOAD`` (``true``/``false``, default ``false``).
    """
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes"}

    setup_logging(config.log_level, config.log_file)
    logger.info("Starting FastAPI server on %s:%s", host, port)
    if reload:
        uvicorn.run("web_app.server:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
