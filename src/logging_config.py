from __future__ import annotations

import logging
from pathlib import Path


FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DUMP_LOGGER = "xform.dump"


def setup_logging(level: str, log_file: Path | str | None = None) -> None:
    """Configure logging for console and optional file output.

    Parameters
    ----------
    level:
        Log level name (e.g., "INFO", "DEBUG"). Unknown names fall back to INFO.
    log_file:
        If provided, logs are also written to this file.

    The form dump logger only emits when ``level`` is ``DEBUG``.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    numeric = getattr(logging, str(level).upper(), logging.INFO)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(level=numeric, format=FORMAT, handlers=handlers, force=True)
    logging.getLogger(DUMP_LOGGER).setLevel(
        logging.DEBUG if numeric <= logging.DEBUG else logging.INFO
    )
