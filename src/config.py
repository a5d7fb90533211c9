from __future__ import annotations

from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the upload service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "INFO"
    log_file: Optional[str] = None
    db_path: str = "xforms.sqlite"
    forms_url: str = "/forms"
    login_url: str = "/login"
    session_cookie: str = "xform_session"
    # limit for non-file multipart parts, such as the XForm resubmitted from the title page
    max_form_part_bytes: int = 16 * 1024 * 1024
    # nickname -> password for the login page
    users: Dict[str, str] = {}
    # bearer token -> nickname
    oauth_tokens: Dict[str, str] = {}


config = Settings()

__all__ = ["Settings", "config"]
