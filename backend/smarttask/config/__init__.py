"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
:class:`Settings` container (retrieved via :func:`get_settings`).  Values are
read from the process environment after python-dotenv has loaded the project
``.env`` file (or ``.env.test`` when ``NODE_ENV=test``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory.  This file is
# located at ``backend/smarttask/config/__init__.py``.

_REPO_ROOT = Path(__file__).resolve().parents[3]

DEV_JWT_SECRET = "dev-secret-change-me-dev-secret-change-me"


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool

    # JWT ---------------------------------------------------------------
    jwt_secret: str
    jwt_issuer: str
    jwt_audience: str
    access_token_expiration_minutes: int
    refresh_token_expiration_days: int

    # Database ---------------------------------------------------------
    database_url: str

    # OpenAI -----------------------------------------------------------
    openai_api_key: Any
    openai_model: str

    # Misc
    log_level: str
    environment: str
    allowed_cors_origins: str

    # Role gate --------------------------------------------------------
    admin_path_prefix: str
    admin_role: str

    # Helper for tests to override values at runtime -------------------
    def override(self, **kwargs: Any) -> None:  # pragma: no cover – test util
        for key, value in kwargs.items():
            if not hasattr(self, key):  # pragma: no cover – safety
                raise AttributeError(f"Settings has no attribute '{key}'")
            setattr(self, key, value)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    node_env = os.getenv("NODE_ENV", "development")

    if node_env == "test":
        env_path = _REPO_ROOT / ".env.test"
        if not env_path.exists():
            env_path = _REPO_ROOT / ".env"
    else:
        env_path = _REPO_ROOT / ".env"

    if env_path.exists():
        # Explicit TESTING in the environment wins over the file
        current_testing = os.getenv("TESTING")
        load_dotenv(env_path, override=True)
        if current_testing:
            os.environ["TESTING"] = current_testing

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        jwt_secret=os.getenv("JWT_SECRET", DEV_JWT_SECRET),
        jwt_issuer=os.getenv("JWT_ISSUER", "smarttask-api"),
        jwt_audience=os.getenv("JWT_AUDIENCE", "smarttask-clients"),
        access_token_expiration_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRATION_MINUTES", "60")),
        refresh_token_expiration_days=int(os.getenv("REFRESH_TOKEN_EXPIRATION_DAYS", "7")),
        database_url=os.getenv("DATABASE_URL", ""),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        environment=os.getenv("ENVIRONMENT", "development"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
        admin_path_prefix=os.getenv("ADMIN_PATH_PREFIX", "/api/admin"),
        admin_role=os.getenv("ADMIN_ROLE", "Admin"),
    )


# ------------------------------------------------------------------
# Runtime validation – fail fast when *required* secrets are missing.
# ------------------------------------------------------------------


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when mandatory configuration is missing.

    Tests run against an in-memory database with a deterministic secret, so
    the check is skipped when ``TESTING`` is set.
    """

    if settings.testing:
        return

    missing_vars = []

    if not settings.database_url:
        missing_vars.append("DATABASE_URL")

    secret = settings.jwt_secret.strip()
    if secret == DEV_JWT_SECRET or len(secret) < 32:
        missing_vars.append("JWT_SECRET (must be >=32 chars and not the dev default)")

    if missing_vars:
        error_msg = (
            f"CRITICAL: Missing required environment variables: {', '.join(missing_vars)}\n"
            f"Set these in your .env file or deployment environment.\n"
            f"Current DATABASE_URL: '{settings.database_url}'\n"
            f"Current OPENAI_API_KEY: '{'SET' if settings.openai_api_key else 'MISSING'}'"
        )
        raise RuntimeError(error_msg)


def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment."""

    settings = _load_settings()
    _validate_required(settings)
    return settings


__all__ = [
    "Settings",
    "get_settings",
]
