from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

from .constants import LOGGER, REQUIRED_ENV

_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*$")


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    missing = [key for key in REQUIRED_ENV if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    public_url = os.getenv("BRIDGE_PUBLIC_URL", "").strip()
    parsed_public_url = urlparse(public_url)
    if parsed_public_url.scheme != "https" or not parsed_public_url.netloc:
        raise RuntimeError(
            "BRIDGE_PUBLIC_URL must be a valid public HTTPS URL (for example: "
            "https://auth.example.com)."
        )

    scheme = os.getenv("BRIDGE_APP_SCHEME", "").strip()
    if not _SCHEME_PATTERN.match(scheme) or scheme.lower() in {"http", "https"}:
        raise RuntimeError(
            "BRIDGE_APP_SCHEME must be the app's custom URL scheme (for example: myapp)."
        )

    get_env_int("BRIDGE_PROVIDER_TIMEOUT", 30)


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("BRIDGE_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
