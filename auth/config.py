from __future__ import annotations

import os
from dataclasses import dataclass, field

from .urls import is_https_url

REQUIRED_ENV = (
    "AUTH_AUTHORIZE_URL",
    "AUTH_CLIENT_ID",
    "AUTH_REDIRECT_URI",
    "AUTH_EXCHANGE_BASE_URL",
)


@dataclass
class AuthConfig:
    authorize_url: str
    client_id: str
    redirect_uri: str
    exchange_base_url: str
    scopes: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not is_https_url(self.redirect_uri):
            raise RuntimeError(
                "redirect_uri must be the hosted HTTPS callback page (for example: "
                "https://auth.example.com/auth/callback)."
            )


def load_auth_config() -> AuthConfig:
    missing = [key for key in REQUIRED_ENV if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    return AuthConfig(
        authorize_url=os.environ["AUTH_AUTHORIZE_URL"].strip(),
        client_id=os.environ["AUTH_CLIENT_ID"].strip(),
        redirect_uri=os.environ["AUTH_REDIRECT_URI"].strip(),
        exchange_base_url=os.environ["AUTH_EXCHANGE_BASE_URL"].strip(),
        scopes=os.getenv("AUTH_SCOPES", "").split(),
    )
