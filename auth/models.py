from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PendingAuthSession:
    state: str
    created_at: float


@dataclass
class AuthorizationResult:
    code: str
    state: str
    installation_id: str | None = None


@dataclass
class CredentialRecord:
    access_token: str
    user_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "CredentialRecord":
        if not isinstance(payload, dict):
            raise ValueError("Exchange response must be a JSON object.")

        access_token = payload.get("access_token")
        user_data = payload.get("user_data") or {}

        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Exchange response missing access_token.")
        if not isinstance(user_data, dict):
            raise ValueError("Exchange response user_data must be an object.")

        return cls(access_token=access_token, user_data=user_data)
