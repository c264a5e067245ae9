from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

# Token response fields that describe who authorized the integration.
IDENTITY_FIELDS = ("user_id", "team_id", "installation_id", "email")


class ProviderError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def rejected(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


@dataclass
class ProviderToken:
    access_token: str
    token_type: str = "bearer"
    identity: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "ProviderToken":
        access_token = payload.get("access_token")
        token_type = payload.get("token_type", "bearer")

        if not isinstance(access_token, str) or not access_token:
            raise ProviderError("Token response missing access_token.")
        if not isinstance(token_type, str):
            raise ProviderError("Token response token_type must be a string.")

        identity = {
            key: payload[key]
            for key in IDENTITY_FIELDS
            if payload.get(key) is not None
        }
        return cls(access_token=access_token, token_type=token_type, identity=identity)


async def exchange_code(
    token_url: str,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> ProviderToken:
    own_client = client is None
    http_client = client or httpx.AsyncClient()

    try:
        response = await http_client.post(
            token_url,
            data={
                "grant_type": "authorization_code",
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            },
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as error:
        raise ProviderError(
            f"Token request failed with status {error.response.status_code}: "
            f"{error.response.text}",
            status_code=error.response.status_code,
        ) from error
    except httpx.RequestError as error:
        raise ProviderError(f"Token endpoint request failed: {error}") from error
    except ValueError as error:
        raise ProviderError("Token endpoint returned a non-JSON body.") from error
    finally:
        if own_client:
            await http_client.aclose()

    if not isinstance(payload, dict):
        raise ProviderError("Token response must be a JSON object.")
    return ProviderToken.from_payload(payload)


async def fetch_user_profile(
    userinfo_url: str,
    access_token: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    own_client = client is None
    http_client = client or httpx.AsyncClient()

    try:
        response = await http_client.get(
            userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as error:
        raise ProviderError(
            f"Profile request failed with status {error.response.status_code}.",
            status_code=error.response.status_code,
        ) from error
    except httpx.RequestError as error:
        raise ProviderError(f"Profile endpoint request failed: {error}") from error
    except ValueError as error:
        raise ProviderError("Profile endpoint returned a non-JSON body.") from error
    finally:
        if own_client:
            await http_client.aclose()

    # Some providers wrap the profile, e.g. {"user": {...}}.
    if isinstance(payload, dict) and isinstance(payload.get("user"), dict):
        payload = payload["user"]
    if not isinstance(payload, dict):
        raise ProviderError("Profile response must be a JSON object.")
    return payload
