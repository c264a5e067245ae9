from __future__ import annotations

import json
from typing import Any

from .constants import ACCESS_TOKEN_KEY, LOGGER, USER_DATA_KEY
from .credential_store import CredentialStore
from .errors import StorageError


class TokenManager:
    """Reads and writes the signed-in user's credentials.

    One instance is created per app lifetime and passed to whatever needs
    credential access. ``user_data`` is stored opaquely as JSON.
    """

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    async def store_tokens(self, access_token: str, user_data: dict[str, Any]) -> None:
        try:
            serialized = json.dumps(user_data)
        except (TypeError, ValueError) as error:
            raise StorageError(f"User data is not serializable: {error}") from error

        # Token first: if the second write fails, is_authenticated() still holds.
        async with self._store as store:
            await store.set(ACCESS_TOKEN_KEY, access_token)
            await store.set(USER_DATA_KEY, serialized)
        LOGGER.info("Stored credentials")

    async def get_access_token(self) -> str | None:
        async with self._store as store:
            return await store.get(ACCESS_TOKEN_KEY)

    async def get_user_data(self) -> dict[str, Any] | None:
        async with self._store as store:
            raw = await store.get(USER_DATA_KEY)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as error:
            raise StorageError("Stored user data is corrupt.") from error

    async def is_authenticated(self) -> bool:
        return bool(await self.get_access_token())

    async def clear_tokens(self) -> None:
        async with self._store as store:
            await store.delete(ACCESS_TOKEN_KEY)
            await store.delete(USER_DATA_KEY)
        LOGGER.info("Cleared stored credentials")
