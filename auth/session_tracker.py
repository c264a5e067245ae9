from __future__ import annotations

import hmac
import json
import time

from .constants import LOGGER, PENDING_AUTH_TTL_SECONDS, STATE_KEY
from .credential_store import CredentialStore
from .errors import CsrfValidationError
from .models import PendingAuthSession
from .state import generate_state


class OAuthSessionTracker:
    """Binds an outgoing authorization request to the callback that answers it.

    Only one pending session exists at a time. Calling ``begin()`` again
    before the first callback arrives replaces the stored nonce, so the
    earlier browser round-trip will fail validation. Concurrent sign-in
    attempts are not supported.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        max_age_seconds: int = PENDING_AUTH_TTL_SECONDS,
        state_factory=generate_state,
        clock=time.time,
    ) -> None:
        self._store = store
        self._max_age_seconds = max_age_seconds
        self._state_factory = state_factory
        self._clock = clock

    async def begin(self) -> PendingAuthSession:
        session = PendingAuthSession(state=self._state_factory(), created_at=self._clock())
        payload = json.dumps({"state": session.state, "created_at": session.created_at})
        async with self._store as store:
            await store.set(STATE_KEY, payload)
        LOGGER.info("Pending authorization session started")
        return session

    async def validate(self, received_state: str | None) -> bool:
        if not received_state:
            return False

        pending = await self._load()
        if pending is None:
            return False
        if self._clock() - pending.created_at > self._max_age_seconds:
            LOGGER.warning("Pending authorization session expired")
            return False
        return hmac.compare_digest(
            pending.state.encode("utf-8"), received_state.encode("utf-8")
        )

    async def consume(self) -> None:
        async with self._store as store:
            await store.delete(STATE_KEY)

    async def verify(self, received_state: str | None) -> None:
        try:
            valid = await self.validate(received_state)
        finally:
            await self.consume()
        if not valid:
            LOGGER.warning("OAuth state validation failed")
            raise CsrfValidationError()

    async def _load(self) -> PendingAuthSession | None:
        async with self._store as store:
            raw = await store.get(STATE_KEY)
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            return PendingAuthSession(
                state=str(payload["state"]),
                created_at=float(payload["created_at"]),
            )
        except (ValueError, KeyError, TypeError):
            LOGGER.warning("Discarding unreadable pending authorization session")
            return None
