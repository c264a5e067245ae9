from __future__ import annotations

import secrets

STATE_BYTES = 32


def generate_state() -> str:
    """Return an unguessable URL-safe nonce for the OAuth ``state`` parameter."""
    return secrets.token_urlsafe(STATE_BYTES)
