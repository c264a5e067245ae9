from __future__ import annotations

import urllib.parse
from collections.abc import Mapping

from .constants import INSTALLATION_ID_PARAMS
from .errors import AuthorizationDeniedError, ParseError
from .models import AuthorizationResult


def _first(params: Mapping[str, list[str]], name: str) -> str | None:
    values = params.get(name) or []
    for value in values:
        if value:
            return value
    return None


def resolve_installation_id(params: Mapping[str, list[str]]) -> str | None:
    for name in INSTALLATION_ID_PARAMS:
        value = _first(params, name)
        if value is not None:
            return value
    return None


def parse_callback_url(url: str) -> AuthorizationResult:
    """Extract ``code``, ``state`` and the installation id from a redirect URL.

    Raises ``AuthorizationDeniedError`` when the provider reported an error and
    ``ParseError`` when the URL is unusable or a required field is missing.
    """
    if not isinstance(url, str) or not url.strip():
        raise ParseError(None)

    try:
        parsed = urllib.parse.urlsplit(url.strip())
        params = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)
    except ValueError as error:
        raise ParseError(None) from error

    if not parsed.scheme:
        raise ParseError(None)

    error = _first(params, "error")
    if error is not None:
        raise AuthorizationDeniedError(error, _first(params, "error_description"))

    code = _first(params, "code")
    if code is None:
        raise ParseError("code")
    state = _first(params, "state")
    if state is None:
        raise ParseError("state")

    return AuthorizationResult(
        code=code,
        state=state,
        installation_id=resolve_installation_id(params),
    )
