from __future__ import annotations

import urllib.parse

from .constants import DEEP_LINK_TARGET


def is_https_url(uri: str) -> bool:
    parsed = urllib.parse.urlparse(uri)
    return parsed.scheme == "https" and bool(parsed.netloc)


def build_authorization_url(
    authorize_url: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    scopes: list[str] | None = None,
) -> str:
    query = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "state": state,
    }
    if scopes:
        query["scope"] = " ".join(scopes)
    return append_query_params(authorize_url, query)


def append_query_params(url: str, params: dict[str, str]) -> str:
    parsed = urllib.parse.urlparse(url)
    existing = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)
    for key, value in params.items():
        existing[key] = [value]

    new_query = urllib.parse.urlencode(existing, doseq=True)
    return urllib.parse.urlunparse(parsed._replace(query=new_query))


def build_deep_link(scheme: str, params: dict[str, str]) -> str:
    """Build ``scheme://auth/callback?...`` for the app's registered URL scheme."""
    query = urllib.parse.urlencode(params)
    return f"{scheme}://{DEEP_LINK_TARGET}?{query}"
