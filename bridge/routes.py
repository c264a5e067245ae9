from __future__ import annotations

import urllib.parse

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from auth.callback import resolve_installation_id
from auth.constants import CALLBACK_PATH, EXCHANGE_PATH
from auth.urls import build_deep_link

from . import provider
from .constants import LOGGER, PROVIDER_ERROR_PARAMS
from .http import error_response, health_route


class BridgeServer:
    """Hosted half of the sign-in flow.

    The provider redirects the browser to ``CALLBACK_PATH`` on this server,
    which forwards the result to the app through its custom URL scheme. The
    app then posts the code to ``EXCHANGE_PATH``; only this server knows the
    provider client secret.
    """

    def __init__(
        self,
        *,
        public_url: str,
        app_scheme: str,
        client_id: str,
        client_secret: str,
        token_url: str,
        userinfo_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        exchange_code_fn=provider.exchange_code,
        fetch_profile_fn=provider.fetch_user_profile,
    ) -> None:
        self.public_url = public_url.rstrip("/")
        self.app_scheme = app_scheme
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.http_client = http_client

        self._exchange_code_fn = exchange_code_fn
        self._fetch_profile_fn = fetch_profile_fn

    @property
    def redirect_uri(self) -> str:
        return f"{self.public_url}{CALLBACK_PATH}"

    def routes(self) -> list[Route]:
        return [
            Route(CALLBACK_PATH, self._handle_callback, methods=["GET"]),
            Route(EXCHANGE_PATH, self._handle_exchange_token, methods=["POST"]),
            Route("/health", health_route, methods=["GET"]),
        ]

    # -- handlers --------------------------------------------------------------

    async def _handle_callback(self, request: Request) -> Response:
        params = urllib.parse.parse_qs(request.url.query, keep_blank_values=True)

        if request.query_params.get("error"):
            forwarded = {
                key: request.query_params[key]
                for key in PROVIDER_ERROR_PARAMS
                if request.query_params.get(key)
            }
            LOGGER.warning("Provider returned error=%s", forwarded["error"])
            return RedirectResponse(build_deep_link(self.app_scheme, forwarded), status_code=302)

        code = request.query_params.get("code")
        state = request.query_params.get("state")
        if not code or not state:
            return error_response("invalid_request", "Missing code or state.", 400)

        forwarded = {"code": code, "state": state}
        installation_id = resolve_installation_id(params)
        if installation_id is not None:
            forwarded["installation_id"] = installation_id

        return RedirectResponse(build_deep_link(self.app_scheme, forwarded), status_code=302)

    async def _handle_exchange_token(self, request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return error_response("invalid_request", "Invalid JSON body.", 400)

        if not isinstance(payload, dict):
            return error_response("invalid_request", "Body must be a JSON object.", 400)

        code = payload.get("code")
        installation_id = payload.get("installation_id")
        if not isinstance(code, str) or not code.strip():
            return error_response("invalid_request", "code is required.", 400)
        if installation_id is not None and not isinstance(installation_id, str):
            return error_response("invalid_request", "installation_id must be a string.", 400)

        try:
            token = await self._exchange_code_fn(
                token_url=self.token_url,
                client_id=self.client_id,
                client_secret=self.client_secret,
                code=code,
                redirect_uri=self.redirect_uri,
                client=self.http_client,
            )
        except provider.ProviderError as error:
            if error.rejected:
                return error_response("invalid_grant", "Authorization code was rejected.", 400)
            LOGGER.warning("Provider token exchange failed: %s", error)
            return error_response(
                "exchange_failed",
                "Failed to exchange authorization code.",
                502,
            )

        user_data = dict(token.identity)
        if installation_id and "installation_id" not in user_data:
            user_data["installation_id"] = installation_id

        if self.userinfo_url:
            try:
                profile = await self._fetch_profile_fn(
                    self.userinfo_url,
                    token.access_token,
                    client=self.http_client,
                )
            except provider.ProviderError as error:
                LOGGER.warning("Provider profile lookup failed: %s", error)
                return error_response(
                    "user_check_failed",
                    "Could not load the user profile.",
                    502,
                )
            _merge_profile(user_data, profile)

        return JSONResponse({"access_token": token.access_token, "user_data": user_data})


def _merge_profile(user_data: dict, profile: dict) -> None:
    for key, value in profile.items():
        user_data.setdefault(key, value)
    if "user_id" not in user_data:
        for key in ("id", "uid", "sub"):
            if profile.get(key) is not None:
                user_data["user_id"] = str(profile[key])
                break
