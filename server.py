from __future__ import annotations

import contextlib
import os

import uvicorn
from pydantic import AnyHttpUrl
from starlette.applications import Starlette

from bridge.constants import APP_VERSION, LOGGER
from bridge.env import get_env_int, load_env, setup_logging, validate_env
from bridge.http import build_provider_client
from bridge.routes import BridgeServer


def create_app() -> Starlette:
    load_env()
    debug_enabled = setup_logging()
    validate_env()

    public_url = str(AnyHttpUrl(os.getenv("BRIDGE_PUBLIC_URL", "").strip())).rstrip("/")
    timeout = float(get_env_int("BRIDGE_PROVIDER_TIMEOUT", 30))
    http_client = build_provider_client(timeout=timeout, debug_enabled=debug_enabled)

    bridge_server = BridgeServer(
        public_url=public_url,
        app_scheme=os.getenv("BRIDGE_APP_SCHEME", "").strip(),
        client_id=os.getenv("BRIDGE_PROVIDER_CLIENT_ID", "").strip(),
        client_secret=os.getenv("BRIDGE_PROVIDER_CLIENT_SECRET", "").strip(),
        token_url=os.getenv("BRIDGE_PROVIDER_TOKEN_URL", "").strip(),
        userinfo_url=os.getenv("BRIDGE_PROVIDER_USERINFO_URL", "").strip() or None,
        http_client=http_client,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        del app
        LOGGER.info("Bridge %s serving callback at %s", APP_VERSION, bridge_server.redirect_uri)
        try:
            yield
        finally:
            await http_client.aclose()

    app = Starlette(routes=bridge_server.routes(), lifespan=lifespan)
    app.state.bridge_server = bridge_server
    return app


def main() -> None:
    host = os.getenv("BRIDGE_HOST", "127.0.0.1")
    port = int(os.getenv("BRIDGE_PORT", "8000"))
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
