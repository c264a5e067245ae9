from __future__ import annotations

import logging

LOGGER = logging.getLogger("bridge.server")
APP_VERSION = "0.1.0"

REQUIRED_ENV = (
    "BRIDGE_PUBLIC_URL",
    "BRIDGE_APP_SCHEME",
    "BRIDGE_PROVIDER_TOKEN_URL",
    "BRIDGE_PROVIDER_CLIENT_ID",
    "BRIDGE_PROVIDER_CLIENT_SECRET",
)

# Forwarded to the app when the provider reports a failure.
PROVIDER_ERROR_PARAMS = ("error", "error_description")
