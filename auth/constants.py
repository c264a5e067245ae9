from __future__ import annotations

import logging

LOGGER = logging.getLogger("bridge.auth")

# Stable across releases; renaming any of these orphans stored credentials.
STATE_KEY = "oauth_bridge.pending_state"
ACCESS_TOKEN_KEY = "oauth_bridge.access_token"
USER_DATA_KEY = "oauth_bridge.user_data"

KEYRING_SERVICE_NAME = "oauth-deeplink-bridge"

CALLBACK_PATH = "/auth/callback"
EXCHANGE_PATH = "/exchange-token"
DEEP_LINK_TARGET = "auth/callback"

# Checked in this order; the provider has used all three names.
INSTALLATION_ID_PARAMS = ("installation_id", "configurationId", "config_id")

PENDING_AUTH_TTL_SECONDS = 600
