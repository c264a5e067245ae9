from __future__ import annotations

import enum
import inspect

import httpx

from .callback import parse_callback_url
from .config import AuthConfig
from .constants import LOGGER
from .credential_store import CredentialStore
from .errors import AuthFlowError
from .exchange import TokenExchangeClient
from .models import CredentialRecord
from .session_tracker import OAuthSessionTracker
from .token_manager import TokenManager
from .urls import build_authorization_url


class FlowState(enum.Enum):
    IDLE = "idle"
    PENDING_AUTH = "pending_auth"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthFlow:
    """Drives one sign-in attempt from browser hand-off to stored credentials.

    Steps are strictly ordered: the nonce is persisted before the browser
    opens, the state is validated before any exchange, and credentials are
    stored before ``AUTHENTICATED`` is reported.
    """

    def __init__(
        self,
        config: AuthConfig,
        tracker: OAuthSessionTracker,
        token_manager: TokenManager,
        exchange_client: TokenExchangeClient,
    ) -> None:
        self.config = config
        self.tracker = tracker
        self.token_manager = token_manager
        self.exchange_client = exchange_client
        self.state = FlowState.IDLE

    async def resume(self) -> FlowState:
        if await self.token_manager.is_authenticated():
            self.state = FlowState.AUTHENTICATED
        else:
            self.state = FlowState.IDLE
        return self.state

    async def begin(self) -> str:
        session = await self.tracker.begin()
        self.state = FlowState.PENDING_AUTH
        return build_authorization_url(
            authorize_url=self.config.authorize_url,
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_uri,
            state=session.state,
            scopes=self.config.scopes,
        )

    async def launch(self, open_url) -> str:
        url = await self.begin()
        opened = open_url(url)
        if inspect.isawaitable(opened):
            await opened
        return url

    async def complete(self, callback_url: str) -> CredentialRecord:
        try:
            try:
                result = parse_callback_url(callback_url)
            except AuthFlowError:
                await self.tracker.consume()
                raise

            await self.tracker.verify(result.state)
            record = await self.exchange_client.exchange(result.code, result.installation_id)
            await self.token_manager.store_tokens(record.access_token, record.user_data)
        except AuthFlowError as error:
            self.state = FlowState.FAILED
            LOGGER.warning("Sign-in failed: %s", type(error).__name__)
            raise

        self.state = FlowState.AUTHENTICATED
        LOGGER.info("Sign-in completed")
        return record

    async def cancel(self) -> None:
        await self.tracker.consume()
        self.state = FlowState.IDLE
        LOGGER.info("Sign-in cancelled by user")

    async def sign_out(self) -> None:
        await self.token_manager.clear_tokens()
        self.state = FlowState.IDLE


def build_auth_flow(
    config: AuthConfig,
    store: CredentialStore,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> AuthFlow:
    return AuthFlow(
        config=config,
        tracker=OAuthSessionTracker(store),
        token_manager=TokenManager(store),
        exchange_client=TokenExchangeClient(config.exchange_base_url, client=http_client),
    )
