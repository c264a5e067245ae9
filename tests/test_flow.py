import urllib.parse

import httpx
import pytest

from auth.constants import STATE_KEY
from auth.credential_store import MemoryCredentialStore
from auth.errors import (
    AuthorizationDeniedError,
    CodeRejectedError,
    CsrfValidationError,
    ExchangeUnavailableError,
    ParseError,
    StorageError,
)
from auth.flow import AuthFlow, FlowState, build_auth_flow
from auth.models import CredentialRecord
from auth.session_tracker import OAuthSessionTracker
from auth.token_manager import TokenManager


class _FakeExchange:
    def __init__(self, result=None, error=None) -> None:
        self.calls: list[tuple[str, str | None]] = []
        self._result = result or CredentialRecord(access_token="tok", user_data={"userId": "u1"})
        self._error = error

    async def exchange(self, code, installation_id):
        self.calls.append((code, installation_id))
        if self._error is not None:
            raise self._error
        return self._result


def _build_flow(auth_config, store, exchange=None) -> AuthFlow:
    return AuthFlow(
        config=auth_config,
        tracker=OAuthSessionTracker(store),
        token_manager=TokenManager(store),
        exchange_client=exchange or _FakeExchange(),
    )


def _state_from(url: str) -> str:
    return urllib.parse.parse_qs(urllib.parse.urlparse(url).query)["state"][0]


@pytest.mark.asyncio
async def test_begin_builds_authorization_url(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)

    url = await flow.begin()

    parsed = urllib.parse.urlparse(url)
    query = urllib.parse.parse_qs(parsed.query)
    assert url.startswith("https://provider.example.com/oauth/authorize?")
    assert query["client_id"] == ["app-client"]
    assert query["redirect_uri"] == ["https://auth.example.com/auth/callback"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["read write"]
    assert await flow.tracker.validate(query["state"][0]) is True
    assert flow.state is FlowState.PENDING_AUTH


@pytest.mark.asyncio
async def test_successful_sign_in(auth_config, store) -> None:
    exchange = _FakeExchange()
    flow = _build_flow(auth_config, store, exchange)
    nonce = _state_from(await flow.begin())

    record = await flow.complete(
        f"myapp://auth/callback?code=abc&state={nonce}&installation_id=inst1"
    )

    assert exchange.calls == [("abc", "inst1")]
    assert record.access_token == "tok"
    assert await flow.token_manager.is_authenticated() is True
    assert await flow.token_manager.get_access_token() == "tok"
    assert await flow.token_manager.get_user_data() == {"userId": "u1"}
    assert await store.get(STATE_KEY) is None
    assert flow.state is FlowState.AUTHENTICATED


@pytest.mark.asyncio
async def test_state_mismatch_aborts_before_exchange(auth_config, store) -> None:
    exchange = _FakeExchange()
    flow = _build_flow(auth_config, store, exchange)
    await flow.begin()

    with pytest.raises(CsrfValidationError):
        await flow.complete("myapp://auth/callback?code=abc&state=wrong&installation_id=inst1")

    assert exchange.calls == []
    assert await flow.token_manager.is_authenticated() is False
    assert await store.get(STATE_KEY) is None
    assert flow.state is FlowState.FAILED


@pytest.mark.asyncio
async def test_callback_replay_is_rejected(auth_config, store) -> None:
    exchange = _FakeExchange()
    flow = _build_flow(auth_config, store, exchange)
    callback = f"myapp://auth/callback?code=abc&state={_state_from(await flow.begin())}"
    await flow.complete(callback)

    with pytest.raises(CsrfValidationError):
        await flow.complete(callback)

    assert len(exchange.calls) == 1


@pytest.mark.asyncio
async def test_parse_error_clears_pending_state(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)
    await flow.begin()

    with pytest.raises(ParseError) as error:
        await flow.complete("myapp://auth/callback?state=abc")

    assert error.value.field == "code"
    assert await store.get(STATE_KEY) is None
    assert flow.state is FlowState.FAILED


@pytest.mark.asyncio
async def test_provider_denial_fails_flow(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)
    await flow.begin()

    with pytest.raises(AuthorizationDeniedError):
        await flow.complete("myapp://auth/callback?error=access_denied")

    assert flow.state is FlowState.FAILED


@pytest.mark.asyncio
async def test_exchange_error_leaves_user_signed_out(auth_config, store) -> None:
    exchange = _FakeExchange(error=CodeRejectedError("rejected", status_code=400))
    flow = _build_flow(auth_config, store, exchange)
    nonce = _state_from(await flow.begin())

    with pytest.raises(CodeRejectedError):
        await flow.complete(f"myapp://auth/callback?code=abc&state={nonce}")

    assert await flow.token_manager.is_authenticated() is False
    assert flow.state is FlowState.FAILED


@pytest.mark.asyncio
async def test_storage_error_fails_flow(auth_config) -> None:
    class _ReadOnlyTokens(MemoryCredentialStore):
        async def set(self, key: str, value: str) -> None:
            if key != STATE_KEY:
                raise StorageError()
            await super().set(key, value)

    flow = _build_flow(auth_config, _ReadOnlyTokens())
    nonce = _state_from(await flow.begin())

    with pytest.raises(StorageError):
        await flow.complete(f"myapp://auth/callback?code=abc&state={nonce}")

    assert flow.state is FlowState.FAILED


@pytest.mark.asyncio
async def test_cancel_returns_to_idle(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)
    nonce = _state_from(await flow.begin())

    await flow.cancel()

    assert flow.state is FlowState.IDLE
    assert await flow.tracker.validate(nonce) is False


@pytest.mark.asyncio
async def test_sign_out_and_resume(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)
    nonce = _state_from(await flow.begin())
    await flow.complete(f"myapp://auth/callback?code=abc&state={nonce}")

    restarted = _build_flow(auth_config, store)
    assert await restarted.resume() is FlowState.AUTHENTICATED

    await restarted.sign_out()

    assert restarted.state is FlowState.IDLE
    assert await restarted.resume() is FlowState.IDLE


@pytest.mark.asyncio
async def test_new_begin_after_failure(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)
    await flow.begin()
    with pytest.raises(CsrfValidationError):
        await flow.complete("myapp://auth/callback?code=abc&state=wrong")

    nonce = _state_from(await flow.begin())

    assert flow.state is FlowState.PENDING_AUTH
    await flow.complete(f"myapp://auth/callback?code=abc&state={nonce}")
    assert flow.state is FlowState.AUTHENTICATED


@pytest.mark.asyncio
async def test_launch_opens_browser_after_state_is_stored(auth_config, store) -> None:
    flow = _build_flow(auth_config, store)
    seen: list[tuple[str, str | None]] = []

    async def open_url(url: str) -> None:
        seen.append((url, await store.get(STATE_KEY)))

    url = await flow.launch(open_url)

    assert seen[0][0] == url
    assert seen[0][1] is not None
    assert _state_from(url) in seen[0][1]


@pytest.mark.asyncio
async def test_build_auth_flow_end_to_end(auth_config, store, httpx_mock) -> None:
    httpx_mock.add_response(
        url="https://api.example.com/exchange-token",
        method="POST",
        json={"access_token": "tok", "user_data": {"user_id": "u1"}},
    )
    flow = build_auth_flow(auth_config, store)
    nonce = _state_from(await flow.begin())

    await flow.complete(f"myapp://auth/callback?code=abc&state={nonce}&config_id=cfg")

    assert await flow.token_manager.get_access_token() == "tok"


@pytest.mark.asyncio
async def test_broken_exchange_response_fails_flow(auth_config, store, httpx_mock) -> None:
    httpx_mock.add_exception(
        httpx.DecodingError("bad gzip"),
        url="https://api.example.com/exchange-token",
    )
    flow = build_auth_flow(auth_config, store)
    nonce = _state_from(await flow.begin())

    with pytest.raises(ExchangeUnavailableError):
        await flow.complete(f"myapp://auth/callback?code=abc&state={nonce}")

    assert flow.state is FlowState.FAILED
    assert await flow.token_manager.is_authenticated() is False
