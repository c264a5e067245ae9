from __future__ import annotations

import httpx

from .constants import EXCHANGE_PATH, LOGGER
from .errors import CodeRejectedError, ExchangeUnavailableError
from .models import CredentialRecord

DEFAULT_TIMEOUT_SECONDS = 30.0


class TokenExchangeClient:
    """Trades an authorization code for credentials via the bridge backend.

    No client secret leaves the device; the backend holds it. Failures are
    never retried here, the user decides whether to try again.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.endpoint = f"{base_url.rstrip('/')}{EXCHANGE_PATH}"
        self._client = client
        self._timeout = timeout

    async def exchange(self, code: str, installation_id: str | None) -> CredentialRecord:
        own_client = self._client is None
        http_client = self._client or httpx.AsyncClient(timeout=self._timeout)

        try:
            response = await http_client.post(
                self.endpoint,
                json={"code": code, "installation_id": installation_id},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as error:
            status_code = error.response.status_code
            if status_code >= 500:
                LOGGER.warning("Token exchange unavailable status=%s", status_code)
                raise ExchangeUnavailableError(
                    f"Token exchange is unavailable (status {status_code}).",
                    status_code=status_code,
                ) from error
            LOGGER.warning("Token exchange rejected status=%s", status_code)
            raise CodeRejectedError(
                f"Token exchange failed with status {status_code}.",
                status_code=status_code,
            ) from error
        except httpx.RequestError as error:
            LOGGER.warning("Token exchange request failed: %s", type(error).__name__)
            raise ExchangeUnavailableError(
                f"Token exchange request failed: {type(error).__name__}"
            ) from error
        except ValueError as error:
            raise CodeRejectedError(
                "Token exchange returned a non-JSON body.",
                status_code=response.status_code,
            ) from error
        finally:
            if own_client:
                await http_client.aclose()

        try:
            return CredentialRecord.from_payload(payload)
        except ValueError as error:
            raise CodeRejectedError(str(error), status_code=response.status_code) from error
