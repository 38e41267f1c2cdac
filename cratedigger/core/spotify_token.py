"""Client-credentials token issuance for the Spotify Web API."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import logging
import time
from typing import Any, Protocol

import httpx

from cratedigger.config import SpotifyConfig
from cratedigger.errors import TokenExchangeError
from cratedigger.logging import get_logger
from cratedigger.logging_events import log_event

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class BearerCredential:
    """Opaque access token valid for a single batch run."""

    access_token: str
    token_type: str
    expires_in: int
    issued_at: float

    def __repr__(self) -> str:
        return (
            f"BearerCredential(token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r})"
        )


class TokenIssuer(Protocol):
    async def issue(self) -> BearerCredential: ...


class SpotifyTokenIssuer:
    """Exchange configured client credentials for a bearer token.

    There is no cache: every call performs a fresh exchange, and callers are
    expected to issue exactly one token per batch.
    """

    def __init__(
        self,
        config: SpotifyConfig,
        *,
        http_client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._client_id, self._client_secret = config.require_credentials()
        self._token_url = config.token_url
        self._http_timeout = config.http_timeout
        self._http_client_factory = http_client_factory

    def _build_http_client(self) -> httpx.AsyncClient:
        if self._http_client_factory is not None:
            return self._http_client_factory()
        return httpx.AsyncClient(timeout=self._http_timeout)

    async def issue(self) -> BearerCredential:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            async with self._build_http_client() as client:
                response = await client.post(
                    self._token_url,
                    data={"grant_type": "client_credentials"},
                    headers=headers,
                    auth=httpx.BasicAuth(self._client_id, self._client_secret),
                )
        except httpx.HTTPError as exc:
            log_event(logger, "spotify.token.failed", reason="transport", level=logging.ERROR)
            raise TokenExchangeError(f"Failed to get Spotify token: {exc}") from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            log_event(
                logger,
                "spotify.token.failed",
                reason="status",
                status=response.status_code,
                level=logging.ERROR,
            )
            raise TokenExchangeError(f"Failed to get Spotify token: {detail}")

        try:
            data = response.json()
        except ValueError as exc:
            raise TokenExchangeError("Failed to get Spotify token: invalid JSON body") from exc
        if not isinstance(data, Mapping):
            raise TokenExchangeError("Failed to get Spotify token: unexpected token response")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeError("Failed to get Spotify token: no access_token in response")

        credential = BearerCredential(
            access_token=access_token,
            token_type=str(data.get("token_type") or "Bearer"),
            expires_in=_coerce_expires_in(data.get("expires_in")),
            issued_at=time.time(),
        )
        log_event(logger, "spotify.token.issued", expires_in=credential.expires_in)
        return credential


def _coerce_expires_in(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"HTTP {response.status_code}"
    if isinstance(payload, Mapping):
        description = payload.get("error_description") or payload.get("error")
        if description:
            return str(description)
    return f"HTTP {response.status_code}"


__all__ = ["BearerCredential", "SpotifyTokenIssuer", "TokenIssuer"]
