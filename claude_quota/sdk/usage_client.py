"""
Usage API client.

Reads the stored OAuth credential, refreshes it once if it has expired, and
fetches the subscription quota snapshot. Every failure is returned as an
Unavailable result; nothing raises out of fetch_quota().
"""

import logging
import math
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Sequence

import httpx

from ..core.quota import QuotaResult, Unavailable, UnavailableReason, parse_usage_response
from ..storage.credentials import (
    DEFAULT_PROVIDER,
    CredentialUnavailable,
    default_candidate_paths,
    load_credential,
    resolve_credential_path,
)
from ..storage.models import OAuthCredential

logger = logging.getLogger(__name__)

USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
TOKEN_URL = "https://console.anthropic.com/v1/oauth/token"
OAUTH_CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_BETA = "oauth-2025-04-20"
DEFAULT_TIMEOUT = 10.0


def _now_ms() -> int:
    return int(time.time() * 1000)


class QuotaFetcher:
    """Fetches the remote quota snapshot for the stored OAuth login.

    Credential candidates and the HTTP client are injectable. An injected
    client is borrowed and left open; otherwise a client is created and
    closed for each fetch.
    """

    def __init__(
        self,
        candidates: Optional[Sequence[Path]] = None,
        provider: str = DEFAULT_PROVIDER,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        now_ms: Optional[Callable[[], int]] = None,
    ):
        self.candidates = list(candidates) if candidates is not None else None
        self.provider = provider
        self.timeout = timeout
        self._client = client
        self._now_ms = now_ms or _now_ms

    def locate_credentials(self) -> Path:
        """Resolve the auth file path by probing the candidates in order."""
        candidates = self.candidates if self.candidates is not None else default_candidate_paths()
        return resolve_credential_path(candidates)

    @asynccontextmanager
    async def _http_client(self, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client

    async def fetch_quota(
        self,
        credential_path: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> QuotaResult:
        """Fetch and normalize the current quota snapshot.

        Args:
            credential_path: Explicit auth file; skips candidate probing
            timeout: Seconds allowed for each HTTP call (defaults to the
                fetcher's timeout)

        Returns:
            QuotaSnapshot on success, Unavailable otherwise
        """
        timeout = self.timeout if timeout is None else timeout
        try:
            path = Path(credential_path) if credential_path is not None else self.locate_credentials()
        except (ValueError, OSError, RuntimeError) as e:
            logger.info("Quota unavailable: %s", e)
            return Unavailable(reason=UnavailableReason.CREDENTIALS_MISSING, detail=str(e))

        try:
            credential = load_credential(path, self.provider)
        except CredentialUnavailable as e:
            logger.info("Quota unavailable: %s", e)
            reason = (
                UnavailableReason.CREDENTIALS_MISSING if e.missing
                else UnavailableReason.CREDENTIALS_INVALID
            )
            return Unavailable(reason=reason, detail=str(e))

        async with self._http_client(timeout) as client:
            if credential.is_expired(self._now_ms()):
                credential = await self.refresh_credential(client, credential, timeout)
            return await self._fetch_usage(client, credential.access_token, timeout)

    async def refresh_credential(
        self,
        client: httpx.AsyncClient,
        credential: OAuthCredential,
        timeout: Optional[float] = None,
    ) -> OAuthCredential:
        """Exchange the refresh token for a new access token.

        A single attempt is made. On any failure the original credential is
        returned unchanged so the usage call can proceed with it.
        """
        logger.debug("Access token expired, attempting refresh")
        try:
            response = await client.post(
                TOKEN_URL,
                json={
                    "grant_type": "refresh_token",
                    "refresh_token": credential.refresh_token,
                    "client_id": OAUTH_CLIENT_ID,
                },
                headers={"Content-Type": "application/json"},
                timeout=self.timeout if timeout is None else timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Token refresh failed: %s", e.__class__.__name__)
            return credential

        if not response.is_success:
            logger.warning("Token refresh rejected with status %d", response.status_code)
            return credential

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Token refresh returned a non-JSON body")
            return credential

        access = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access, str) or not access:
            logger.warning("Token refresh response had no access token")
            return credential

        refresh = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            expires_in = 0
        expires_in_ms = expires_in * 1000
        if isinstance(expires_in_ms, float) and not math.isfinite(expires_in_ms):
            expires_in_ms = 0
        return OAuthCredential(
            refresh_token=refresh if isinstance(refresh, str) and refresh else credential.refresh_token,
            access_token=access,
            expires_at=self._now_ms() + int(expires_in_ms),
        )

    async def _fetch_usage(
        self, client: httpx.AsyncClient, access_token: str, timeout: float
    ) -> QuotaResult:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
            "anthropic-beta": ANTHROPIC_BETA,
        }
        try:
            response = await client.get(USAGE_URL, headers=headers, timeout=timeout)
        except httpx.HTTPError as e:
            logger.warning("Usage request failed: %s", e.__class__.__name__)
            return Unavailable(
                reason=UnavailableReason.REMOTE_CALL_FAILED,
                detail=f"Network error: {e.__class__.__name__}",
            )

        if not response.is_success:
            logger.warning("Usage request returned status %d", response.status_code)
            return Unavailable(
                reason=UnavailableReason.REMOTE_CALL_FAILED,
                detail=f"API Error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            return Unavailable(
                reason=UnavailableReason.REMOTE_CALL_FAILED,
                detail="Usage response was not valid JSON",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            return Unavailable(
                reason=UnavailableReason.REMOTE_CALL_FAILED,
                detail="Usage response was not a JSON object",
                status_code=response.status_code,
            )
        return parse_usage_response(body)


async def fetch_quota(credential_path: Optional[Path] = None, timeout: float = DEFAULT_TIMEOUT) -> QuotaResult:
    """Fetch the quota snapshot with default candidate probing."""
    return await QuotaFetcher(timeout=timeout).fetch_quota(credential_path)
