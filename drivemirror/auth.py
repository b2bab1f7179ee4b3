"""Access token acquisition for Microsoft Graph."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from .exceptions import GraphAuthenticationError, MirrorConfigError

logger = logging.getLogger(__name__)

AUTHORITY_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN = 300


class TokenProvider:
    """Acquires and caches app-only tokens (OAuth2 client credentials)."""

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        authority: str = AUTHORITY_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the token provider.

        Args:
            tenant_id: Azure AD tenant id or domain
            client_id: Application (client) id
            client_secret: Client secret
            authority: Token authority base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        missing = [
            name
            for name, value in (
                ("TenantId", tenant_id),
                ("ClientId", client_id),
                ("ClientSecret", client_secret),
            )
            if not value
        ]
        if missing:
            raise MirrorConfigError(
                f"Missing credential setting(s): {', '.join(missing)}"
            )

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.authority = authority.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._token: str | None = None
        self._expires_at = 0.0

    @property
    def token_url(self) -> str:
        return f"{self.authority}/{self.tenant_id}/oauth2/v2.0/token"

    def get_token(self) -> str:
        """Return a valid access token, acquiring a new one when needed."""
        if self._token is None or time.time() >= self._expires_at:
            return self._acquire()
        return self._token

    def _acquire(self) -> str:
        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": GRAPH_SCOPE,
        }
        try:
            with httpx.Client(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = client.post(self.token_url, data=form)
        except httpx.RequestError as e:
            raise GraphAuthenticationError(
                f"Could not reach token endpoint: {e}"
            ) from e

        data: dict[str, Any] = {}
        try:
            data = response.json()
        except ValueError:
            pass

        if response.status_code != 200 or "access_token" not in data:
            detail = data.get("error_description") or data.get("error") or ""
            raise GraphAuthenticationError(
                f"Authentication failed (HTTP {response.status_code}) {detail}".strip(),
                status_code=response.status_code,
            )

        token: str = data["access_token"]
        self._token = token
        expires_in = float(data.get("expires_in", 3600))
        self._expires_at = time.time() + max(0.0, expires_in - EXPIRY_MARGIN)
        logger.debug("Acquired access token, valid for %.0fs", expires_in)
        return token
