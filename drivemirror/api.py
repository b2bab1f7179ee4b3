"""API client for Microsoft Graph drives."""

from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import quote

import httpx

from .exceptions import (
    GraphAPIError,
    GraphAuthenticationError,
    GraphDownloadError,
    GraphInvalidResponseError,
    GraphNetworkError,
    GraphNotFoundError,
    GraphPermissionError,
    TransientFailure,
)
from .models import ChildrenPage, RemoteItem
from .paths import GraphPath
from .utils import DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from .auth import TokenProvider

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.microsoft.com/v1.0"

# Status codes the server uses to ask us to come back later
TRANSIENT_STATUS_CODES = frozenset({429, 503, 504})

# Suffix for content that is still being downloaded
PARTIAL_SUFFIX = ".part"


def _segment(value: str) -> str:
    """Percent-encode an id or name used as a single URL segment."""
    return quote(value, safe="!")


def partial_path(destination: Path) -> Path:
    """Hidden temporary sibling used while ``destination`` is downloaded.

    The random token keeps it apart from remote items whose names end in
    ``.part``.
    """
    token = secrets.token_hex(4)
    return destination.with_name(f".{destination.name}.{token}{PARTIAL_SUFFIX}")


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header into seconds.

    Args:
        value: Header value, either delta-seconds or an HTTP date

    Returns:
        Seconds to wait, or None if the header is absent or malformed
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class GraphClient:
    """Client for the drive endpoints of Microsoft Graph.

    The client does not retry. Rate limiting and busy-server responses are
    raised as :class:`TransientFailure` so the caller's retry policy can
    decide what to do with them.
    """

    def __init__(
        self,
        token_provider: TokenProvider | None = None,
        access_token: str | None = None,
        api_url: str = GRAPH_API_URL,
        timeout: float = 60.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize Graph API client.

        Args:
            token_provider: Source of access tokens (refreshed on expiry)
            access_token: Static access token, used when no provider is given
            api_url: Graph API base URL
            timeout: Request timeout in seconds (default: 60.0)
            page_size: Children requested per listing page (default: 200)
            transport: Optional httpx transport (used by tests)
        """
        if token_provider is None and not access_token:
            raise GraphAuthenticationError(
                "No credentials configured. Provide a token provider or access token."
            )
        self.token_provider = token_provider
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> GraphClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        if self.token_provider is not None:
            token = self.token_provider.get_token()
        else:
            token = self.access_token
        return {"Authorization": f"Bearer {token}"}

    def _url(self, endpoint: str) -> str:
        # Cursors are absolute URLs handed out by the server
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.api_url}/{endpoint.lstrip('/')}"

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        """Extract the message from a Graph error body, if there is one."""
        try:
            if response.content:
                data = response.json()
                if isinstance(data, dict):
                    error = data.get("error")
                    if isinstance(error, dict):
                        return error.get("message") or error.get("code")
                    if isinstance(error, str):
                        return data.get("error_description") or error
        except ValueError:
            # Not JSON, fall back to the status-based message
            pass
        return None

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Translate an error response into a drivemirror exception.

        Args:
            response: Response whose body has been read

        Raises:
            GraphAPIError: Or one of its subclasses for error statuses
        """
        status_code = response.status_code
        if status_code < 400:
            return

        detail = self._error_message(response)
        suffix = f": {detail}" if detail else ""

        if status_code in TRANSIENT_STATUS_CODES:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise TransientFailure(
                f"Server busy (HTTP {status_code}){suffix}",
                status_code=status_code,
                retry_after=retry_after,
            )
        if status_code == 401:
            raise GraphAuthenticationError(
                f"Invalid or expired access token{suffix}", status_code=401
            )
        if status_code == 403:
            raise GraphPermissionError(f"Access denied{suffix}", status_code=403)
        if status_code == 404:
            raise GraphNotFoundError(f"Resource not found{suffix}", status_code=404)
        raise GraphAPIError(
            f"API request failed with status {status_code}{suffix}",
            status_code=status_code,
        )

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make one API request.

        Args:
            method: HTTP method
            endpoint: API endpoint path, or an absolute cursor URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            GraphAPIError: If the request fails
        """
        url = self._url(endpoint)
        client = self._get_client()

        try:
            response = client.request(
                method, url, headers=self._auth_headers(), **kwargs
            )
        except httpx.RequestError as e:
            raise GraphNetworkError(f"Network error: {e}") from e

        self._raise_for_status(response)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            content_type = response.headers.get("Content-Type", "")
            raise GraphInvalidResponseError(
                f"Invalid JSON response from server ({content_type})"
            ) from e

    # =========================
    # Listing Operations
    # =========================

    def list_children(
        self,
        drive_id: str,
        item_id: str | None = None,
        cursor: str | None = None,
    ) -> ChildrenPage:
        """List one page of a folder's children.

        Args:
            drive_id: Drive that owns the folder
            item_id: Folder item id (required when no cursor is given)
            cursor: Cursor returned by a previous page

        Returns:
            ChildrenPage with the items and the cursor of the next page
        """
        if cursor:
            data = self._request("GET", cursor)
        else:
            if item_id is None:
                raise ValueError("item_id is required for the first page")
            endpoint = (
                f"/drives/{_segment(drive_id)}/items/{_segment(item_id)}/children"
            )
            data = self._request("GET", endpoint, params={"$top": self.page_size})
        if not isinstance(data, dict):
            raise GraphInvalidResponseError("Listing response is not an object")
        return ChildrenPage.from_api_response(data)

    def get_item(self, drive_id: str, item_id: str) -> RemoteItem:
        """Get a single drive item by id."""
        endpoint = f"/drives/{_segment(drive_id)}/items/{_segment(item_id)}"
        return RemoteItem.from_api_response(self._request("GET", endpoint))

    def get_root_item(self, drive_id: str) -> RemoteItem:
        """Get the root folder of a drive."""
        endpoint = f"/drives/{_segment(drive_id)}/root"
        return RemoteItem.from_api_response(self._request("GET", endpoint))

    def get_item_by_path(self, drive_id: str, path: GraphPath) -> RemoteItem:
        """Get a drive item by its path below the drive root.

        Args:
            drive_id: Drive id
            path: Path relative to the drive root

        Returns:
            RemoteItem for the path

        Raises:
            GraphNotFoundError: If nothing exists at the path
        """
        if path.is_root:
            return self.get_root_item(drive_id)
        endpoint = f"/drives/{_segment(drive_id)}/root:/{path.encoded}"
        return RemoteItem.from_api_response(self._request("GET", endpoint))

    # =========================
    # Site and Drive Operations
    # =========================

    def get_site(self, hostname: str, site_path: GraphPath) -> Any:
        """Get a SharePoint site by hostname and server-relative path.

        Args:
            hostname: e.g. "contoso.sharepoint.com"
            site_path: e.g. GraphPath.parse("sites/Team")

        Returns:
            Site object with at least an ``id``
        """
        if site_path.is_root:
            endpoint = f"/sites/{_segment(hostname)}"
        else:
            endpoint = f"/sites/{_segment(hostname)}:/{site_path.encoded}"
        return self._request("GET", endpoint)

    def get_site_drives(self, site_id: str) -> list[dict[str, Any]]:
        """List every document library of a site, following pagination."""
        drives: list[dict[str, Any]] = []
        next_url: str | None = f"/sites/{_segment(site_id)}/drives"
        while next_url:
            data = self._request("GET", next_url)
            drives.extend(data.get("value", []))
            next_url = data.get("@odata.nextLink")
        return drives

    def get_user_drive(self, user: str) -> Any:
        """Get the OneDrive of a user (by id or user principal name)."""
        return self._request("GET", f"/users/{_segment(user)}/drive")

    # =========================
    # Download Operations
    # =========================

    def download_item(
        self,
        drive_id: str,
        item_id: str,
        destination: Path,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Path:
        """Download a file's content to ``destination``.

        Content is streamed to a hidden sibling file which then replaces
        ``destination`` in one step, so the destination is either the old
        file or the complete new one.

        Args:
            drive_id: Drive id
            item_id: File item id
            destination: Local path to write
            progress_callback: Optional callback function(bytes_downloaded, total_bytes)

        Returns:
            Path where the file was saved

        Raises:
            TransientFailure: If the server asks to retry later
            GraphDownloadError: If the download or the local write fails
        """
        endpoint = f"/drives/{_segment(drive_id)}/items/{_segment(item_id)}/content"
        url = self._url(endpoint)
        client = self._get_client()
        partial = partial_path(destination)

        try:
            with client.stream("GET", url, headers=self._auth_headers()) as response:
                if response.status_code >= 400:
                    response.read()
                    self._raise_for_status(response)

                total_size = int(response.headers.get("Content-Length", 0))
                bytes_downloaded = 0

                with open(partial, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=65536):
                        if chunk:
                            f.write(chunk)
                            bytes_downloaded += len(chunk)
                            if progress_callback:
                                progress_callback(bytes_downloaded, total_size)

            os.replace(partial, destination)
            return destination

        except httpx.RequestError as e:
            raise GraphNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise GraphDownloadError(f"Failed to write file: {e}") from e
        finally:
            if partial.exists():
                partial.unlink()
