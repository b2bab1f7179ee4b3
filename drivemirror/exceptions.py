"""Exceptions raised by drivemirror."""

from typing import Optional


class DriveMirrorError(Exception):
    """Base exception for all drivemirror errors."""


class MirrorConfigError(DriveMirrorError):
    """Raised when the configuration file is missing or invalid."""


class TaskConfigError(MirrorConfigError):
    """Raised when a single mirror task is missing a required field."""


class GraphAPIError(DriveMirrorError):
    """Base exception for errors returned by the Graph API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GraphAuthenticationError(GraphAPIError):
    """Raised when the access token cannot be acquired or is rejected."""


class GraphPermissionError(GraphAPIError):
    """Raised when access to a resource is denied (HTTP 403)."""


class GraphNotFoundError(GraphAPIError):
    """Raised when a resource does not exist (HTTP 404)."""


class GraphInvalidResponseError(GraphAPIError):
    """Raised when the API returns a body that cannot be interpreted."""


class GraphNetworkError(GraphAPIError):
    """Raised when the transport fails before a response is received."""


class GraphDownloadError(GraphAPIError):
    """Raised when fetching file content fails."""


class TransientFailure(GraphAPIError):
    """Rate limiting or a busy server (HTTP 429, 503, 504).

    This is the single shape the retry policy inspects. ``retry_after`` holds
    the server's ``Retry-After`` hint in seconds when one was sent.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after
