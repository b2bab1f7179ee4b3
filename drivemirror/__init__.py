"""drivemirror - Mirror SharePoint libraries and OneDrive folders to local disk."""

from .api import GraphClient
from .auth import TokenProvider
from .exceptions import (
    DriveMirrorError,
    GraphAPIError,
    GraphAuthenticationError,
    GraphDownloadError,
    GraphInvalidResponseError,
    GraphNetworkError,
    GraphNotFoundError,
    GraphPermissionError,
    MirrorConfigError,
    TaskConfigError,
    TransientFailure,
)
from .models import ChildrenPage, ContentHash, RemoteItem
from .paths import GraphPath, sanitize_name
from .retry import RetryPolicy

__all__ = [
    "GraphClient",
    "TokenProvider",
    "DriveMirrorError",
    "GraphAPIError",
    "GraphAuthenticationError",
    "GraphDownloadError",
    "GraphInvalidResponseError",
    "GraphNetworkError",
    "GraphNotFoundError",
    "GraphPermissionError",
    "MirrorConfigError",
    "TaskConfigError",
    "TransientFailure",
    "ChildrenPage",
    "ContentHash",
    "RemoteItem",
    "GraphPath",
    "sanitize_name",
    "RetryPolicy",
]
