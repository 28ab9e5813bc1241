"""
errors.py
---------
Exceptions raised by the catalog, the upstream client and the blob store.

Every exception the HTTP layer can see derives from CatalogError and carries
the status to answer with plus a short machine-readable code. The app turns
them into ``{"error": code, "detail": text}`` responses.
"""
from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    status: int = 502
    code: str = "upstream_error"

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        if status is not None:
            self.status = status
        self.body = body

    @property
    def detail(self) -> str:
        # Raw bodies can be HTML or binary; they go to the logs, not clients.
        return str(self)


class ConfigurationError(CatalogError):
    """A required credential is missing."""

    status = 500
    code = "config_error"


class InvalidRequestError(CatalogError):
    status = 400
    code = "invalid_request"


class UpstreamError(CatalogError):
    """Non-2xx, timeout or network failure talking to the media API."""

    code = "upstream_error"

    @property
    def not_found(self) -> bool:
        return self.status == 404


class BlobStoreError(CatalogError):
    """Blob-store failure that must not be masked as a cache miss."""

    code = "blob_store_error"


class BlobUnauthorizedError(CatalogError):
    """The blob store rejected a session or upload token.

    Only raised inside blob_store; callers there turn it into a miss or a
    skipped upload after invalidating the capability that was rejected.
    """

    status = 401
    code = "blob_unauthorized"
