"""
blob_store.py
-------------
Optional object-storage tier (Backblaze B2 native API) for proxied images.

Three capabilities are acquired lazily and chained by dependency:

    session (b2_authorize_account)
      -> bucket id (static, or b2_list_buckets matched by name)
        -> upload capability (b2_get_upload_url)

Each lives in a LazyCapability: Unacquired until first use, Valid(value)
afterwards, and back to Unacquired when a dependent call answers 401. The
bucket id never expires and is never invalidated.

When the store is not fully configured every operation is a no-op and the
image proxy degrades to pass-through fetching.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Generic, Optional, TypeVar, Union
from urllib.parse import quote

import requests

from app_types import BlobFailure, BlobHit, BlobLookup, BlobMiss, BlobSession, UploadCapability
from errors import BlobStoreError, BlobUnauthorizedError
from settings import Settings, mask_secret

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


# -----------------------------------------------------------
# Capability state machine
# -----------------------------------------------------------
class Unacquired:
    def __repr__(self) -> str:
        return "Unacquired"


UNACQUIRED = Unacquired()


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


class LazyCapability(Generic[T]):
    """Acquire-once value with explicit invalidation.

    The check-absent-then-populate step runs under a lock, so concurrent
    first users trigger a single acquisition. ``invalidate(stale)`` only
    discards the value if it is still the one the caller saw rejected.
    """

    def __init__(self, name: str, acquire: Callable[[], T]) -> None:
        self.name = name
        self._acquire = acquire
        self._state: Union[Unacquired, Valid[T]] = UNACQUIRED
        self._lock = Lock()
        self.acquisitions = 0

    @property
    def state(self) -> Union[Unacquired, Valid[T]]:
        return self._state

    def get(self) -> T:
        with self._lock:
            state = self._state
            if isinstance(state, Valid):
                return state.value
            value = self._acquire()
            self.acquisitions += 1
            self._state = Valid(value)
            logger.info("BLOB %s acquired (#%s)", self.name, self.acquisitions)
            return value

    def prime(self, value: T) -> None:
        with self._lock:
            self._state = Valid(value)

    def invalidate(self, stale: Optional[T] = None) -> None:
        with self._lock:
            state = self._state
            if not isinstance(state, Valid):
                return
            if stale is not None and state.value is not stale:
                # Someone already re-acquired; keep the newer value.
                return
            self._state = UNACQUIRED
            logger.info("BLOB %s invalidated", self.name)

    def describe(self) -> str:
        return "valid" if isinstance(self._state, Valid) else "unacquired"


# -----------------------------------------------------------
# Store
# -----------------------------------------------------------
class BlobStore:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.enabled = settings.blob_enabled
        self.key_id = settings.b2_key_id
        self.application_key = settings.b2_application_key
        self.bucket_name = settings.b2_bucket_name
        self.api_base = settings.b2_api_base
        self.timeout = settings.upstream_timeout_seconds
        self.http = session or requests.Session()

        self._session = LazyCapability("session", self._authorize)
        self._bucket = LazyCapability("bucket", self._resolve_bucket_id)
        self._upload = LazyCapability("upload", self._acquire_upload_capability)
        if settings.b2_bucket_id:
            self._bucket.prime(settings.b2_bucket_id)

        logger.info(
            "Blob store %s → key_id=%s bucket=%s",
            "enabled" if self.enabled else "disabled",
            mask_secret(self.key_id),
            self.bucket_name,
        )

    def is_enabled(self) -> bool:
        return self.enabled

    # Public capability accessors
    def authorize(self) -> BlobSession:
        return self._session.get()

    def resolve_bucket_id(self) -> str:
        return self._bucket.get()

    def acquire_upload_capability(self) -> UploadCapability:
        return self._upload.get()

    def _request(self, method: str, url: str, what: str, **kwargs) -> requests.Response:
        try:
            return self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise BlobStoreError(f"blob store timeout on {what}", status=504, body=str(e)) from e
        except requests.RequestException as e:
            raise BlobStoreError(f"blob store network error on {what}", status=502, body=str(e)) from e

    def _decode(self, resp: requests.Response, operation: str, build: Callable[[Any], T]) -> T:
        try:
            return build(resp.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise BlobStoreError(f"{operation} returned an unexpected body", status=502, body=resp.text[:200]) from e

    def _authorize(self) -> BlobSession:
        resp = self._request(
            "GET",
            f"{self.api_base}/b2api/v2/b2_authorize_account",
            "b2_authorize_account",
            auth=(self.key_id, self.application_key),
        )
        if not resp.ok:
            raise BlobStoreError("b2_authorize_account failed", status=resp.status_code, body=resp.text)
        return self._decode(resp, "b2_authorize_account", lambda data: BlobSession(
            auth_token=data["authorizationToken"],
            api_url=data["apiUrl"],
            download_url=data["downloadUrl"],
            account_id=data["accountId"],
        ))

    def _api_call(self, operation: str, payload: Dict[str, Any], build: Callable[[Any], T]) -> T:
        session = self.authorize()
        resp = self._request(
            "POST",
            f"{session.api_url}/b2api/v2/{operation}",
            operation,
            headers={"Authorization": session.auth_token},
            json=payload,
        )
        if resp.status_code == 401:
            self._session.invalidate(session)
            raise BlobUnauthorizedError(f"{operation} unauthorized", body=resp.text)
        if not resp.ok:
            raise BlobStoreError(f"{operation} failed", status=resp.status_code, body=resp.text)
        return self._decode(resp, operation, build)

    def _resolve_bucket_id(self) -> str:
        session = self.authorize()
        buckets = self._api_call(
            "b2_list_buckets",
            {"accountId": session.account_id},
            lambda data: {b["bucketName"]: b["bucketId"] for b in data.get("buckets", [])},
        )
        if self.bucket_name in buckets:
            return buckets[self.bucket_name]
        raise BlobStoreError(f"bucket {self.bucket_name!r} not found", status=404)

    def _acquire_upload_capability(self) -> UploadCapability:
        return self._api_call(
            "b2_get_upload_url",
            {"bucketId": self.resolve_bucket_id()},
            lambda data: UploadCapability(upload_url=data["uploadUrl"], upload_token=data["authorizationToken"]),
        )

    # -------------------------------------------------------
    # Operations
    # -------------------------------------------------------
    def download_by_name(self, name: str) -> BlobLookup:
        """Look ``name`` up in the bucket.

        Not found and unauthorized are misses; a rejected session is also
        dropped. Every other failure is a BlobFailure the caller must raise.
        """
        if not self.enabled:
            return BlobMiss("disabled")

        try:
            session = self.authorize()
            resp = self._request(
                "GET",
                f"{session.download_url}/file/{quote(self.bucket_name)}/{quote(name)}",
                "download_file_by_name",
                headers={"Authorization": session.auth_token},
            )
        except BlobStoreError as e:
            if e.status == 401:
                # Rejected credentials never reach the viewer; serve from upstream.
                logger.warning("BLOB authorization rejected on download of %s: %s", name, e.body)
                return BlobMiss("unauthorized")
            return BlobFailure(status=e.status, body=e.body or str(e))

        if resp.status_code == 404:
            logger.info("BLOB MISS → %s", name)
            return BlobMiss("not_found")
        if resp.status_code == 401:
            logger.warning("BLOB session rejected on download of %s", name)
            self._session.invalidate(session)
            return BlobMiss("unauthorized")
        if not resp.ok:
            return BlobFailure(status=resp.status_code, body=resp.text)

        logger.info("BLOB HIT → %s bytes=%s", name, len(resp.content))
        return BlobHit(
            data=resp.content,
            content_type=resp.headers.get("Content-Type") or "application/octet-stream",
        )

    def upload_file(self, name: str, data: bytes, content_type: str) -> bool:
        """Store ``data`` under ``name``. Returns False when skipped.

        A rejected upload token (or session while acquiring one) is dropped
        silently so the next upload re-acquires it. Other failures raise.
        """
        if not self.enabled:
            return False

        try:
            capability = self.acquire_upload_capability()
        except BlobUnauthorizedError:
            logger.warning("BLOB upload of %s skipped: session rejected", name)
            return False

        resp = self._request(
            "POST",
            capability.upload_url,
            "upload_file",
            headers={
                "Authorization": capability.upload_token,
                "X-Bz-File-Name": quote(name),
                "Content-Type": content_type,
                "Content-Length": str(len(data)),
                "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
            },
            data=data,
        )
        if resp.status_code == 401:
            logger.warning("BLOB upload token rejected for %s", name)
            self._upload.invalidate(capability)
            return False
        if not resp.ok:
            raise BlobStoreError("upload_file failed", status=resp.status_code, body=resp.text)

        logger.info("BLOB STORED → %s bytes=%s", name, len(data))
        return True

    def stats(self) -> dict:
        return {
            "enabled": self.enabled,
            "session": self._session.describe(),
            "bucket": self._bucket.describe(),
            "upload": self._upload.describe(),
            "authorizations": self._session.acquisitions,
        }
