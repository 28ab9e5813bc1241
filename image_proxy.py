# image_proxy.py
import logging
import re
from typing import Sequence, Tuple

from app_types import BlobFailure, BlobHit, ImagePayload, ImageTier, ProxiedImage
from blob_store import BlobStore
from cache_keys import derive_blob_name
from errors import BlobStoreError, InvalidRequestError, UpstreamError
from tmdb_client import TmdbClient

logger = logging.getLogger("uvicorn.error")

ORIGINAL_SIZE = "original"
_SIZE_RE = re.compile(r"^[a-z0-9]+$", re.IGNORECASE)


def parse_image_path(path_parts: Sequence[str]) -> Tuple[str, str]:
    """Split ``[size, *rest]`` into ``(size, "a/b.jpg")`` or raise InvalidRequestError."""
    parts = [part for part in path_parts if part]
    if len(parts) < 2 or not _SIZE_RE.match(parts[0]):
        raise InvalidRequestError("invalid image path")
    if any(part in (".", "..") for part in parts[1:]):
        raise InvalidRequestError("invalid image path")
    return parts[0], "/".join(parts[1:])


class ImageProxy:
    def __init__(self, client: TmdbClient, blob_store: BlobStore, blob_prefix: str = "tmdb") -> None:
        self.client = client
        self.blob_store = blob_store
        self.blob_prefix = blob_prefix

    def fetch_sized(self, size: str, rest: str) -> ImagePayload:
        """Fetch ``/<size>/<rest>``; a 404 at a non-original size retries once at original."""
        try:
            return self.client.fetch_image(f"/{size}/{rest}")
        except UpstreamError as e:
            if not e.not_found or size == ORIGINAL_SIZE:
                raise
            logger.info("IMAGE %s missing at %s, falling back to %s", rest, size, ORIGINAL_SIZE)
        return self.client.fetch_image(f"/{ORIGINAL_SIZE}/{rest}")

    def get_image(self, path_parts: Sequence[str]) -> ProxiedImage:
        size, rest = parse_image_path(path_parts)
        name = derive_blob_name(self.blob_prefix, f"{size}/{rest}")

        lookup = self.blob_store.download_by_name(name)
        if isinstance(lookup, BlobHit):
            return ProxiedImage(data=lookup.data, content_type=lookup.content_type, tier=ImageTier.BLOB)
        if isinstance(lookup, BlobFailure):
            raise BlobStoreError("blob store download failed", status=lookup.status, body=lookup.body)

        image = self.fetch_sized(size, rest)
        if self.blob_store.is_enabled():
            self._write_back(name, image)
        return ProxiedImage(data=image.data, content_type=image.content_type, tier=ImageTier.BYPASS)

    def _write_back(self, name: str, image: ImagePayload) -> None:
        # Repopulation is best-effort: its failure is logged and dropped, the
        # caller still gets the image it asked for.
        try:
            self.blob_store.upload_file(name, image.data, image.content_type)
        except BlobStoreError as e:
            logger.warning("BLOB write-back of %s failed (HTTP %s): %s", name, e.status, e.body or e)
        except Exception:
            logger.exception("BLOB write-back of %s failed unexpectedly", name)
