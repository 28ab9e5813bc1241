# cache_keys.py
from app_types import ResourceKind

DETAIL_TTL_MS = 10 * 60 * 1000
TITLE_CARD_TTL_MS = 30 * 60 * 1000

TTL_MS = {
    ResourceKind.DETAIL: DETAIL_TTL_MS,
    ResourceKind.TITLE_CARD: TITLE_CARD_TTL_MS,
}


def _key(kind: ResourceKind, media_type, media_id: int, language: str) -> str:
    # Enum members and plain strings must produce the same key.
    type_value = getattr(media_type, "value", media_type)
    return f"{kind.value}|type={type_value}|id={int(media_id)}|lang={language}"


def derive_detail_key(media_type, media_id: int, language: str) -> str:
    return _key(ResourceKind.DETAIL, media_type, media_id, language)


def derive_card_key(media_type, media_id: int, language: str) -> str:
    return _key(ResourceKind.TITLE_CARD, media_type, media_id, language)


def ttl_for(kind: ResourceKind) -> int:
    return TTL_MS[kind]


def derive_blob_name(prefix: str, image_path: str) -> str:
    """Object name for a proxied image, e.g. ``tmdb/w500/abc.jpg``."""
    path = image_path.lstrip("/")
    return f"{prefix}/{path}" if prefix else path
