from dataclasses import dataclass
from enum import Enum

class ImageTier(str, Enum):
    BLOB = "blob"
    BYPASS = "bypass"

@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    content_type: str

@dataclass(frozen=True)
class ProxiedImage:
    data: bytes
    content_type: str
    tier: ImageTier
