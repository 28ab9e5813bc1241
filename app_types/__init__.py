from .media import ResourceKind, TitleType
from .blob import BlobFailure, BlobHit, BlobLookup, BlobMiss, BlobSession, UploadCapability
from .images import ImagePayload, ImageTier, ProxiedImage
