"""
Value types exchanged with the blob store.

Session and upload capabilities are replaced as whole values, never mutated.
A download answers with exactly one of BlobHit, BlobMiss or BlobFailure.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class BlobSession:
    auth_token: str
    api_url: str
    download_url: str
    account_id: str


@dataclass(frozen=True)
class UploadCapability:
    upload_url: str
    upload_token: str


@dataclass(frozen=True)
class BlobHit:
    data: bytes
    content_type: str


@dataclass(frozen=True)
class BlobMiss:
    reason: str  # "disabled" | "not_found" | "unauthorized"


@dataclass(frozen=True)
class BlobFailure:
    status: int
    body: str


BlobLookup = Union[BlobHit, BlobMiss, BlobFailure]
