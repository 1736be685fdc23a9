"""Shared data models for the image derivative pipeline."""

import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Semantic purpose of an uploaded image."""

    PROJECT = "PROJECT"
    PROJECT_CAROUSEL = "PROJECT_CAROUSEL"
    ARTICLE = "ARTICLE"
    PROFILE = "PROFILE"

    @property
    def prefix(self) -> str:
        """Filename prefix used for staged and derivative files."""
        return _ROLE_PREFIXES[self]

    @property
    def has_thumbnail(self) -> bool:
        return self is not Role.PROFILE


_ROLE_PREFIXES = {
    Role.PROJECT: "project",
    Role.PROJECT_CAROUSEL: "project",
    Role.ARTICLE: "article",
    Role.PROFILE: "profile",
}


class AssetStatus(str, Enum):
    """Lifecycle state of an image asset."""

    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"


class ExecutionMode(str, Enum):
    """How submit runs the derivative worker."""

    SYNC = "sync"
    ASYNC = "async"


class UploadRequest(BaseModel):
    """Caller-supplied upload, never persisted."""

    owner_id: str
    role: Role
    data: bytes = Field(repr=False)
    filename: str
    content_type: str
    index: Optional[int] = None


class ValidatedUpload(BaseModel):
    """Bytes that passed the validation gate, with their detected format."""

    data: bytes = Field(repr=False)
    filename: str
    extension: str
    detected_format: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


class StagedFile(BaseModel):
    """A validated upload written to the upload directory."""

    basename: str
    staged_path: str
    optimized_path: str
    thumbnail_path: Optional[str] = None

    @property
    def optimized_file(self) -> str:
        return os.path.basename(self.optimized_path)

    @property
    def thumbnail_file(self) -> Optional[str]:
        if self.thumbnail_path is None:
            return None
        return os.path.basename(self.thumbnail_path)


class ProcessingRequest(BaseModel):
    """Message handed from staging to the derivative worker."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    asset_id: str
    owner_id: str
    role: Role
    staged_path: str
    optimized_path: str
    thumbnail_path: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class DerivativeUrls(BaseModel):
    """Public URLs of an asset's derivatives."""

    optimized_url: str
    thumbnail_url: Optional[str] = None


class ImageAsset(BaseModel):
    """Persisted record of an uploaded image and its derivatives."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str
    role: Role
    status: AssetStatus = AssetStatus.PENDING
    optimized_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    optimized_file: str
    thumbnail_file: Optional[str] = None
    original_file: Optional[str] = None
    original_retained: bool = False
    file_size: int = 0
    content_type: str = ""
    error: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class SyncResult(BaseModel):
    """Outcome of a synchronous submit: derivatives exist on disk."""

    asset_id: str
    urls: DerivativeUrls
    status: AssetStatus = AssetStatus.READY


class AsyncTicket(BaseModel):
    """Acceptance ticket for an asynchronous submit."""

    asset_id: str
    event_id: str
    status: AssetStatus = AssetStatus.PENDING


SubmitResult = Union[SyncResult, AsyncTicket]


class ProcessingResult(BaseModel):
    """Result of the worker handling a single processing request."""

    event_id: str
    asset_id: str
    success: bool = False
    urls: Optional[DerivativeUrls] = None
    original_retained: bool = False
    error: str = ""
    processing_time: float = 0.0


class BatchFailure(BaseModel):
    """A single asset that could not be reprocessed."""

    asset_id: str
    error: str


class BatchSummary(BaseModel):
    """Aggregate outcome of a reprocessing run."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[BatchFailure] = Field(default_factory=list)
    processing_time: float = 0.0

    @property
    def total(self) -> int:
        return self.processed + self.failed + self.skipped
