"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Protocol

from .models import AssetStatus, DerivativeUrls, ImageAsset, ProcessingRequest


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""
        ...


class AssetRepository(ABC):
    """
    Persistence of owners and image assets.

    Implemented by the entity layer; additions and removals for one owner
    must be applied atomically with respect to each other.
    """

    @abstractmethod
    def find_owner(self, owner_id: str) -> bool:
        """Return True when the owning entity exists."""
        ...

    @abstractmethod
    def create_asset(self, asset: ImageAsset) -> str:
        """Persist a new asset and return its id."""
        ...

    @abstractmethod
    def get_asset(self, asset_id: str) -> Optional[ImageAsset]:
        """Return the asset, or None when unknown."""
        ...

    @abstractmethod
    def update_asset_status(
        self,
        asset_id: str,
        status: AssetStatus,
        urls: Optional[DerivativeUrls] = None,
        original_retained: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> ImageAsset:
        """Update status and, when given, URLs, retention flag and error."""
        ...

    @abstractmethod
    def list_assets(
        self, status: AssetStatus, original_retained: bool = True
    ) -> List[ImageAsset]:
        """Snapshot of assets in a status with the given retention flag."""
        ...

    @abstractmethod
    def delete_asset(self, asset_id: str) -> None:
        """Remove the asset record."""
        ...


class RequestQueue(ABC):
    """Channel carrying processing requests to the derivative worker."""

    @abstractmethod
    def publish(self, request: ProcessingRequest) -> None:
        """Enqueue a request; must not block on transform work."""
        ...

    def start(self) -> None:
        """Start consuming. No-op for queues without consumers."""

    def stop(self, wait: bool = True) -> None:
        """Stop consuming, optionally draining queued requests first."""

    def join(self) -> None:
        """Block until every published request has been handled."""
