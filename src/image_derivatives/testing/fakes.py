"""Fake implementations for testing purposes."""

import io
import threading
import time
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from PIL import Image

from ..core.exceptions import AssetNotFoundError
from ..core.models import AssetStatus, DerivativeUrls, ImageAsset, utc_now
from ..core.protocols import AssetRepository


class InMemoryAssetRepository(AssetRepository):
    """Thread-safe in-memory persistence with a lock per owner."""

    def __init__(self, owners: Optional[Iterable[str]] = None):
        self.owners = set(owners or [])
        self.assets: Dict[str, ImageAsset] = {}
        self.operation_count = 0
        self.should_fail = False
        self.failure_message = "Simulated persistence failure"
        self._registry_lock = threading.Lock()
        self._owner_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def set_failure_mode(
        self, should_fail: bool, message: str = "Simulated persistence failure"
    ) -> None:
        """Configure failure mode for testing error handling."""
        self.should_fail = should_fail
        self.failure_message = message

    def _owner_lock(self, owner_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._owner_locks[owner_id]

    def _check(self) -> None:
        self.operation_count += 1
        if self.should_fail:
            raise Exception(self.failure_message)

    def add_owner(self, owner_id: str) -> None:
        self.owners.add(owner_id)

    def find_owner(self, owner_id: str) -> bool:
        return owner_id in self.owners

    def create_asset(self, asset: ImageAsset) -> str:
        self._check()
        with self._owner_lock(asset.owner_id):
            self.assets[asset.id] = asset
        return asset.id

    def get_asset(self, asset_id: str) -> Optional[ImageAsset]:
        asset = self.assets.get(asset_id)
        return asset.model_copy() if asset else None

    def update_asset_status(
        self,
        asset_id: str,
        status: AssetStatus,
        urls: Optional[DerivativeUrls] = None,
        original_retained: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> ImageAsset:
        self._check()
        asset = self.assets.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Image asset {asset_id!r} not found")
        with self._owner_lock(asset.owner_id):
            changes: Dict[str, Any] = {"status": status, "updated_at": utc_now()}
            if urls is not None:
                changes["optimized_url"] = urls.optimized_url
                changes["thumbnail_url"] = urls.thumbnail_url
            if original_retained is not None:
                changes["original_retained"] = original_retained
            if error is not None:
                changes["error"] = error
            updated = asset.model_copy(update=changes)
            self.assets[asset_id] = updated
        return updated.model_copy()

    def list_assets(
        self, status: AssetStatus, original_retained: bool = True
    ) -> List[ImageAsset]:
        return [
            asset.model_copy()
            for asset in list(self.assets.values())
            if asset.status == status and asset.original_retained == original_retained
        ]

    def delete_asset(self, asset_id: str) -> None:
        asset = self.assets.get(asset_id)
        if asset is None:
            return
        with self._owner_lock(asset.owner_id):
            self.assets.pop(asset_id, None)

    def get_assets(self, status: Optional[AssetStatus] = None) -> List[ImageAsset]:
        """Get stored assets, optionally filtered by status."""
        if status:
            return [asset for asset in self.assets.values() if asset.status == status]
        return list(self.assets.values())


class FakeLogger:
    """Fake logger recording messages for assertions."""

    def __init__(self, name: str = "test_logger"):
        self.name = name
        self.logs: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def _log(self, level: str, message: str, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self.logs.append(
                {"level": level, "message": message, "timestamp": time.time()}
            )

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("DEBUG", message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("INFO", message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("WARNING", message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("ERROR", message, *args, **kwargs)

    def get_logs(self, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get logged messages, optionally filtered by level."""
        with self._lock:
            if level:
                return [log for log in self.logs if log["level"] == level]
            return list(self.logs)

    def clear_logs(self) -> None:
        with self._lock:
            self.logs.clear()


def create_test_image(
    width: int = 100,
    height: int = 100,
    format_type: str = "JPEG",
    mode: str = "RGB",
) -> bytes:
    """Create a test image in memory with a blue/red checker pattern."""
    image = Image.new(mode, (width, height), color="red")

    blue = (0, 0, 255) if mode == "RGB" else (0, 0, 255, 255)
    for x in range(0, width, 20):
        for y in range(0, height, 20):
            if (x + y) % 40 == 0:
                image.paste(blue, (x, y, min(x + 10, width), min(y + 10, height)))

    img_bytes = io.BytesIO()
    if format_type.upper() == "JPEG":
        image.save(img_bytes, format="JPEG", quality=95)
    else:
        image.save(img_bytes, format=format_type.upper())
    return img_bytes.getvalue()


def image_size(path: str) -> tuple:
    """Open an image file and return its (width, height) after a full decode."""
    with Image.open(path) as image:
        image.load()
        return image.size
