"""File-backed asset repository for single-host deployments and the CLI."""

import json
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .error_handling import with_error_handling
from .exceptions import AssetNotFoundError, StorageError
from .logging_config import get_logger
from .models import AssetStatus, DerivativeUrls, ImageAsset, utc_now
from .protocols import AssetRepository


class _Manifest(BaseModel):
    owners: List[str] = Field(default_factory=list)
    assets: Dict[str, ImageAsset] = Field(default_factory=dict)


class JsonFileAssetRepository(AssetRepository):
    """
    Stores owners and assets in a JSON manifest.

    Every mutation rewrites the manifest through a temporary file and an
    atomic rename. A process-local lock serialises writers; the manifest
    is not safe for several processes writing at once.
    """

    def __init__(self, manifest_path: Path, owners: Optional[Iterable[str]] = None):
        self._path = Path(manifest_path)
        self._lock = threading.RLock()
        self._logger = get_logger("repository")
        self._manifest = self._load()
        if owners:
            for owner_id in owners:
                self.add_owner(owner_id)

    def _load(self) -> _Manifest:
        if not self._path.exists():
            return _Manifest()
        try:
            return _Manifest.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read asset manifest {self._path}: {exc}") from exc

    @with_error_handling
    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(
            json.dumps(self._manifest.model_dump(mode="json"), indent=2), encoding="utf-8"
        )
        os.replace(tmp_path, self._path)

    def add_owner(self, owner_id: str) -> None:
        with self._lock:
            if owner_id not in self._manifest.owners:
                self._manifest.owners.append(owner_id)
                self._save()

    def find_owner(self, owner_id: str) -> bool:
        with self._lock:
            return owner_id in self._manifest.owners

    def create_asset(self, asset: ImageAsset) -> str:
        with self._lock:
            self._manifest.assets[asset.id] = asset
            self._save()
        self._logger.debug(f"[REPOSITORY] Asset created - id={asset.id}, owner_id={asset.owner_id}")
        return asset.id

    def get_asset(self, asset_id: str) -> Optional[ImageAsset]:
        with self._lock:
            asset = self._manifest.assets.get(asset_id)
            return asset.model_copy() if asset else None

    def update_asset_status(
        self,
        asset_id: str,
        status: AssetStatus,
        urls: Optional[DerivativeUrls] = None,
        original_retained: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> ImageAsset:
        with self._lock:
            asset = self._manifest.assets.get(asset_id)
            if asset is None:
                raise AssetNotFoundError(f"Image asset {asset_id!r} not found")
            changes = {"status": status, "updated_at": utc_now()}
            if urls is not None:
                changes["optimized_url"] = urls.optimized_url
                changes["thumbnail_url"] = urls.thumbnail_url
            if original_retained is not None:
                changes["original_retained"] = original_retained
            if error is not None:
                changes["error"] = error
            updated = asset.model_copy(update=changes)
            self._manifest.assets[asset_id] = updated
            self._save()
            return updated.model_copy()

    def list_assets(
        self, status: AssetStatus, original_retained: bool = True
    ) -> List[ImageAsset]:
        with self._lock:
            return [
                asset.model_copy()
                for asset in self._manifest.assets.values()
                if asset.status == status and asset.original_retained == original_retained
            ]

    def delete_asset(self, asset_id: str) -> None:
        with self._lock:
            if self._manifest.assets.pop(asset_id, None) is not None:
                self._save()
