# services/blob_store.py
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from flask import current_app

from services.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """
    Key-value byte storage on the local disk.

    Blobs are addressed by opaque ``<prefix>/<uuid>`` paths relative to the
    storage root; callers never build or interpret those paths.
    """

    def __init__(self, base_path: str = None):
        self._base_path = base_path

    @property
    def base_path(self) -> Path:
        """Chemin racine du stockage (STORAGE_ROOT by default)"""
        return Path(self._base_path or current_app.config.get('STORAGE_ROOT', 'storage'))

    def write(self, data: bytes, prefix: str = "files") -> str:
        path = f"{prefix.strip('/')}/{uuid.uuid4().hex}"
        full_path = self._resolve(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)
        return path

    def read(self, path: str) -> bytes:
        full_path = self._resolve(path)
        if not full_path.is_file():
            raise NotFound(f"Stored content {path} not found")
        return full_path.read_bytes()

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def delete(self, path: str) -> bool:
        full_path = self._resolve(path)
        try:
            full_path.unlink()
            return True
        except FileNotFoundError:
            return False

    def list(self, prefix: str) -> List[Tuple[str, datetime]]:
        """Blobs under ``prefix`` with their modification time (UTC)."""
        directory = self._resolve(prefix)
        if not directory.is_dir():
            return []

        entries = []
        for entry in sorted(directory.iterdir()):
            if entry.is_file():
                modified = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
                entries.append((f"{prefix.strip('/')}/{entry.name}", modified))
        return entries

    def _resolve(self, path: Optional[str]) -> Path:
        if not path or '..' in Path(path).parts:
            raise ValidationFailed(f"Invalid storage path: {path!r}")

        root = self.base_path.resolve()
        full_path = (root / path.lstrip('/')).resolve()
        if root != full_path and root not in full_path.parents:
            raise ValidationFailed(f"Invalid storage path: {path!r}")
        return full_path


blob_store = LocalBlobStore()
