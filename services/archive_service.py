# services/archive_service.py
import io
import logging
import posixpath
import zipfile
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException

from extensions import db
from services.errors import Forbidden, NotFound
from services.storage_service import storage_service
from utils.access_logger import log_action, describe
from utils.performance_logger import PerformanceTracker

logger = logging.getLogger(__name__)

TEMP_PREFIX = "tmp"


def unique_entry_name(taken: set, name: str) -> str:
    """
    ``name`` if it is still free in ``taken``, otherwise ``name (2)``,
    ``name (3)``... with the suffix placed before the extension. The
    returned name is added to ``taken``.
    """
    candidate = name
    stem, ext = posixpath.splitext(name)
    counter = 2
    while candidate in taken:
        candidate = f"{stem} ({counter}){ext}"
        counter += 1
    taken.add(candidate)
    return candidate


class ArchiveService:
    """
    Zip downloads of a folder subtree, limited to what the requesting user
    can read, served once through a short-lived signed link.
    """

    def __init__(self, storage=None):
        self.storage = storage or storage_service

    @property
    def blobs(self):
        return self.storage.blobs

    def build_archive(self, user, folder) -> bytes:
        """
        Zip the readable part of ``folder``. A subfolder the user cannot read
        is left out together with everything below it, even if something
        deeper was shared again.
        """
        resolver = self.storage.resolver
        folders, folder_res, files_by_folder, file_res = resolver.resolve_subtree(user, folder)

        # archive path of every included folder, keyed by id
        paths = {}
        # entry names already taken inside each archive directory
        taken = {}
        buffer = io.BytesIO()
        with PerformanceTracker(f"ArchiveService.build_archive[{folder.id}]"), \
                zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for node in folders:
                if node.id == folder.id:
                    paths[node.id] = node.name
                elif node.parent_id in paths and folder_res[node.id].can_read:
                    parent_path = paths[node.parent_id]
                    paths[node.id] = f"{parent_path}/{unique_entry_name(taken[parent_path], node.name)}"
                else:
                    continue

                archive.writestr(zipfile.ZipInfo(f"{paths[node.id]}/"), b"")
                taken[paths[node.id]] = set()

                for f in files_by_folder.get(node.id, []):
                    if not file_res[f.id].can_read:
                        continue
                    try:
                        data = self.blobs.read(f.path)
                    except NotFound:
                        logger.warning(f"Skipping {describe(f)}: stored content {f.path} is missing")
                        continue
                    name = unique_entry_name(taken[paths[node.id]], f.name)
                    archive.writestr(f"{paths[node.id]}/{name}", data)

        return buffer.getvalue()

    def create_download(self, user, folder_id) -> dict:
        """
        Build the archive, park it in temporary storage and return a signed
        link the user can fetch without an Authorization header.
        """
        folder = self.storage.get_folder(folder_id)
        self.storage.require(user, folder, "read")

        data = self.build_archive(user, folder)
        path = self.blobs.write(data, prefix=TEMP_PREFIX)

        expires_in = current_app.config.get("TEMP_DOWNLOAD_EXPIRES_SECONDS", 900)
        token = create_access_token(
            identity=str(user.id),
            expires_delta=timedelta(seconds=expires_in),
            additional_claims={
                "temp_access": True,
                "download_path": path,
                "folder_id": folder.id,
            }
        )

        logger.info(f"Prepared archive of {describe(folder)} for user {user.id} ({len(data)} bytes)")
        return {
            "download_url": f"/downloads/serve?token={token}",
            "token": token,
            "expires_in": expires_in,
            "filename": f"{folder.name}.zip",
            "size": len(data),
        }

    def serve_download(self, token: str):
        """
        Check a download link, return the archive bytes and the file name,
        then remove the parked archive.
        """
        claims = self._decode(token)
        user = self.storage.get_user(int(claims["sub"]))
        folder = self.storage.get_folder(claims.get("folder_id"))
        # access may have been revoked since the link was issued
        self.storage.require(user, folder, "read")

        path = claims["download_path"]
        data = self.blobs.read(path)
        self.blobs.delete(path)

        log_action(user.id, "DOWNLOAD_FOLDER", describe(folder), f"{len(data)} bytes")
        db.session.commit()
        return data, f"{folder.name}.zip"

    def cleanup_temporary_files(self, max_age_hours=None) -> int:
        """Remove parked archives older than ``max_age_hours``."""
        if max_age_hours is None:
            max_age_hours = current_app.config.get("TEMP_FILE_MAX_AGE_HOURS", 1)
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)

        removed = 0
        for path, modified in self.blobs.list(TEMP_PREFIX):
            if modified < cutoff and self.blobs.delete(path):
                removed += 1

        if removed:
            logger.info(f"Removed {removed} temporary archives older than {max_age_hours}h")
        return removed

    def _decode(self, token) -> dict:
        if not token:
            raise Forbidden("Download token is required")
        try:
            claims = decode_token(token)
        except (jwt.InvalidTokenError, JWTExtendedException) as e:
            logger.info(f"Rejected download token: {e}")
            raise Forbidden("Invalid or expired link")

        path = claims.get("download_path") or ""
        if not claims.get("temp_access") or not path.startswith(f"{TEMP_PREFIX}/"):
            raise Forbidden("Invalid or expired link")
        return claims


archive_service = ArchiveService()
