# services/storage_service.py
import logging
import mimetypes
from contextlib import contextmanager
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import File, Folder, FolderUserPermission, PermissionLevel, User
from services.access_resolver import access_resolver, Resolution, NO_ACCESS
from services.blob_store import blob_store
from services.cascade_engine import cascade_engine
from services.errors import CascadeFailed, Forbidden, NotFound, StorageError, ValidationFailed
from services.hierarchy_store import hierarchy_store
from services.permission_store import permission_store
from utils.access_logger import log_action, log_permission_action, log_denied, describe

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255

RESOURCE_MODELS = {
    "folder": Folder,
    "file": File,
}


def clean_name(name) -> str:
    """Strip a folder or file name and reject values that cannot be stored."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailed("Name is required")

    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationFailed(f"Name must be at most {MAX_NAME_LENGTH} characters")
    if '/' in name or '\\' in name or name in ('.', '..'):
        raise ValidationFailed("Name cannot contain path separators")
    return name


class StorageService:
    """
    Folder and file operations as seen by a caller, independent of the HTTP
    layer. Every operation asks the access resolver first and only then
    touches the stores.
    """

    def __init__(self, resolver=None, hierarchy=None, permissions=None,
                 cascades=None, blobs=None):
        self.resolver = resolver or access_resolver
        self.hierarchy = hierarchy or hierarchy_store
        self.permissions = permissions or permission_store
        self.cascades = cascades or cascade_engine
        self.blobs = blobs or blob_store

    # ----------------------------------------------------------------- lookups

    def get_user(self, user_id) -> User:
        user = db.session.get(User, user_id) if user_id is not None else None
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def get_folder(self, folder_id) -> Folder:
        folder = db.session.get(Folder, folder_id) if folder_id is not None else None
        if folder is None:
            raise NotFound(f"Folder {folder_id} not found")
        return folder

    def get_file(self, file_id) -> File:
        file = db.session.get(File, file_id) if file_id is not None else None
        if file is None:
            raise NotFound(f"File {file_id} not found")
        return file

    def get_resource(self, resource_type: str, resource_id):
        model = RESOURCE_MODELS.get(resource_type)
        if model is None:
            raise ValidationFailed(f"Unknown resource type {resource_type!r}")
        resource = db.session.get(model, resource_id)
        if resource is None:
            raise NotFound(f"{resource_type.capitalize()} {resource_id} not found")
        return resource

    def require(self, user, resource, action: str) -> Resolution:
        """Resolve access and raise ``Forbidden`` unless ``action`` is allowed."""
        resolution = self.resolver.resolve(user, resource)
        allowed = {
            "read": resolution.can_read,
            "write": resolution.can_write,
            "full_access": resolution.has_full_access,
        }[action]
        if not allowed:
            log_denied(user.id, action, resource)
            raise Forbidden(f"Forbidden: no {action} permission on {resource.resource_type} {resource.id}")
        return resolution

    # ----------------------------------------------------------------- folders

    def create_folder(self, user, name, parent_id=None) -> Folder:
        name = clean_name(name)
        parent = self.get_folder(parent_id) if parent_id is not None else None
        if parent is not None:
            self.require(user, parent, "write")

        folder = Folder(name=name, owner_id=user.id)
        with self._transaction(f"Could not create folder '{name}'"):
            if parent is not None:
                self.hierarchy.append_child(parent, folder)
            else:
                self.hierarchy.append_root(folder)
            log_action(user.id, "CREATE_FOLDER", describe(folder))
        return folder

    def rename_folder(self, user, folder_id, name) -> Folder:
        folder = self.get_folder(folder_id)
        name = clean_name(name)
        self.require(user, folder, "write")

        with self._transaction(f"Could not rename folder {folder_id}"):
            old_name = folder.name
            folder.name = name
            log_action(user.id, "RENAME_FOLDER", describe(folder), f"was '{old_name}'")
        return folder

    def move_folder(self, user, folder_id, new_parent_id=None) -> Folder:
        folder = self.get_folder(folder_id)
        new_parent = self.get_folder(new_parent_id) if new_parent_id is not None else None

        self.require(user, folder, "write")
        if new_parent is not None:
            self.require(user, new_parent, "write")

        with self._transaction(f"Could not move folder {folder_id}"):
            self.hierarchy.move(folder, new_parent)
            destination = f"folder #{new_parent.id}" if new_parent is not None else "root"
            log_action(user.id, "MOVE_FOLDER", describe(folder), f"to {destination}")
        return folder

    def delete_folder(self, user, folder_id):
        folder = self.get_folder(folder_id)
        self.require(user, folder, "full_access")

        result = self.cascades.delete_folder(folder, actor_id=user.id)
        self._remove_blobs(result.storage_paths)
        return result

    def list_roots(self, user) -> List[Tuple[Folder, Resolution]]:
        """Root folders the user can read (owned or explicitly granted)."""
        granted_ids = (db.select(FolderUserPermission.folder_id)
                       .where(FolderUserPermission.user_id == user.id))
        roots = (Folder.query
                 .filter(Folder.parent_id.is_(None))
                 .filter(db.or_(Folder.owner_id == user.id, Folder.id.in_(granted_ids)))
                 .order_by(Folder.lft)
                 .all())
        grants = self.permissions.get_many("folder", [f.id for f in roots], user.id)

        result = []
        for root in roots:
            resolution = self.resolver.apply_rules(user.id, root, grants.get(root.id), NO_ACCESS)
            if resolution.can_read:
                result.append((root, resolution))
        return result

    def list_shared(self, user) -> List[Tuple[Folder, Resolution]]:
        """
        Non-root folders readable through an explicit grant while their parent
        is not readable, i.e. entry points the user cannot reach from a root.
        """
        grants = (FolderUserPermission.query
                  .filter(FolderUserPermission.user_id == user.id,
                          FolderUserPermission.permission != PermissionLevel.PRIVATE.value)
                  .all())

        result = []
        for grant in grants:
            folder = grant.folder
            if folder is None or folder.parent_id is None or folder.owner_id == user.id:
                continue
            if self.resolver.can_read(user, folder.parent):
                continue
            resolution = self.resolver.resolve(user, folder)
            if resolution.can_read:
                result.append((folder, resolution))
        result.sort(key=lambda item: item[0].lft)
        return result

    def list_children(self, user, folder_id):
        """
        Returns:
            (folder, folder_resolution, [(subfolder, Resolution)], [(file, Resolution)])
            restricted to what the user can read
        """
        folder = self.get_folder(folder_id)
        resolution = self.require(user, folder, "read")

        _, subfolders, files = self.resolver.resolve_children(user, folder, resolution)
        return (
            folder,
            resolution,
            [(sub, res) for sub, res in subfolders if res.can_read],
            [(f, res) for f, res in files if res.can_read],
        )

    def search(self, user, folder_id, query):
        """Case-insensitive name search over the readable part of a subtree."""
        if not isinstance(query, str) or not query.strip():
            raise ValidationFailed("Search query is required")
        query = query.strip()
        if len(query) > MAX_NAME_LENGTH:
            raise ValidationFailed(f"Search query must be at most {MAX_NAME_LENGTH} characters")

        folder = self.get_folder(folder_id)
        self.require(user, folder, "read")

        folders, folder_res, files_by_folder, file_res = self.resolver.resolve_subtree(user, folder)
        needle = query.lower()

        matched_folders = []
        matched_files = []
        for node in folders:
            if not folder_res[node.id].can_read:
                continue
            if needle in node.name.lower():
                matched_folders.append((node, folder_res[node.id]))
            for f in files_by_folder.get(node.id, []):
                if file_res[f.id].can_read and needle in f.name.lower():
                    matched_files.append((f, file_res[f.id]))
        return matched_folders, matched_files

    # ------------------------------------------------------------------- files

    def create_file(self, user, folder_id, name, data: bytes, mime_type: Optional[str] = None) -> File:
        name = clean_name(name)
        folder = self.get_folder(folder_id)
        self.require(user, folder, "write")

        path = self.blobs.write(data)
        file = File(
            name=name,
            path=path,
            size=len(data),
            mime_type=mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream",
            owner_id=user.id,
            folder_id=folder.id,
        )
        try:
            with self._transaction(f"Could not store file '{name}'"):
                db.session.add(file)
                db.session.flush()
                log_action(user.id, "CREATE_FILE", describe(file))
        except CascadeFailed:
            self.blobs.delete(path)
            raise
        return file

    def read_file(self, user, file_id) -> Tuple[File, bytes]:
        file = self.get_file(file_id)
        self.require(user, file, "read")
        return file, self.blobs.read(file.path)

    def delete_file(self, user, file_id):
        file = self.get_file(file_id)
        self.require(user, file, "write")

        result = self.cascades.delete_file(file, actor_id=user.id)
        self._remove_blobs(result.storage_paths)
        return result

    # ------------------------------------------------------------- permissions

    def resolve_access(self, user, resource_type: str, resource_id) -> Resolution:
        resource = self.get_resource(resource_type, resource_id)
        return self.resolver.resolve(user, resource)

    def grant_permission(self, user, resource_type: str, resource_id, grantee_id, level) -> dict:
        """
        Grant ``level`` to ``grantee_id``. On a folder the grant cascades to
        the whole subtree; on a file it is a single upsert.
        """
        level = PermissionLevel.parse(level)
        resource = self.get_resource(resource_type, resource_id)
        grantee = self.get_user(grantee_id)
        self.require(user, resource, "full_access")

        if isinstance(resource, Folder):
            return self.cascades.cascade_grant(resource, grantee.id, level, actor_id=user.id)

        with self._transaction(f"Could not update permissions of file {resource.id}"):
            self.permissions.upsert("file", resource.id, grantee.id, level)
            log_permission_action(user.id, "GRANT_PERMISSION", resource, grantee.id, level.value)
        return {"folders": 0, "files": 1}

    def set_private(self, user, resource_type: str, resource_id, grantee_id) -> None:
        """Lock ``grantee_id`` out of this one resource (no cascade)."""
        resource = self.get_resource(resource_type, resource_id)
        grantee = self.get_user(grantee_id)
        self.require(user, resource, "full_access")

        with self._transaction(f"Could not set {resource_type} {resource.id} private"):
            self.permissions.upsert(resource.resource_type, resource.id, grantee.id, PermissionLevel.PRIVATE)
            log_permission_action(user.id, "SET_PRIVATE", resource, grantee.id, PermissionLevel.PRIVATE.value)

    def list_grants(self, user, resource_type: str, resource_id):
        resource = self.get_resource(resource_type, resource_id)
        self.require(user, resource, "full_access")
        return self.permissions.grants_for_resource(resource.resource_type, resource.id)

    # --------------------------------------------------------------- internals

    @contextmanager
    def _transaction(self, failure_message: str):
        try:
            yield
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(failure_message)
            raise CascadeFailed(failure_message) from e
        except StorageError:
            db.session.rollback()
            raise

    def _remove_blobs(self, paths):
        for path in paths:
            try:
                if not self.blobs.delete(path):
                    logger.warning(f"Stored content {path} was already missing")
            except (OSError, StorageError) as e:
                logger.warning(f"Could not remove stored content {path}: {e}")


storage_service = StorageService()
