# services/cascade_engine.py
import logging
from dataclasses import dataclass, field
from typing import List, Set

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import File, Folder, PermissionLevel
from services.errors import CascadeFailed
from services.hierarchy_store import hierarchy_store
from services.permission_store import permission_store
from utils.access_logger import log_action, log_permission_action, describe
from utils.performance_logger import performance_monitor

logger = logging.getLogger(__name__)


@dataclass
class DeletionResult:
    folder_ids: Set[int] = field(default_factory=set)
    file_ids: Set[int] = field(default_factory=set)
    # Blob handles of the deleted files, to be removed once the rows are gone
    storage_paths: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "folders_deleted": len(self.folder_ids),
            "files_deleted": len(self.file_ids),
        }


class CascadeEngine:
    """
    Multi-row changes applied to a whole subtree in one transaction.

    Each public method commits on success. On any database error the session
    is rolled back, so either the whole change is visible or none of it, and
    ``CascadeFailed`` is raised.
    """

    def __init__(self, hierarchy=None, permissions=None):
        self.hierarchy = hierarchy or hierarchy_store
        self.permissions = permissions or permission_store

    @performance_monitor("CascadeEngine.cascade_grant", operation_type="bulk")
    def cascade_grant(self, folder: Folder, user_id: int, level, actor_id: int = None) -> dict:
        """
        Write the same grant for ``user_id`` on ``folder``, on every folder
        below it and on every file those folders contain.
        """
        level = PermissionLevel.parse(level)
        folder_id = folder.id

        try:
            folder_ids = [folder_id] + sorted(self.hierarchy.descendant_ids(folder))
            file_ids = [row.id for row in db.session.query(File.id).filter(File.folder_id.in_(folder_ids)).all()]

            self.permissions.bulk_upsert("folder", [(fid, user_id, level) for fid in folder_ids])
            self.permissions.bulk_upsert("file", [(fid, user_id, level) for fid in file_ids])

            affected = {"folders": len(folder_ids), "files": len(file_ids)}
            log_permission_action(actor_id, "GRANT_PERMISSION", folder, user_id, level.value, affected)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Permission cascade on folder {folder_id} for user {user_id} failed")
            raise CascadeFailed(f"Could not apply permission to folder {folder_id}: {e.__class__.__name__}") from e

        logger.info(
            f"Cascaded '{level.value}' for user {user_id} from folder {folder_id} "
            f"to {affected['folders']} folders and {affected['files']} files"
        )
        return affected

    @performance_monitor("CascadeEngine.delete_folder", operation_type="bulk")
    def delete_folder(self, folder: Folder, actor_id: int = None) -> DeletionResult:
        """
        Delete a folder, its whole subtree, every file inside and every grant
        on any of them.
        """
        folder_id = folder.id
        target = describe(folder)

        try:
            left, right = folder.lft, folder.rgt
            descendant_ids = self.hierarchy.descendant_ids(folder)
            folder_ids = descendant_ids | {folder_id}

            files = (db.session.query(File.id, File.path)
                     .filter(File.folder_id.in_(folder_ids))
                     .all())
            result = DeletionResult(
                folder_ids=folder_ids,
                file_ids={row.id for row in files},
                storage_paths=[row.path for row in files],
            )

            self.permissions.delete_all_for_resources("file", result.file_ids)
            self.permissions.delete_all_for_resources("folder", folder_ids)

            if result.file_ids:
                File.query.filter(File.id.in_(result.file_ids)).delete(synchronize_session=False)
            if descendant_ids:
                Folder.query.filter(Folder.id.in_(descendant_ids)).delete(synchronize_session=False)
            Folder.query.filter(Folder.id == folder_id).delete(synchronize_session=False)

            self.hierarchy.close_gap(left, right)

            log_action(actor_id, "DELETE_FOLDER", target,
                       f"{len(descendant_ids)} subfolders, {len(result.file_ids)} files")
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Deletion of folder {folder_id} failed, rolled back")
            raise CascadeFailed(f"Could not delete folder {folder_id}: {e.__class__.__name__}") from e

        self._forget(Folder, result.folder_ids)
        self._forget(File, result.file_ids)
        logger.info(f"Deleted {target} with {len(result.folder_ids) - 1} subfolders and {len(result.file_ids)} files")
        return result

    def delete_file(self, file: File, actor_id: int = None) -> DeletionResult:
        file_id = file.id
        target = describe(file)

        try:
            result = DeletionResult(file_ids={file_id}, storage_paths=[file.path])
            self.permissions.delete_all_for_resource("file", file_id)
            File.query.filter(File.id == file_id).delete(synchronize_session=False)
            log_action(actor_id, "DELETE_FILE", target)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Deletion of file {file_id} failed, rolled back")
            raise CascadeFailed(f"Could not delete file {file_id}: {e.__class__.__name__}") from e

        self._forget(File, result.file_ids)
        return result

    def _forget(self, model, ids):
        # Rows removed by bulk deletes must not linger in the identity map
        for obj in list(db.session.identity_map.values()):
            if isinstance(obj, model) and inspect(obj).identity[0] in ids:
                db.session.expunge(obj)


cascade_engine = CascadeEngine()
