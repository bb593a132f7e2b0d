# services/permission_store.py
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.dialects import postgresql, sqlite

from extensions import db
from models import FileUserPermission, FolderUserPermission, PermissionLevel
from services.errors import StorageError, ValidationFailed

logger = logging.getLogger(__name__)

GRANT_MODELS = {
    "folder": FolderUserPermission,
    "file": FileUserPermission,
}

RESOURCE_COLUMNS = {
    "folder": "folder_id",
    "file": "file_id",
}

UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# keeps a statement under SQLite's bound-parameter limit
UPSERT_CHUNK_SIZE = 500

GrantRow = Tuple[int, int, object]


class PermissionStore:
    """
    Explicit (resource, user) -> permission level grants, one table per
    resource type.

    Writes join the current session transaction; callers commit.
    """

    def model_for(self, resource_type: str):
        try:
            return GRANT_MODELS[resource_type]
        except KeyError:
            raise ValidationFailed(f"Unknown resource type {resource_type!r}")

    def get(self, resource_type: str, resource_id: int, user_id: int) -> Optional[PermissionLevel]:
        model = self.model_for(resource_type)
        grant = model.query.filter(
            model.resource_id == resource_id,
            model.user_id == user_id
        ).first()
        return grant.level if grant else None

    def get_many(self, resource_type: str, resource_ids: Iterable[int],
                 user_id: int) -> Dict[int, PermissionLevel]:
        """Grants of one user on many resources, keyed by resource id."""
        resource_ids = list(set(resource_ids))
        if not resource_ids:
            return {}

        model = self.model_for(resource_type)
        rows = (db.session.query(model.resource_id, model.permission)
                .filter(model.resource_id.in_(resource_ids), model.user_id == user_id)
                .all())
        return {resource_id: PermissionLevel(permission) for resource_id, permission in rows}

    def grants_for_resource(self, resource_type: str, resource_id: int) -> List:
        model = self.model_for(resource_type)
        return (model.query
                .filter(model.resource_id == resource_id)
                .order_by(model.user_id)
                .all())

    def upsert(self, resource_type: str, resource_id: int, user_id: int, level) -> PermissionLevel:
        """Create or overwrite a single grant (last write wins)."""
        self.bulk_upsert(resource_type, [(resource_id, user_id, level)])
        return PermissionLevel.parse(level)

    def bulk_upsert(self, resource_type: str, rows: Iterable[GrantRow]) -> int:
        """
        Create or overwrite many grants at once with ``INSERT .. ON CONFLICT
        DO UPDATE``, so concurrent writers of the same pair never collide on
        the unique constraint and the last one to commit wins.

        Every level is validated before anything is written, so an invalid
        row leaves the store untouched.

        Returns:
            Number of distinct (resource, user) pairs written
        """
        model = self.model_for(resource_type)

        pending = {}
        for resource_id, user_id, level in rows:
            pending[(resource_id, user_id)] = PermissionLevel.parse(level)
        if not pending:
            return 0

        insert = self._insert_for(model)
        resource_column = RESOURCE_COLUMNS[resource_type]
        now = datetime.now(timezone.utc)
        values = [
            {resource_column: resource_id, "user_id": user_id, "permission": level.value,
             "created_at": now, "updated_at": now}
            for (resource_id, user_id), level in pending.items()
        ]

        db.session.flush()
        for start in range(0, len(values), UPSERT_CHUNK_SIZE):
            statement = insert(model.__table__).values(values[start:start + UPSERT_CHUNK_SIZE])
            statement = statement.on_conflict_do_update(
                index_elements=[resource_column, "user_id"],
                set_={
                    "permission": statement.excluded.permission,
                    "updated_at": statement.excluded.updated_at,
                }
            )
            db.session.execute(statement)

        # loaded grant objects no longer match their rows
        for obj in list(db.session.identity_map.values()):
            if isinstance(obj, model):
                db.session.expire(obj)

        logger.debug(f"Upserted {len(pending)} {resource_type} grants")
        return len(pending)

    def delete_all_for_resource(self, resource_type: str, resource_id: int) -> int:
        return self.delete_all_for_resources(resource_type, [resource_id])

    def delete_all_for_resources(self, resource_type: str, resource_ids: Iterable[int]) -> int:
        resource_ids = list(set(resource_ids))
        if not resource_ids:
            return 0

        model = self.model_for(resource_type)
        deleted = model.query.filter(model.resource_id.in_(resource_ids)).delete(
            synchronize_session=False
        )
        return deleted

    def _insert_for(self, model):
        dialect = db.session.get_bind(mapper=model).dialect.name
        try:
            return UPSERT_INSERTS[dialect]
        except KeyError:
            raise StorageError(f"Grant upserts are not supported on {dialect}")


permission_store = PermissionStore()
