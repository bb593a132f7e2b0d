from datetime import datetime, timezone
from extensions import db
from .mixins import AccessControlled


class Folder(AccessControlled, db.Model):
    __tablename__ = "folders"

    resource_type = "folder"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=True)
    # Nested-set bounds, maintained by services.hierarchy_store
    lft = db.Column(db.Integer, nullable=False, index=True)
    rgt = db.Column(db.Integer, nullable=False, index=True)
    permission_default = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    # Relations
    children = db.relationship("Folder", backref=db.backref("parent", remote_side=[id]),
                               lazy=True, order_by="Folder.lft", passive_deletes=True)
    files = db.relationship("File", backref="folder", lazy=True, passive_deletes=True)
    user_permissions = db.relationship("FolderUserPermission", back_populates="folder",
                                       lazy=True, passive_deletes=True)

    __table_args__ = (
        db.Index("idx_folders_bounds", "lft", "rgt"),
        db.Index("idx_folders_parent_owner", "parent_id", "owner_id"),
    )

    def __repr__(self):
        return f"<Folder {self.name} [{self.lft}, {self.rgt}]>"

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def inheritance_parent(self):
        return self.parent

    def inheritance_chain(self):
        if self.lft is None or self.rgt is None:
            return super().inheritance_chain()

        from services.hierarchy_store import hierarchy_store
        return hierarchy_store.ancestors(self, include_self=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "owner_id": self.owner_id,
            "permission_default": self.permission_default,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
