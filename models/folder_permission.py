from datetime import datetime, timezone
from sqlalchemy.orm import synonym
from extensions import db
from .permission import PermissionLevel

class FolderUserPermission(db.Model):
    __tablename__ = "folder_user_permissions"

    id = db.Column(db.Integer, primary_key=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    permission = db.Column(db.String(20), nullable=False, default=PermissionLevel.READ.value)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    resource_id = synonym("folder_id")

    user = db.relationship("User", backref="folder_permissions")
    folder = db.relationship("Folder", back_populates="user_permissions")

    __table_args__ = (
        db.UniqueConstraint("folder_id", "user_id", name="uq_folder_user_permission"),
        db.Index("idx_folder_user_permissions_user", "user_id", "folder_id"),
    )

    @property
    def level(self) -> PermissionLevel:
        return PermissionLevel(self.permission)

    def to_dict(self):
        return {
            "folder_id": self.folder_id,
            "user_id": self.user_id,
            "permission": self.permission,
        }

    def __repr__(self):
        return f"<FolderUserPermission Folder:{self.folder_id} User:{self.user_id} {self.permission}>"
