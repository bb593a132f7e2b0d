from datetime import datetime, timezone
from sqlalchemy.orm import synonym
from extensions import db
from .permission import PermissionLevel

class FileUserPermission(db.Model):
    __tablename__ = "file_user_permissions"

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, db.ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    permission = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    resource_id = synonym("file_id")

    user = db.relationship("User", backref="file_permissions")
    file = db.relationship("File", back_populates="user_permissions")

    __table_args__ = (
        db.UniqueConstraint("file_id", "user_id", name="uq_file_user_permission"),
        db.Index("idx_file_user_permissions_user", "user_id", "file_id"),
    )

    @property
    def level(self) -> PermissionLevel:
        return PermissionLevel(self.permission)

    def to_dict(self):
        return {
            "file_id": self.file_id,
            "user_id": self.user_id,
            "permission": self.permission,
        }

    def __repr__(self):
        return f"<FileUserPermission File:{self.file_id} User:{self.user_id} {self.permission}>"
