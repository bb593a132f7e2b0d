from datetime import datetime, timezone
from extensions import db
from .mixins import AccessControlled


class File(AccessControlled, db.Model):
    __tablename__ = "files"

    resource_type = "file"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    path = db.Column(db.String(500), nullable=False)  # opaque blob store handle
    size = db.Column(db.BigInteger, nullable=False, default=0)
    mime_type = db.Column(db.String(255), nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id"), nullable=False)
    permission_default = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    # liens pour les permissions des utilisateurs
    user_permissions = db.relationship("FileUserPermission", back_populates="file",
                                       lazy=True, passive_deletes=True)

    __table_args__ = (
        db.Index("idx_files_folder_owner", "folder_id", "owner_id"),
    )

    def __repr__(self):
        return f"<File {self.name}>"

    def inheritance_parent(self):
        return self.folder

    def inheritance_chain(self):
        if self.folder is None:
            return [self]
        return [self] + self.folder.inheritance_chain()

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "mime_type": self.mime_type,
            "folder_id": self.folder_id,
            "owner_id": self.owner_id,
            "permission_default": self.permission_default,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
