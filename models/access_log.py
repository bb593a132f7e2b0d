from datetime import datetime, timezone
from extensions import db

class AccessLog(db.Model):
    __tablename__ = "access_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    action = db.Column(db.String(50), nullable=False)
    target = db.Column(db.String(255), nullable=False) # folder/file name and id
    timestamp = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Action types constants
    ACTION_TYPES = [
        'CREATE_FOLDER', 'RENAME_FOLDER', 'MOVE_FOLDER', 'DELETE_FOLDER',
        'CREATE_FILE', 'DELETE_FILE',
        'GRANT_PERMISSION', 'SET_PRIVATE',
        'DOWNLOAD_FOLDER',
    ]

    def __repr__(self):
        return f"<AccessLog user={self.user_id} action={self.action} target={self.target}>"
