from .user import User
from .file import File
from .folder import Folder
from .permission import PermissionLevel, AccessLevel
from .access_log import AccessLog
from .file_permission import FileUserPermission
from .folder_permission import FolderUserPermission

__all__ = [
    "User",
    "File",
    "Folder",
    "PermissionLevel",
    "AccessLevel",
    "AccessLog",
    "FileUserPermission",
    "FolderUserPermission",
]
