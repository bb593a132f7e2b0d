# services/errors.py

class StorageError(Exception):
    """Base exception for storage and access-control failures"""
    status_code = 500
    code = 'STORAGE_ERROR'

    def __init__(self, message: str, status_code: int = None, code: str = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self):
        return {'msg': self.message, 'code': self.code}


class NotFound(StorageError):
    status_code = 404
    code = 'NOT_FOUND'


class Forbidden(StorageError):
    status_code = 403
    code = 'FORBIDDEN'


class ValidationFailed(StorageError):
    status_code = 400
    code = 'VALIDATION_FAILED'


class InvalidMove(ValidationFailed):
    """Re-parenting would put a folder inside itself or its own subtree."""
    code = 'INVALID_MOVE'


class PermissionValueInvalid(ValidationFailed):
    code = 'PERMISSION_VALUE_INVALID'


class CascadeFailed(StorageError):
    """A multi-row transaction could not complete and was rolled back."""
    status_code = 500
    code = 'CASCADE_FAILED'
