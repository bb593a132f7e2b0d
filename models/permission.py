from enum import Enum

from services.errors import PermissionValueInvalid


class PermissionLevel(str, Enum):
    """Levels that can be stored against a (resource, user) pair."""
    READ = "read"
    WRITE = "write"
    FULL_ACCESS = "full_access"
    PRIVATE = "private"

    @classmethod
    def parse(cls, value) -> 'PermissionLevel':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(level.value for level in cls)
            raise PermissionValueInvalid(
                f"Invalid permission value {value!r}, expected one of: {allowed}"
            )


class AccessLevel(str, Enum):
    """Effective access computed by the resolver."""
    NONE = "none"
    READ = "read"
    WRITE = "write"
    FULL_ACCESS = "full_access"

    @property
    def can_read(self) -> bool:
        return self in (AccessLevel.READ, AccessLevel.WRITE, AccessLevel.FULL_ACCESS)

    @property
    def can_write(self) -> bool:
        return self in (AccessLevel.WRITE, AccessLevel.FULL_ACCESS)

    @property
    def has_full_access(self) -> bool:
        return self is AccessLevel.FULL_ACCESS

    @classmethod
    def from_grant(cls, level: PermissionLevel) -> 'AccessLevel':
        if level is PermissionLevel.PRIVATE:
            return cls.NONE
        return cls(level.value)
