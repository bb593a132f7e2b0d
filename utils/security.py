from flask import request
from flask_jwt_extended import get_jwt_identity

from extensions import db
from models.user import User
from services.errors import NotFound, ValidationFailed
import logging

logger = logging.getLogger(__name__)


def get_current_user() -> User:
    """
    Utilisateur du token courant. Must be called inside a ``@jwt_required()``
    view.
    """
    user_id = int(get_jwt_identity())
    user = db.session.get(User, user_id)
    if not user:
        logger.warning(f"Token identity {user_id} does not match any user")
        raise NotFound("Utilisateur non trouvé")
    return user


def get_payload() -> dict:
    """JSON body, falling back to form fields like the login route."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    if request.form:
        return request.form.to_dict()
    return {}


def parse_id(value, field: str, required: bool = True):
    """Coerce an id coming from JSON or form data."""
    if value is None or value == "":
        if required:
            raise ValidationFailed(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationFailed(f"{field} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationFailed(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an integer")


def with_access(resource, resolution) -> dict:
    """Serialize a folder or file together with the caller's effective access."""
    data = resource.to_dict()
    data["permissions"] = resolution.to_dict()
    return data
