# utils/access_logger.py

import logging
from datetime import datetime, timezone

from models.access_log import AccessLog
from extensions import db

audit_logger = logging.getLogger('audit')


def log_action(user_id, action, target, details=None):
    """
    Enregistre une action dans les logs d'accès.

    The entry joins the caller's transaction: it is committed (or rolled
    back) together with the change it describes.

    Args:
        user_id (int): ID of the user performing the action
        action (str): one of AccessLog.ACTION_TYPES
        target (str): resource description (name and id)
        details (str, optional): extra information appended to the target
    """
    if user_id is None:
        return None

    log_target = target
    if details:
        log_target = f"{target} - {details}"
    if len(log_target) > 255:
        log_target = log_target[:252] + "..."

    log_entry = AccessLog(
        user_id=user_id,
        action=action,
        target=log_target,
        timestamp=datetime.now(timezone.utc)
    )
    db.session.add(log_entry)
    # Note: Le commit sera fait par la fonction appelante

    audit_logger.info(f"User {user_id} - {action} - {log_target}")
    return log_entry


def describe(resource):
    """Short target label for a folder or file."""
    return f"{resource.resource_type} '{resource.name}' (#{resource.id})"


def log_permission_action(user_id, action, resource, grantee_id, permission, affected=None):
    """
    Enregistre spécifiquement les actions sur les permissions.

    Args:
        user_id (int): ID of the user granting
        action (str): GRANT_PERMISSION or SET_PRIVATE
        resource: Folder or File the grant was written on
        grantee_id (int): ID of the user receiving the grant
        permission (str): stored permission level
        affected (dict, optional): cascade counts
    """
    details = f"user #{grantee_id}: {permission}"
    if affected:
        details += f" (folders: {affected.get('folders', 0)}, files: {affected.get('files', 0)})"
    return log_action(user_id, action, describe(resource), details)


def log_denied(user_id, action, resource):
    """Denials are audit events, not system errors."""
    audit_logger.warning(f"DENIED - User {user_id} - {action} - {describe(resource)}")
