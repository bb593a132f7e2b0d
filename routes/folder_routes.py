# routes/folder_routes.py

import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from services.archive_service import archive_service
from services.storage_service import storage_service
from utils.security import get_current_user, get_payload, parse_id, with_access

logger = logging.getLogger(__name__)

folder_bp = Blueprint('folder_bp', __name__)


@folder_bp.route('/', methods=['GET'])
@jwt_required()
def list_folders():
    """
    Root folders the user can read, plus the folders shared with them whose
    parent they cannot see.
    """
    user = get_current_user()
    roots = storage_service.list_roots(user)
    shared = storage_service.list_shared(user)
    return jsonify({
        "folders": [with_access(folder, res) for folder, res in roots],
        "shared": [with_access(folder, res) for folder, res in shared],
    }), 200


@folder_bp.route('/', methods=['POST'])
@jwt_required()
def create_folder():
    user = get_current_user()
    data = get_payload()
    parent_id = parse_id(data.get("parent_id"), "parent_id", required=False)

    folder = storage_service.create_folder(user, data.get("name"), parent_id)
    logger.info(f"User {user.id} created folder {folder.id} under {parent_id}")
    return jsonify(with_access(folder, folder.resolve_access(user))), 201


@folder_bp.route('/<int:folder_id>', methods=['GET'])
@jwt_required()
def get_folder(folder_id):
    user = get_current_user()
    folder, resolution, subfolders, files = storage_service.list_children(user, folder_id)
    return jsonify({
        "folder": with_access(folder, resolution),
        "subfolders": [with_access(sub, res) for sub, res in subfolders],
        "files": [with_access(f, res) for f, res in files],
    }), 200


@folder_bp.route('/<int:folder_id>', methods=['PUT'])
@jwt_required()
def update_folder(folder_id):
    """Rename (``name``) and/or move (``parent_id``, null for the root level)."""
    user = get_current_user()
    data = get_payload()
    if "name" not in data and "parent_id" not in data:
        return jsonify({"msg": "Nothing to update: expected name and/or parent_id", "code": "VALIDATION_FAILED"}), 400

    if "name" in data:
        folder = storage_service.rename_folder(user, folder_id, data.get("name"))
    if "parent_id" in data:
        parent_id = parse_id(data.get("parent_id"), "parent_id", required=False)
        folder = storage_service.move_folder(user, folder_id, parent_id)

    return jsonify(with_access(folder, folder.resolve_access(user))), 200


@folder_bp.route('/<int:folder_id>', methods=['DELETE'])
@jwt_required()
def delete_folder(folder_id):
    user = get_current_user()
    result = storage_service.delete_folder(user, folder_id)
    return jsonify({"msg": "Folder deleted", **result.to_dict()}), 200


@folder_bp.route('/<int:folder_id>/search', methods=['GET'])
@jwt_required()
def search_folder(folder_id):
    user = get_current_user()
    query = request.args.get("query", "")
    folders, files = storage_service.search(user, folder_id, query)
    return jsonify({
        "query": query.strip(),
        "folders": [with_access(f, res) for f, res in folders],
        "files": [with_access(f, res) for f, res in files],
        "total": len(folders) + len(files),
    }), 200


@folder_bp.route('/<int:folder_id>/permissions', methods=['POST'])
@jwt_required()
def grant_folder_permission(folder_id):
    user = get_current_user()
    data = get_payload()
    grantee_id = parse_id(data.get("user_id"), "user_id")
    level = data.get("permissions", data.get("permission"))

    affected = storage_service.grant_permission(user, "folder", folder_id, grantee_id, level)
    return jsonify({"msg": "Permission updated", "affected": affected}), 200


@folder_bp.route('/<int:folder_id>/set-private', methods=['PUT'])
@jwt_required()
def set_folder_private(folder_id):
    user = get_current_user()
    grantee_id = parse_id(get_payload().get("user_id"), "user_id")
    storage_service.set_private(user, "folder", folder_id, grantee_id)
    return jsonify({"msg": "Folder set private for user"}), 200


@folder_bp.route('/<int:folder_id>/permissions', methods=['GET'])
@jwt_required()
def list_folder_permissions(folder_id):
    user = get_current_user()
    grants = storage_service.list_grants(user, "folder", folder_id)
    return jsonify({"permissions": [g.to_dict() for g in grants]}), 200


@folder_bp.route('/<int:folder_id>/access', methods=['GET'])
@jwt_required()
def folder_access(folder_id):
    user = get_current_user()
    resolution = storage_service.resolve_access(user, "folder", folder_id)
    return jsonify(resolution.to_dict()), 200


@folder_bp.route('/<int:folder_id>/download', methods=['POST'])
@jwt_required()
def download_folder(folder_id):
    """Prepare a zip of the readable subtree and return a temporary link."""
    user = get_current_user()
    return jsonify(archive_service.create_download(user, folder_id)), 201
