import io
import logging

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import jwt_required

from services.storage_service import storage_service
from utils.security import get_current_user, get_payload, parse_id, with_access

logger = logging.getLogger(__name__)

file_bp = Blueprint("file", __name__)


@file_bp.route("/", methods=["POST"])
@jwt_required()
def upload_file():
    """Multipart upload: ``file`` part and ``folder_id`` field."""
    user = get_current_user()
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"msg": "No file part in the request", "code": "VALIDATION_FAILED"}), 400
    folder_id = parse_id(request.form.get("folder_id"), "folder_id")

    data = upload.read()
    file = storage_service.create_file(user, folder_id, upload.filename, data, upload.mimetype or None)
    logger.info(f"User {user.id} uploaded file {file.id} ({file.size} bytes) to folder {folder_id}")
    return jsonify(with_access(file, file.resolve_access(user))), 201


@file_bp.route("/<int:file_id>", methods=["GET"])
@jwt_required()
def get_file(file_id):
    user = get_current_user()
    file = storage_service.get_file(file_id)
    resolution = storage_service.require(user, file, "read")
    return jsonify(with_access(file, resolution)), 200


@file_bp.route("/<int:file_id>/content", methods=["GET"])
@jwt_required()
def get_file_content(file_id):
    user = get_current_user()
    file, data = storage_service.read_file(user, file_id)
    return send_file(
        io.BytesIO(data),
        mimetype=file.mime_type or "application/octet-stream",
        as_attachment=request.args.get("download", "false").lower() == "true",
        download_name=file.name,
    )


@file_bp.route("/<int:file_id>", methods=["DELETE"])
@jwt_required()
def delete_file(file_id):
    user = get_current_user()
    storage_service.delete_file(user, file_id)
    return jsonify({"msg": "File deleted"}), 200


@file_bp.route("/<int:file_id>/permissions", methods=["PUT"])
@jwt_required()
def grant_file_permission(file_id):
    user = get_current_user()
    data = get_payload()
    grantee_id = parse_id(data.get("user_id"), "user_id")
    level = data.get("permissions", data.get("permission"))

    affected = storage_service.grant_permission(user, "file", file_id, grantee_id, level)
    return jsonify({"msg": "Permission updated", "affected": affected}), 200


@file_bp.route("/<int:file_id>/set-private", methods=["PUT"])
@jwt_required()
def set_file_private(file_id):
    user = get_current_user()
    grantee_id = parse_id(get_payload().get("user_id"), "user_id")
    storage_service.set_private(user, "file", file_id, grantee_id)
    return jsonify({"msg": "File set private for user"}), 200


@file_bp.route("/<int:file_id>/permissions", methods=["GET"])
@jwt_required()
def list_file_permissions(file_id):
    user = get_current_user()
    grants = storage_service.list_grants(user, "file", file_id)
    return jsonify({"permissions": [g.to_dict() for g in grants]}), 200


@file_bp.route("/<int:file_id>/access", methods=["GET"])
@jwt_required()
def file_access(file_id):
    user = get_current_user()
    resolution = storage_service.resolve_access(user, "file", file_id)
    return jsonify(resolution.to_dict()), 200
