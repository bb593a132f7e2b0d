# routes/auth_routes.py

import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import create_access_token, jwt_required
from sqlalchemy.exc import IntegrityError

from models.user import User
from extensions import db
from utils.security import get_current_user, get_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _token_response(user, status=200):
    access_token = create_access_token(identity=str(user.id))
    return jsonify({
        "access_token": access_token,
        "user": user.to_dict()
    }), status


@auth_bp.route("/register", methods=["POST"])
def register():
    data = get_payload()
    if not data:
        return jsonify({"msg": "Payload JSON attendu"}), 400

    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    email = (data.get("email") or "").strip() or None

    if not username or not password:
        return jsonify({"msg": "username and password are required"}), 400
    if len(username) > 50:
        return jsonify({"msg": "username must be at most 50 characters"}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({"msg": "Username already taken"}), 409

    user = User(username=username, email=email)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"msg": "Username or email already taken"}), 409

    logger.info(f"Registered user {user.id} ({user.username})")
    return _token_response(user, 201)


@auth_bp.route("/login", methods=["POST"])
def login():
    data = get_payload()
    if not data:
        return jsonify({"msg": "Payload JSON attendu"}), 400

    username = data.get("username")
    password = data.get("password")

    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password or ""):
        return _token_response(user)
    return jsonify({"msg": "Identifiants invalides"}), 401


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    return jsonify(get_current_user().to_dict()), 200
