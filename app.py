import logging

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from dotenv import load_dotenv

from extensions import db, migrate
from config import Config
from routes import register_blueprints
from services.errors import StorageError

load_dotenv()  # charge les variables d'environnement depuis .env

logger = logging.getLogger(__name__)


def create_app(config_object=Config, overrides=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    # Overrides must land before the extensions read the config (tests use SQLite)
    if overrides:
        app.config.update(overrides)

    CORS(app,
         origins=app.config.get("CORS_ORIGINS", []),
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
         supports_credentials=True)

    # Init extensions
    db.init_app(app)
    jwt = JWTManager(app)
    migrate.init_app(app, db)

    @jwt.token_verification_loader
    def reject_download_links(jwt_header, jwt_data):
        # download links are only valid on /downloads/serve
        return not jwt_data.get("temp_access", False)

    @jwt.token_verification_failed_loader
    def download_link_used_as_credential(jwt_header, jwt_data):
        return jsonify({"msg": "Download links cannot be used as credentials"}), 401

    # Register blueprints
    register_blueprints(app)

    @app.errorhandler(StorageError)
    def handle_storage_error(error):
        if error.status_code >= 500:
            logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    from commands import register_commands
    register_commands(app)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, port=5001)
