# routes/__init__.py
from .auth_routes import auth_bp
from .file_routes import file_bp
from .folder_routes import folder_bp
from .download_routes import download_bp

def register_blueprints(app):
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(folder_bp, url_prefix="/folders")
    app.register_blueprint(file_bp, url_prefix="/files")
    app.register_blueprint(download_bp, url_prefix="/downloads")
