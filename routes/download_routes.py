# routes/download_routes.py

import io

from flask import Blueprint, request, send_file

from services.archive_service import archive_service

download_bp = Blueprint("download", __name__)


@download_bp.route("/serve", methods=["GET"])
def serve_download():
    """
    Serve a prepared archive. The signed ``token`` replaces the Authorization
    header so the link works from a plain browser window.
    """
    data, filename = archive_service.serve_download(request.args.get("token"))
    return send_file(
        io.BytesIO(data),
        mimetype="application/zip",
        as_attachment=True,
        download_name=filename,
    )
