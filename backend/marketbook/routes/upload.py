# Overview: Flask API route for item image uploads.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..services.storage_service import FOLDER_ITEMS, read_image_upload


upload_bp = Blueprint("upload", __name__, url_prefix="/api/upload")


@upload_bp.post("")
@require_auth
def upload_image_route():
    """Multipart field "image", image/* only, 5 MB max. Returns the hosted URL."""
    data = read_image_upload(request.files.get("image"), current_app.config["UPLOAD_MAX_BYTES"])
    url = current_app.extensions["object_storage"].upload(data, FOLDER_ITEMS)
    return jsonify({
        "message": "Image uploaded successfully",
        "url": url,
    }), 200
