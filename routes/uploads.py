import logging
from datetime import datetime

from flask import Blueprint, jsonify, request, current_app
from werkzeug.utils import secure_filename

from utils.dropbox_service import upload_file, delete_file_from_dropbox, StorageUnavailable
from utils.utils import login_required, current_user

logger = logging.getLogger(__name__)

upload_bp = Blueprint("uploads", __name__)


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in current_app.config["ALLOWED_EXTENSIONS"]

def _store(file, username):
    """Upload one file. Returns (metadata, error_message)."""
    if not file or not file.filename:
        return None, "No file provided"
    filename = secure_filename(file.filename)
    if not filename or not allowed_file(filename):
        return None, f"File type not allowed: {file.filename}"

    stored_name = f"{datetime.utcnow().strftime('%Y%m%d%H%M%S%f')}_{filename}"
    data = file.read()
    file.seek(0)
    file_url, file_path = upload_file(file, stored_name, folder=f"uploads/{username}")
    if not file_url:
        return None, f"Upload failed for {filename}"

    return {
        "file_name": filename,
        "file_url": file_url,
        "file_path": file_path,
        "file_size": len(data),
        "mime_type": file.mimetype,
    }, None


@upload_bp.route("", methods=["POST"])
@login_required
def upload_single():
    user = current_user()
    try:
        meta, error = _store(request.files.get("file"), user.username)
    except StorageUnavailable:
        logger.error("Upload attempted without Dropbox credentials")
        return jsonify({"error": "File storage is not configured"}), 503
    if error:
        return jsonify({"error": error}), 400

    logger.info("%s uploaded %s", user.username, meta["file_path"])
    return jsonify({"message": "File uploaded successfully", "file": meta}), 201

@upload_bp.route("/multiple", methods=["POST"])
@login_required
def upload_multiple():
    user = current_user()
    files = request.files.getlist("files")
    limit = current_app.config.get("MAX_FILES_PER_UPLOAD", 5)
    if not files:
        return jsonify({"error": "No files provided"}), 400
    if len(files) > limit:
        return jsonify({"error": f"You can upload at most {limit} files at once"}), 400

    uploaded = []
    try:
        for file in files:
            meta, error = _store(file, user.username)
            if error:
                return jsonify({"error": error, "files": uploaded}), 400
            uploaded.append(meta)
    except StorageUnavailable:
        logger.error("Upload attempted without Dropbox credentials")
        return jsonify({"error": "File storage is not configured"}), 503

    return jsonify({"message": f"{len(uploaded)} files uploaded successfully", "files": uploaded}), 201

@upload_bp.route("", methods=["DELETE"])
@login_required
def delete_upload():
    user = current_user()
    file_path = (request.get_json() or {}).get("file_path") or ""
    own_folder = f"{current_app.config.get('DROPBOX_ROOT', '/Classroom').rstrip('/')}/uploads/{user.username}/"
    if not file_path.startswith(own_folder) or ".." in file_path:
        return jsonify({"error": "You can only delete your own uploads"}), 403

    try:
        deleted = delete_file_from_dropbox(file_path)
    except StorageUnavailable:
        return jsonify({"error": "File storage is not configured"}), 503
    if not deleted:
        return jsonify({"error": "Could not delete file"}), 400
    return jsonify({"message": "File deleted"}), 200
