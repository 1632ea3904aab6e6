import logging

import dropbox
from dropbox.exceptions import ApiError
from flask import current_app

logger = logging.getLogger(__name__)


class StorageUnavailable(RuntimeError):
    pass


def get_client():
    """Build a Dropbox client with auto-refresh from the app config."""
    config = current_app.config
    app_key = config.get("DROPBOX_APP_KEY")
    app_secret = config.get("DROPBOX_APP_SECRET")
    refresh_token = config.get("DROPBOX_REFRESH_TOKEN")
    if not all([app_key, app_secret, refresh_token]):
        raise StorageUnavailable("Missing Dropbox credentials! Set DROPBOX_APP_KEY, DROPBOX_APP_SECRET, and DROPBOX_REFRESH_TOKEN.")
    return dropbox.Dropbox(
        oauth2_refresh_token=refresh_token,
        app_key=app_key,
        app_secret=app_secret
    )

def _root():
    return current_app.config.get("DROPBOX_ROOT", "/Classroom").rstrip("/")

def upload_file(file, filename, folder="uploads"):
    dbx = get_client()
    dropbox_path = f"{_root()}/{folder}/{filename}"

    try:
        dbx.files_upload(file.read(), dropbox_path, mode=dropbox.files.WriteMode("overwrite"))

        shared_link = None
        try:
            existing_links = dbx.sharing_list_shared_links(path=dropbox_path).links
            if existing_links:
                shared_link = existing_links[0]
        except ApiError as e:
            logger.warning("Could not list shared links for %s: %s", dropbox_path, e)

        if not shared_link:
            shared_link = dbx.sharing_create_shared_link_with_settings(dropbox_path)

        public_url = shared_link.url.replace("?dl=0", "?raw=1")
        return public_url, dropbox_path

    except ApiError as e:
        logger.error("Dropbox API error uploading %s: %s", dropbox_path, e)
        return None, None

def delete_file_from_dropbox(dropbox_path):
    if not dropbox_path or not dropbox_path.startswith(f"{_root()}/"):
        logger.warning("Refusing to delete path outside the app folder: %s", dropbox_path)
        return False
    try:
        get_client().files_delete_v2(dropbox_path)
        logger.info("File deleted from Dropbox: %s", dropbox_path)
        return True
    except ApiError as e:
        logger.error("Dropbox API error deleting %s: %s", dropbox_path, e)
        return False
