# gdrive.py
import logging
import json
import io

from .storage.base import StorageClient
from .storage.dto import FileRecord
from typing import List, Optional
import google.auth
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload
from .exceptions import PermanentError, TransientError

# The scope for Google Drive API
SCOPES = ["https://www.googleapis.com/auth/drive"]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id, name, parents, mimeType, createdTime, modifiedTime"


def load_credentials(
    credentials_file: Optional[str] = None, token_json: Optional[str] = None
):
    """
    Resolves the credentials used to talk to Google Drive.

    A service account key file wins, then an authorized user token (as written
    by `amplify auth`), then Application Default Credentials.
    """
    if credentials_file:
        logging.info(f"Using service account credentials from: {credentials_file}")
        return service_account.Credentials.from_service_account_file(
            credentials_file, scopes=SCOPES
        )
    if token_json:
        logging.info("Using authorized user credentials from GDRIVE_TOKEN_JSON.")
        return Credentials.from_authorized_user_info(
            info=json.loads(token_json), scopes=SCOPES
        )
    creds, project_id = google.auth.default(scopes=SCOPES)
    logging.info(f"Using Application Default Credentials (project: {project_id}).")
    return creds


def _translate_http_error(e: HttpError, message: str) -> Exception:
    """Maps a Drive API error to the pipeline's error taxonomy."""
    status = e.resp.status
    if status == 429 or status >= 500:
        return TransientError(f"{message}: {e}")
    return PermanentError(f"{message}: {e}")


class GoogleDriveClient(StorageClient):
    """
    Client for interacting with the Google Drive API, implementing the StorageClient interface.
    """

    def __init__(self, credentials, drive_id: Optional[str] = None):
        try:
            self.service = build("drive", "v3", credentials=credentials)
            self.drive_id = drive_id
            logging.info("Google Drive client initialized successfully.")
        except Exception as e:
            logging.error(f"Failed to initialize Google Drive client. Error: {e}")
            raise

    def get_file(self, file_id: str) -> FileRecord:
        """
        Retrieves the metadata of a file, including its current parents.
        """
        try:
            item = (
                self.service.files()
                .get(fileId=file_id, fields=FILE_FIELDS, supportsAllDrives=True)
                .execute()
            )
        except HttpError as e:
            logging.error(f"Failed to retrieve file ID '{file_id}': {e}")
            raise _translate_http_error(e, f"Unable to retrieve file {file_id}") from e
        return FileRecord.from_api(item)

    def list_files(self, folder_id: str) -> List[FileRecord]:
        """
        Lists all files in a given Google Drive folder ID and returns them as DTOs,
        following pagination.
        """
        logging.info(f"Listing files in Google Drive folder ID: '{folder_id}'")
        params = {
            "q": f"'{folder_id}' in parents and trashed = false",
            "fields": f"nextPageToken, files({FILE_FIELDS})",
            "supportsAllDrives": True,
        }
        if self.drive_id:
            params.update(
                includeItemsFromAllDrives=True, corpora="drive", driveId=self.drive_id
            )

        records = []
        page_token = None
        try:
            while True:
                if page_token:
                    params["pageToken"] = page_token
                response = self.service.files().list(**params).execute()
                records.extend(FileRecord.from_api(item) for item in response.get("files", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except HttpError as e:
            logging.error(
                f"Failed to list files in Google Drive folder ID '{folder_id}': {e}"
            )
            raise _translate_http_error(e, f"Failed to list files in {folder_id}") from e

        if not records:
            logging.info(f"No files found in folder: {folder_id}")
        return records

    def update_parents(self, file_id: str, add_parent: str, remove_parent: str):
        """
        Moves a file between folders by updating its parents in one request.
        """
        try:
            logging.info(
                f"Moving file ID '{file_id}' from folder ID '{remove_parent}' to folder ID '{add_parent}'..."
            )
            self.service.files().update(
                fileId=file_id,
                addParents=add_parent,
                removeParents=remove_parent,
                fields="id, parents",
                supportsAllDrives=True,
            ).execute()
            logging.info(
                f"Successfully moved file ID '{file_id}' to folder ID '{add_parent}'."
            )
        except HttpError as e:
            logging.error(
                f"Failed to move file ID '{file_id}' to folder '{add_parent}': {e}"
            )
            raise _translate_http_error(
                e, f"Unable to move file {file_id} to folder {add_parent}"
            ) from e

    def download_file(self, file_id: str) -> bytes:
        """
        Downloads a file's content from Google Drive into memory.
        """
        try:
            logging.info(f"Downloading file with ID '{file_id}'...")
            request = self.service.files().get_media(
                fileId=file_id, supportsAllDrives=True
            )
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                status, done = downloader.next_chunk()
            return buffer.getvalue()
        except HttpError as e:
            logging.error(f"Failed to download file with ID '{file_id}': {e}")
            raise _translate_http_error(e, f"Failed to download file {file_id}") from e

    def create_file(self, name: str, folder_id: str, content: bytes) -> str:
        """
        Uploads `content` as a new file named `name` under `folder_id`.
        """
        try:
            file_metadata = {"name": name, "parents": [folder_id]}
            media = MediaIoBaseUpload(
                io.BytesIO(content), mimetype="application/octet-stream", resumable=True
            )

            logging.info(f"Creating file {name} in folder ID {folder_id}...")
            created = (
                self.service.files()
                .create(
                    body=file_metadata,
                    media_body=media,
                    fields="id",
                    supportsAllDrives=True,
                )
                .execute()
            )
            logging.info(f"Successfully created {name} in folder ID: {folder_id}.")
            return created["id"]
        except HttpError as e:
            logging.error(f"Failed to create file in folder ID '{folder_id}': {e}")
            raise _translate_http_error(
                e, f"Failed to create file {name} in folder {folder_id}"
            ) from e

    def watch_folder(self, folder_id: str, channel_id: str, address: str, token: str):
        """
        Registers a web_hook notification channel on a folder.

        Raises:
            PermanentError: If the channel could not be registered.
        """
        body = {"id": channel_id, "type": "web_hook", "address": address}
        if token:
            body["token"] = token
        try:
            channel = (
                self.service.files()
                .watch(fileId=folder_id, body=body, supportsAllDrives=True)
                .execute()
            )
            logging.info(
                f"Watch set up on folder '{folder_id}' (resource ID: {channel.get('resourceId')}, expires: {channel.get('expiration')})."
            )
            return channel
        except HttpError as e:
            raise PermanentError(
                f"Unable to set up watch: {e}. Please check if the folder ID is correct and the service account has access to the folder."
            ) from e

    def verify_folder_exists(self, folder_id: str):
        """
        Verifies if a folder with a given ID exists and is actually a folder.

        Raises:
            PermanentError: If the ID does not exist, or if the item is not a folder.
        """
        try:
            file = (
                self.service.files()
                .get(fileId=folder_id, fields="id, mimeType", supportsAllDrives=True)
                .execute()
            )
        except HttpError as e:
            if e.resp.status == 404:
                raise PermanentError(
                    f"Google Drive folder with ID '{folder_id}' not found. Please check your configuration."
                ) from e
            logging.error(f"Failed to verify Google Drive folder ID '{folder_id}': {e}")
            raise PermanentError(
                f"API error while verifying folder ID '{folder_id}': {e}"
            ) from e

        if file.get("mimeType") != FOLDER_MIME_TYPE:
            raise PermanentError(
                f"Google Drive ID '{folder_id}' exists but is not a folder."
            )
        logging.info(f"Google Drive folder with ID '{folder_id}' exists and is a folder.")
        return folder_id
