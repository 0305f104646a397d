"""Google Drive file store for task images and reception documents."""
import io
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

import httplib2
from google.auth import exceptions as auth_exceptions
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import DriveConfig, SheetsConfig
from services.sheets import load_google_credentials

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_URL_TEMPLATE = "https://drive.google.com/uc?id={file_id}"
RETRYABLE_STATUSES = (408, 429)
_FILE_ID_PATTERN = re.compile(r"(?:[?&]id=|/d/)([\w-]+)")


class DriveError(Exception):
    """Upload, delete or folder lookup failed."""


class TransientDriveError(DriveError):
    """Network failure, 5xx, timeout or rate limit; retried before surfacing."""


@dataclass
class FileUpload:
    """A file to upload: raw bytes plus its name and MIME type."""
    content: bytes
    name: str
    mime_type: str = "application/octet-stream"


def extract_file_id(file_or_url: str) -> str:
    """Accept a bare file id or a Drive URL."""
    match = _FILE_ID_PATTERN.search(file_or_url or "")
    return match.group(1) if match else file_or_url


class DriveClient:
    """Google Drive v3 client. Uploaded files get a public view URL."""

    def __init__(
        self,
        config: DriveConfig,
        sheets_config: Optional[SheetsConfig] = None,
        service=None,
        credentials=None,
    ):
        self.config = config
        self.sheets_config = sheets_config or SheetsConfig()
        self._service = service
        self._credentials = credentials
        self._folder_ids: Dict[str, str] = {}

    def _get_service(self):
        if self._service is not None:
            return self._service

        from googleapiclient.discovery import build

        if self._credentials is None:
            self._credentials = load_google_credentials(self.sheets_config)
        self._service = build("drive", "v3", credentials=self._credentials, cache_discovery=False)
        return self._service

    @retry(
        retry=retry_if_exception_type(TransientDriveError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def _call(self, request_factory):
        try:
            return request_factory(self._get_service()).execute()
        except HttpError as e:
            status = e.resp.status
            message = f"Drive request failed with HTTP {status}: {e}"
            # 4xx is permanent (quota, permissions, missing file) except timeouts and rate limits
            if 400 <= status < 500 and status not in RETRYABLE_STATUSES:
                raise DriveError(message) from e
            raise TransientDriveError(message) from e
        except auth_exceptions.RefreshError as e:
            raise DriveError(f"Drive credentials rejected: {e}") from e
        except (OSError, httplib2.HttpLib2Error, auth_exceptions.GoogleAuthError) as e:
            raise TransientDriveError(f"Drive transport failure: {e}") from e

    def find_or_create_folder(self, name: str) -> str:
        """Return the id of the folder called ``name``, creating it once."""
        if name in self._folder_ids:
            return self._folder_ids[name]

        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        query = f"name='{escaped}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        response = self._call(
            lambda s: s.files().list(q=query, fields="files(id, name)", spaces="drive")
        )
        files = response.get("files", [])
        if files:
            folder_id = files[0]["id"]
        else:
            folder = self._call(
                lambda s: s.files().create(
                    body={"name": name, "mimeType": FOLDER_MIME_TYPE}, fields="id"
                )
            )
            folder_id = folder["id"]
            logger.info(f"Created Drive folder {name}")

        self._folder_ids[name] = folder_id
        return folder_id

    def upload(
        self,
        content: bytes,
        name: str,
        mime_type: str = "application/octet-stream",
        folder: Optional[str] = None,
    ) -> str:
        """Upload one file and return its public URL."""
        if not self.config.enabled:
            raise DriveError("Drive uploads are disabled")

        metadata = {"name": name}
        if folder:
            metadata["parents"] = [self.find_or_create_folder(folder)]

        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
        created = self._call(
            lambda s: s.files().create(body=metadata, media_body=media, fields="id,webViewLink")
        )
        file_id = created["id"]

        if self.config.make_public:
            self._call(
                lambda s: s.permissions().create(
                    fileId=file_id, body={"role": "reader", "type": "anyone"}
                )
            )

        logger.info(f"Uploaded {name} to Drive ({file_id})")
        return FILE_URL_TEMPLATE.format(file_id=file_id)

    def upload_file(self, upload: FileUpload, folder: Optional[str] = None) -> str:
        return self.upload(upload.content, upload.name, upload.mime_type, folder=folder)

    def delete(self, file_or_url: str) -> None:
        file_id = extract_file_id(file_or_url)
        self._call(lambda s: s.files().delete(fileId=file_id))
        logger.info(f"Deleted Drive file {file_id}")
