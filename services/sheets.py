"""Google Sheets adapter: one sheet per table, row 1 holds the headers.

This module provides:
1. Reading a whole table as header-keyed rows
2. Appending, overwriting and physically deleting single rows
3. Creating missing sheets and header rows
4. A cheap connectivity probe

Row numbers are 1-based sheet rows; the first data row is row 2. A row
number is only valid until the next insert or delete on the same sheet,
so callers should look rows up again right before writing.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httplib2
from google.auth import exceptions as auth_exceptions
from google.auth.transport.requests import Request
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from core.config import SheetsConfig
from core.secrets import get_service_account_info
from schemas.sheets_schema import get_header_row, get_last_column_letter

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]


class SheetsError(Exception):
    """Base class for remote table failures."""


class TransportError(SheetsError):
    """Network failure, timeout or server-side error."""


class AuthenticationError(SheetsError):
    """Credentials are invalid and could not be refreshed."""


class TokenExpiredError(AuthenticationError):
    """HTTP 401; the caller may refresh credentials once and retry."""


class TableNotFoundError(SheetsError):
    """The spreadsheet or the named sheet does not exist."""


@dataclass
class SheetRow:
    row_number: int
    values: Dict[str, str]


@dataclass
class SheetTable:
    table: str
    headers: List[str] = field(default_factory=list)
    rows: List[SheetRow] = field(default_factory=list)


def load_google_credentials(config: SheetsConfig, scopes: Optional[List[str]] = None):
    """Load service account or OAuth user credentials.

    Service account info comes from SHEETS_CREDENTIALS_JSON or the
    credentials file. OAuth mode reuses the saved token, refreshing it or
    running the local browser flow when needed.
    """
    scopes = scopes or SCOPES

    if config.auth_mode == "service_account":
        from google.oauth2 import service_account

        info = get_service_account_info(config.credentials_file)
        if info is None:
            raise AuthenticationError(
                f"No service account credentials found ({config.credentials_file})"
            )
        return service_account.Credentials.from_service_account_info(info, scopes=scopes)

    from google.oauth2.credentials import Credentials
    from google_auth_oauthlib.flow import InstalledAppFlow

    creds = None
    if os.path.exists(config.token_file):
        creds = Credentials.from_authorized_user_file(config.token_file, scopes)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(config.credentials_file, scopes)
            creds = flow.run_local_server(port=0)

        with open(config.token_file, "w") as token:
            token.write(creds.to_json())

    return creds


def _refresh_before_retry(retry_state) -> None:
    client = retry_state.args[0]
    logger.warning("Sheets request returned 401, refreshing credentials and retrying once")
    client._refresh_credentials()


def _parse_row_number(updated_range: str) -> int:
    # Format: 'users'!A5:L5
    match = re.search(r"![A-Z]+(\d+)", updated_range or "")
    return int(match.group(1)) if match else -1


class SheetsClient:
    """Google Sheets v4 client for header-keyed tables."""

    def __init__(
        self,
        config: SheetsConfig,
        service=None,
        credentials=None,
        offline_cache=None,
    ):
        self.config = config
        self.spreadsheet_id = config.spreadsheet_id
        self.offline_cache = offline_cache
        self._credentials = credentials
        self._service = service
        self._owns_service = service is None
        self._sheet_ids: Dict[str, int] = {}  # title -> sheetId

    def _get_credentials(self):
        if self._credentials is None:
            self._credentials = load_google_credentials(self.config)
        return self._credentials

    def _get_service(self):
        """Get or create the Sheets API service."""
        if self._service is not None:
            return self._service

        from googleapiclient.discovery import build

        self._service = build(
            "sheets", "v4", credentials=self._get_credentials(), cache_discovery=False
        )
        return self._service

    def _refresh_credentials(self) -> None:
        if self._credentials is None:
            return
        try:
            self._credentials.refresh(Request())
        except auth_exceptions.RefreshError as e:
            raise AuthenticationError(f"Credential refresh failed: {e}") from e
        if self._owns_service:
            self._service = None

    @retry(
        retry=retry_if_exception_type(TokenExpiredError),
        stop=stop_after_attempt(2),
        before_sleep=_refresh_before_retry,
        reraise=True,
    )
    def _execute(self, builder: Callable[[Any], Any]) -> Dict[str, Any]:
        """Build a request against the service and execute it, mapping errors."""
        try:
            return builder(self._get_service()).execute()
        except HttpError as e:
            status = e.resp.status
            if status == 401:
                raise TokenExpiredError(f"Sheets request unauthorized: {e}") from e
            # A range naming a missing sheet comes back as 400, not 404
            if status == 404 or (status == 400 and "Unable to parse range" in str(e)):
                raise TableNotFoundError(f"Spreadsheet or sheet not found: {e}") from e
            raise TransportError(f"Sheets request failed with HTTP {status}: {e}") from e
        except auth_exceptions.RefreshError as e:
            raise AuthenticationError(f"Credentials rejected: {e}") from e
        except (OSError, httplib2.HttpLib2Error, auth_exceptions.TransportError) as e:
            raise TransportError(f"Sheets transport failure: {e}") from e

    @staticmethod
    def _range(table: str, range_notation: str = "") -> str:
        """Get full range notation with sheet name."""
        if range_notation:
            return f"'{table}'!{range_notation}"
        return f"'{table}'"

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def list_rows(self, table: str) -> SheetTable:
        """Fetch the whole table. Refreshes the offline cache on success."""
        result = self._execute(
            lambda s: s.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(table),
            )
        )
        values = result.get("values", [])
        sheet = SheetTable(table=table)
        if values:
            sheet.headers = [str(h) for h in values[0]]

        for i, row in enumerate(values[1:], start=2):
            sheet.rows.append(
                SheetRow(
                    row_number=i,
                    values={
                        header: (str(row[j]) if j < len(row) else "")
                        for j, header in enumerate(sheet.headers)
                    },
                )
            )

        logger.info(f"Read {len(sheet.rows)} rows from {table}")
        if self.offline_cache is not None:
            self.offline_cache.cache(table, [row.values for row in sheet.rows])
        return sheet

    def get_headers(self, table: str) -> List[str]:
        result = self._execute(
            lambda s: s.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(table, "1:1"),
            )
        )
        values = result.get("values", [])
        return [str(h) for h in values[0]] if values else []

    def find_row(
        self, table: str, value: str, column: str = "id"
    ) -> Tuple[List[str], Optional[SheetRow]]:
        """Look up the first row whose ``column`` equals ``value``.

        Returns the live headers and the row, or None when no row matches.
        """
        sheet = self.list_rows(table)
        for row in sheet.rows:
            if row.values.get(column) == value:
                return sheet.headers, row
        return sheet.headers, None

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    def append_row(self, table: str, values: List[str]) -> int:
        """Append one row. Returns the row number it landed on."""
        last = get_last_column_letter(len(values))
        result = self._execute(
            lambda s: s.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(table, f"A:{last}"),
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            )
        )
        row_num = _parse_row_number(result.get("updates", {}).get("updatedRange", ""))
        logger.info(f"Appended row {row_num} to {table}")
        return row_num

    def update_row(self, table: str, row_number: int, values: List[str]) -> None:
        """Overwrite exactly one row."""
        if row_number < 2:
            raise ValueError(f"Row {row_number} is not a data row")
        last = get_last_column_letter(len(values))
        self._execute(
            lambda s: s.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=self._range(table, f"A{row_number}:{last}{row_number}"),
                valueInputOption="RAW",
                body={"values": [values]},
            )
        )
        logger.info(f"Updated row {row_number} in {table}")

    def delete_row(self, table: str, row_number: int) -> None:
        """Physically remove one row; rows below shift up by one."""
        if row_number < 2:
            raise ValueError(f"Row {row_number} is not a data row")
        sheet_id = self._get_sheet_id(table)
        self._execute(
            lambda s: s.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={
                    "requests": [
                        {
                            "deleteDimension": {
                                "range": {
                                    "sheetId": sheet_id,
                                    "dimension": "ROWS",
                                    "startIndex": row_number - 1,
                                    "endIndex": row_number,
                                }
                            }
                        }
                    ]
                },
            )
        )
        logger.info(f"Deleted row {row_number} from {table}")

    # -------------------------------------------------------------------
    # Sheet management
    # -------------------------------------------------------------------

    def _load_sheet_ids(self) -> Dict[str, int]:
        result = self._execute(
            lambda s: s.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties",
            )
        )
        self._sheet_ids = {
            sheet["properties"]["title"]: sheet["properties"]["sheetId"]
            for sheet in result.get("sheets", [])
        }
        return self._sheet_ids

    def _get_sheet_id(self, table: str) -> int:
        if table not in self._sheet_ids:
            self._load_sheet_ids()
        if table not in self._sheet_ids:
            raise TableNotFoundError(f"Sheet '{table}' does not exist")
        return self._sheet_ids[table]

    def ensure_table(self, table: str, headers: Optional[List[str]] = None) -> bool:
        """Create the sheet and its header row when missing.

        A non-empty header row that differs from ``headers`` is left alone.
        Returns True when anything was created.
        """
        headers = headers or get_header_row(table)
        created = False

        if table not in self._load_sheet_ids():
            result = self._execute(
                lambda s: s.spreadsheets().batchUpdate(
                    spreadsheetId=self.spreadsheet_id,
                    body={"requests": [{"addSheet": {"properties": {"title": table}}}]},
                )
            )
            for reply in result.get("replies", []):
                props = reply.get("addSheet", {}).get("properties", {})
                if props.get("title") == table:
                    self._sheet_ids[table] = props.get("sheetId")
            logger.info(f"Created sheet {table}")
            created = True

        existing = self.get_headers(table)
        if not existing:
            last = get_last_column_letter(len(headers))
            self._execute(
                lambda s: s.spreadsheets().values().update(
                    spreadsheetId=self.spreadsheet_id,
                    range=self._range(table, f"A1:{last}1"),
                    valueInputOption="RAW",
                    body={"values": [headers]},
                )
            )
            logger.info(f"Created headers in {table}")
            created = True
        elif existing != headers:
            missing = [h for h in headers if h not in existing]
            logger.warning(
                f"Header row of {table} differs from the expected layout; "
                f"leaving it unchanged (missing columns: {missing})"
            )

        return created

    def check_connection(self, timeout: Optional[float] = None) -> bool:
        """Probe the spreadsheet metadata. Never raises."""
        timeout = timeout if timeout is not None else self.config.probe_timeout
        try:
            service = self._probe_service(timeout)
            service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id, fields="spreadsheetId"
            ).execute()
            return True
        except (
            SheetsError,
            HttpError,
            OSError,
            httplib2.HttpLib2Error,
            auth_exceptions.GoogleAuthError,
        ) as e:
            logger.warning(f"Sheets connectivity probe failed: {e}")
            return False

    def _probe_service(self, timeout: float):
        if not self._owns_service:
            return self._get_service()

        import google_auth_httplib2
        from googleapiclient.discovery import build

        http = google_auth_httplib2.AuthorizedHttp(
            self._get_credentials(), http=httplib2.Http(timeout=timeout)
        )
        return build("sheets", "v4", http=http, cache_discovery=False)


def create_client_from_config(config, offline_cache=None, credentials=None) -> SheetsClient:
    """Create SheetsClient from the app config."""
    return SheetsClient(config.sheets, credentials=credentials, offline_cache=offline_cache)
