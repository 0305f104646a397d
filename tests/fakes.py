"""In-memory stand-ins for the Google Sheets and Drive resource chains."""
import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import httplib2
from googleapiclient.errors import HttpError

from schemas.sheets_schema import get_header_row, get_table_names
from services.drive import DriveError

_RANGE = re.compile(r"^'(?P<title>[^']+)'(?:!(?P<a1>.+))?$")
_A1 = re.compile(r"^(?P<c1>[A-Z]*)(?P<r1>\d*)(?::(?P<c2>[A-Z]*)(?P<r2>\d*))?$")


def make_http_error(status: int, message: str = "error") -> HttpError:
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(httplib2.Response({"status": status}), content)


class FakeRequest:
    def __init__(self, owner: "FakeSpreadsheet", name: str, fn: Callable[[], Dict[str, Any]]):
        self._owner = owner
        self._name = name
        self._fn = fn

    def execute(self) -> Dict[str, Any]:
        self._owner.calls.append(self._name)
        if self._owner.errors:
            raise self._owner.errors.pop(0)
        if self._owner.offline:
            raise ConnectionError("network is unreachable")
        return self._fn()


class _Values:
    def __init__(self, owner: "FakeSpreadsheet"):
        self._owner = owner

    def get(self, spreadsheetId: str, range: str):
        return FakeRequest(self._owner, "values.get", lambda: self._owner._get(range))

    def append(self, spreadsheetId: str, range: str, valueInputOption: str, insertDataOption: str, body: Dict):
        return FakeRequest(self._owner, "values.append", lambda: self._owner._append(range, body["values"]))

    def update(self, spreadsheetId: str, range: str, valueInputOption: str, body: Dict):
        return FakeRequest(self._owner, "values.update", lambda: self._owner._update(range, body["values"]))


class _Spreadsheets:
    def __init__(self, owner: "FakeSpreadsheet"):
        self._owner = owner

    def values(self) -> _Values:
        return _Values(self._owner)

    def get(self, spreadsheetId: str, fields: str = ""):
        return FakeRequest(self._owner, "spreadsheets.get", self._owner._metadata)

    def batchUpdate(self, spreadsheetId: str, body: Dict):
        return FakeRequest(self._owner, "batchUpdate", lambda: self._owner._batch_update(body["requests"]))


class FakeSpreadsheet:
    """A spreadsheet held in memory, addressed the way the Sheets v4 API is.

    ``errors`` are raised by the next executed requests, in order.
    ``offline`` makes every request fail with a connection error.
    """

    def __init__(self):
        self.tables: Dict[str, List[List[str]]] = {}
        self.sheet_ids: Dict[str, int] = {}
        self.calls: List[str] = []
        self.errors: List[Exception] = []
        self.offline = False
        self._next_sheet_id = 100

    # Test helpers -------------------------------------------------------

    def add_table(self, title: str, headers: Optional[List[str]] = None, rows: Optional[List[Dict[str, str]]] = None):
        headers = list(headers) if headers is not None else get_header_row(title)
        self.tables[title] = [headers] if headers else []
        self.sheet_ids[title] = self._next_sheet_id
        self._next_sheet_id += 1
        for row in rows or []:
            self.tables[title].append([row.get(h, "") for h in headers])
        return self

    def add_all_tables(self):
        for table in get_table_names():
            self.add_table(table)
        return self

    def records(self, title: str) -> List[Dict[str, str]]:
        """Data rows of a table as header-keyed dicts, in physical order."""
        values = self.tables[title]
        headers = values[0]
        return [
            {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers)}
            for row in values[1:]
        ]

    def count(self, name: str) -> int:
        return self.calls.count(name)

    # API behaviour ------------------------------------------------------

    def _parse(self, range_notation: str) -> Tuple[str, Optional[int], Optional[int]]:
        match = _RANGE.match(range_notation)
        title = match.group("title")
        if title not in self.tables:
            raise make_http_error(400, f"Unable to parse range: {range_notation}")
        a1 = match.group("a1")
        if not a1:
            return title, None, None
        parts = _A1.match(a1)
        start = int(parts.group("r1")) if parts.group("r1") else None
        end = int(parts.group("r2")) if parts.group("r2") else start
        return title, start, end

    def _get(self, range_notation: str) -> Dict[str, Any]:
        title, start, end = self._parse(range_notation)
        rows = self.tables[title]
        if start is not None:
            rows = rows[start - 1:end]
        trimmed = [self._trim(list(r)) for r in rows]
        while trimmed and not trimmed[-1]:
            trimmed.pop()
        result = {"range": range_notation}
        if trimmed:
            result["values"] = trimmed
        return result

    @staticmethod
    def _trim(row: List[str]) -> List[str]:
        while row and row[-1] == "":
            row.pop()
        return row

    def _append(self, range_notation: str, values: List[List[str]]) -> Dict[str, Any]:
        title, _, _ = self._parse(range_notation)
        rows = self.tables[title]
        for row in values:
            rows.append([str(v) for v in row])
        row_number = len(rows)
        return {"updates": {"updatedRange": f"'{title}'!A{row_number}:Z{row_number}", "updatedRows": len(values)}}

    def _update(self, range_notation: str, values: List[List[str]]) -> Dict[str, Any]:
        title, start, _ = self._parse(range_notation)
        rows = self.tables[title]
        for offset, row in enumerate(values):
            index = (start or 1) - 1 + offset
            while len(rows) <= index:
                rows.append([])
            rows[index] = [str(v) for v in row]
        return {"updatedRange": range_notation, "updatedRows": len(values)}

    def _metadata(self) -> Dict[str, Any]:
        return {
            "spreadsheetId": "sheet-1",
            "sheets": [
                {"properties": {"title": title, "sheetId": sheet_id}}
                for title, sheet_id in self.sheet_ids.items()
            ],
        }

    def _batch_update(self, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        replies = []
        for request in requests:
            if "addSheet" in request:
                title = request["addSheet"]["properties"]["title"]
                self.add_table(title, headers=[])
                replies.append({"addSheet": {"properties": {"title": title, "sheetId": self.sheet_ids[title]}}})
            elif "deleteDimension" in request:
                rng = request["deleteDimension"]["range"]
                title = next(t for t, sid in self.sheet_ids.items() if sid == rng["sheetId"])
                del self.tables[title][rng["startIndex"]:rng["endIndex"]]
                replies.append({})
        return {"replies": replies}

    # Resource chain -----------------------------------------------------

    def spreadsheets(self) -> _Spreadsheets:
        return _Spreadsheets(self)


class FakeCredentials:
    """Credentials that count refreshes."""

    def __init__(self):
        self.refresh_count = 0
        self.valid = True

    def refresh(self, request) -> None:
        self.refresh_count += 1


class FakeFileStore:
    """File store that fails for the file names listed in ``fail_names``."""

    def __init__(self, fail_names: Tuple[str, ...] = ()):
        self.fail_names = set(fail_names)
        self.uploaded: List[Tuple[str, Optional[str]]] = []

    def upload_file(self, upload, folder: Optional[str] = None) -> str:
        if upload.name in self.fail_names:
            raise DriveError(f"quota exceeded for {upload.name}")
        self.uploaded.append((upload.name, folder))
        return f"https://drive.google.com/uc?id=file-{len(self.uploaded)}"


class _DriveRequest:
    def __init__(self, owner: "FakeDriveService", fn: Callable[[], Dict[str, Any]]):
        self._owner = owner
        self._fn = fn

    def execute(self) -> Dict[str, Any]:
        self._owner.executed += 1
        if self._owner.errors:
            raise self._owner.errors.pop(0)
        return self._fn()


def _unescape_query_value(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


class _DriveFiles:
    def __init__(self, owner: "FakeDriveService"):
        self._owner = owner

    def list(self, q: str, fields: str = "", spaces: str = "drive"):
        name = _unescape_query_value(re.search(r"name='((?:[^'\\]|\\.)*)'", q).group(1))
        self._owner.queries.append(q)

        def run():
            stored = self._owner.stored.items()
            return {"files": [{"id": fid, "name": name} for fid, meta in stored if meta.get("name") == name]}

        return _DriveRequest(self._owner, run)

    def create(self, body: Dict[str, Any], fields: str = "", media_body=None):
        def run():
            file_id = f"drive-{len(self._owner.stored) + 1}"
            self._owner.stored[file_id] = dict(body)
            return {"id": file_id}

        return _DriveRequest(self._owner, run)

    def delete(self, fileId: str):
        def run():
            self._owner.stored.pop(fileId, None)
            self._owner.deleted.append(fileId)
            return {}

        return _DriveRequest(self._owner, run)


class _DrivePermissions:
    def __init__(self, owner: "FakeDriveService"):
        self._owner = owner

    def create(self, fileId: str, body: Dict[str, Any]):
        def run():
            self._owner.granted.append((fileId, body))
            return {"id": "perm"}

        return _DriveRequest(self._owner, run)


class FakeDriveService:
    """In-memory Drive v3 resource chain. ``errors`` are raised by the next executes."""

    def __init__(self):
        self.stored: Dict[str, Dict[str, Any]] = {}
        self.granted: List[Tuple[str, Dict[str, Any]]] = []
        self.deleted: List[str] = []
        self.queries: List[str] = []
        self.errors: List[Exception] = []
        self.executed = 0

    def files(self) -> _DriveFiles:
        return _DriveFiles(self)

    def permissions(self) -> _DrivePermissions:
        return _DrivePermissions(self)
