"""Services for the sheet-backed auto shop."""

from services.drive import DriveClient, DriveError, FileUpload
from services.local_storage import LocalStorage
from services.offline_cache import DrainResult, OfflineAction, OfflineCache
from services.sheets import (
    AuthenticationError,
    SheetRow,
    SheetsClient,
    SheetsError,
    SheetTable,
    TableNotFoundError,
    TransportError,
)
from services.sms import BulkSendResult, GatewayResult, MelipayamakClient, SMSGatewayError, SMSService

__all__ = [
    # Google Sheets
    "SheetsClient",
    "SheetRow",
    "SheetTable",
    "SheetsError",
    "TransportError",
    "AuthenticationError",
    "TableNotFoundError",
    # Google Drive
    "DriveClient",
    "DriveError",
    "FileUpload",
    # Local storage / offline
    "LocalStorage",
    "OfflineCache",
    "OfflineAction",
    "DrainResult",
    # SMS
    "MelipayamakClient",
    "SMSService",
    "SMSGatewayError",
    "GatewayResult",
    "BulkSendResult",
]
