"""Application context: every store built once and shared by the CLI and the API.

Nothing in the store layer reads global configuration; ``create_context``
is the single place where the config turns into clients and stores.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.config import AppConfig
from core.logging_config import LogContext, generate_run_id
from models.reception import Billing
from schemas.sheets_schema import get_table_names
from services.drive import DriveClient
from services.local_storage import LocalStorage
from services.offline_cache import DrainResult, OfflineAction, OfflineCache
from services.sheets import SheetsClient
from services.sms import SMSService
from stores.base import EntityStore, StoreResult
from stores.customers import CustomerStore
from stores.messages import MessageStore
from stores.receptions import ReceptionStore
from stores.sms import SMSLogStore
from stores.tasks import TaskStore
from stores.users import UserStore

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Outcome of completing a reception and then its tasks."""
    reception: StoreResult
    task_results: Dict[str, StoreResult] = field(default_factory=dict)
    error: str = ""

    @property
    def failed_tasks(self) -> List[str]:
        return [task_id for task_id, result in self.task_results.items() if not result.ok]

    @property
    def ok(self) -> bool:
        return self.reception.ok and not self.failed_tasks and not self.error


@dataclass
class SyncResult:
    online: bool
    drain: Optional[DrainResult] = None
    error: str = ""


class StoreContext:
    def __init__(
        self,
        config: AppConfig,
        sheets: SheetsClient,
        storage: LocalStorage,
        offline_cache: OfflineCache,
        drive: Optional[DriveClient] = None,
        sms_gateway=None,
    ):
        self.config = config
        self.sheets = sheets
        self.storage = storage
        self.offline_cache = offline_cache
        self.drive = drive

        common = {
            "storage": storage,
            "offline_cache": offline_cache,
            "queue_offline_writes": config.storage.queue_offline_writes,
        }
        self.users = UserStore(sheets, **common)
        self.customers = CustomerStore(sheets, **common)
        self.receptions = ReceptionStore(sheets, **common)
        self.tasks = TaskStore(
            sheets,
            file_store=drive,
            images_folder=config.drive.task_images_folder,
            **common,
        )
        self.messages = MessageStore(sheets, **common)
        self.sms_logs = SMSLogStore(sheets, **common)
        self.sms = SMSService(storage, log_store=self.sms_logs, gateway=sms_gateway, config=config.sms)

        self._stores: Dict[str, EntityStore] = {
            store.table: store
            for store in (
                self.users,
                self.customers,
                self.receptions,
                self.tasks,
                self.messages,
                self.sms_logs,
            )
        }

    def store_for(self, table: str) -> EntityStore:
        if table not in self._stores:
            raise ValueError(f"Unknown table: {table}")
        return self._stores[table]

    def ensure_tables(self) -> Dict[str, bool]:
        """Create missing sheets and header rows. Returns table -> created."""
        return {table: self.sheets.ensure_table(table) for table in get_table_names()}

    def load_all(self) -> Dict[str, StoreResult]:
        return {table: store.load() for table, store in self._stores.items()}

    def complete_reception(self, reception_id: str, billing: Billing, completed_by: str) -> CompletionResult:
        """Complete the reception, then every task that belongs to it."""
        with LogContext(run_id=generate_run_id(), entity_id=reception_id, actor=completed_by):
            reception_result = self.receptions.complete_reception(reception_id, billing, completed_by)
            outcome = CompletionResult(reception=reception_result)
            if not reception_result.ok:
                return outcome

            outcome.task_results = self.tasks.complete_vehicle_tasks(reception_id, actor=completed_by)
            if self.tasks.error:
                outcome.error = f"Reception completed but its tasks could not be loaded: {self.tasks.error}"
                logger.error(outcome.error)
            elif outcome.failed_tasks:
                logger.error(
                    f"Reception {reception_id} completed; "
                    f"{len(outcome.failed_tasks)} task(s) could not be completed"
                )
            else:
                logger.info(
                    f"Reception {reception_id} completed with {len(outcome.task_results)} task(s)"
                )
            return outcome

    def _replay(self, action: OfflineAction) -> None:
        self.store_for(action.table).apply_action(action)

    def sync_pending(self) -> SyncResult:
        """Replay queued offline writes when the spreadsheet is reachable."""
        pending = self.offline_cache.pending_actions()
        if not pending:
            return SyncResult(online=True, drain=DrainResult())

        if not self.sheets.check_connection():
            logger.warning(f"Still offline; {len(pending)} action(s) remain queued")
            return SyncResult(online=False, error="Spreadsheet is unreachable")

        with LogContext(run_id=generate_run_id()):
            drain = self.offline_cache.drain(self._replay)
        return SyncResult(online=True, drain=drain)


def create_context(
    config: AppConfig,
    sheets_service=None,
    drive_service=None,
    credentials=None,
    sms_gateway=None,
) -> StoreContext:
    """Build the clients and stores described by ``config``."""
    storage = LocalStorage(config.storage.local_storage_path)
    offline_cache = OfflineCache(storage)
    sheets = SheetsClient(
        config.sheets,
        service=sheets_service,
        credentials=credentials,
        offline_cache=offline_cache,
    )
    drive = None
    if config.drive.enabled:
        drive = DriveClient(
            config.drive,
            sheets_config=config.sheets,
            service=drive_service,
            credentials=credentials,
        )
    return StoreContext(config, sheets, storage, offline_cache, drive=drive, sms_gateway=sms_gateway)
