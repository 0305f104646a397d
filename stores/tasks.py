"""Tasks store.

History is store-owned and append-only: creation adds one entry, every
real status change adds exactly one, and an update that leaves the status
unchanged adds none. ``update`` also accepts two keys that are not task
fields: ``note`` (description for the history entry) and ``new_images``
(URLs appended to the live image list).
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.base import WorkStatus, utc_now
from models.task import HistoryEntry, Task
from services.drive import DriveError, FileUpload
from stores.base import EntityStore, ResultStatus, StoreResult, ValidationFailed, parse_status_change

logger = logging.getLogger(__name__)


@dataclass
class ImageUploadResult:
    uploaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    result: Optional[StoreResult] = None

    @property
    def ok(self) -> bool:
        return bool(self.uploaded) and not self.failed and self.result is not None and self.result.ok

    @property
    def partial(self) -> bool:
        return bool(self.uploaded) and bool(self.failed)


class TaskStore(EntityStore[Task]):
    entity_class = Task

    def __init__(self, *args, file_store=None, images_folder: str = "task-images", **kwargs):
        super().__init__(*args, **kwargs)
        self.file_store = file_store
        self.images_folder = images_folder

    def prepare_new(self, entity: Task, actor: str = "") -> Task:
        entity.history = [
            HistoryEntry(
                date=utc_now(),
                status=entity.status,
                description="Task created",
                updated_by=actor,
            )
        ]
        return entity

    def apply_changes(self, current: Task, changes: Dict[str, Any], actor: str = "") -> Task:
        changes = dict(changes)
        if "history" in changes:
            raise ValidationFailed("Task history cannot be edited")
        note = changes.pop("note", None)
        new_images = changes.pop("new_images", None)

        entries: List[HistoryEntry] = []
        if "status" in changes:
            target = parse_status_change(changes["status"])
            if not current.status.can_transition_to(target):
                raise ValidationFailed(
                    f"Task cannot move from {current.status.value} back to {target.value}"
                )
            changes["status"] = target
            if target != current.status:
                entries.append(
                    HistoryEntry(
                        date=utc_now(),
                        status=target,
                        description=note or f"Status changed to {target.value}",
                        updated_by=actor,
                    )
                )

        if new_images:
            changes["images"] = list(current.images) + list(new_images)
            entries.append(
                HistoryEntry(
                    date=utc_now(),
                    status=changes.get("status", current.status),
                    description=f"{len(new_images)} image(s) added",
                    updated_by=actor,
                )
            )

        updated = super().apply_changes(current, changes, actor)
        if entries:
            updated.history = list(current.history) + entries
        return updated

    def tasks_for_vehicle(self, reception_id: str) -> List[Task]:
        return [t for t in self.items if t.vehicle.id == reception_id]

    def tasks_for_user(self, user_id: str) -> List[Task]:
        return [t for t in self.items if t.assigned_to.id == user_id]

    def add_images(self, task_id: str, files: List[FileUpload], actor: str = "") -> ImageUploadResult:
        """Upload files and attach every URL that succeeded to the task."""
        outcome = ImageUploadResult()
        if self.file_store is None:
            outcome.failed = [f.name for f in files]
            outcome.result = StoreResult(ResultStatus.FAILED, error="No file store configured")
            return outcome

        for upload in files:
            try:
                outcome.uploaded.append(self.file_store.upload_file(upload, folder=self.images_folder))
            except DriveError as e:
                logger.error(f"Upload of {upload.name} for task {task_id} failed: {e}")
                outcome.failed.append(upload.name)

        if not outcome.uploaded:
            outcome.result = StoreResult(ResultStatus.FAILED, error="No images could be uploaded")
            return outcome

        outcome.result = self.update(task_id, {"new_images": outcome.uploaded}, actor=actor)
        return outcome

    def complete_vehicle_tasks(self, reception_id: str, actor: str = "") -> Dict[str, StoreResult]:
        """Complete every open task of a reception. Returns a result per task touched."""
        self.load()
        results: Dict[str, StoreResult] = {}
        for task in self.tasks_for_vehicle(reception_id):
            if task.status == WorkStatus.COMPLETED:
                continue
            results[task.id] = self.update(
                task.id,
                {"status": WorkStatus.COMPLETED, "note": "Completed with its reception"},
                actor=actor,
            )
        return results
