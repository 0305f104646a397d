"""Vehicle receptions store."""
import logging
from typing import Any, Dict, List

from models.base import WorkStatus, utc_now
from models.reception import Billing, Reception
from stores.base import EntityStore, StoreResult, ValidationFailed, parse_status_change

logger = logging.getLogger(__name__)


class ReceptionStore(EntityStore[Reception]):
    entity_class = Reception

    def apply_changes(self, current: Reception, changes: Dict[str, Any], actor: str = "") -> Reception:
        if "completed_at" in changes and current.is_completed:
            raise ValidationFailed("Reception is already completed")
        if "status" in changes:
            target = parse_status_change(changes["status"])
            if not current.status.can_transition_to(target):
                raise ValidationFailed(
                    f"Reception cannot move from {current.status.value} back to {target.value}"
                )
            # Only complete_reception stamps completion and bills the job.
            completing = target == WorkStatus.COMPLETED and not current.is_completed
            if completing and not changes.get("completed_at"):
                raise ValidationFailed("Use complete_reception to complete a reception")
            changes = {**changes, "status": target}
        return super().apply_changes(current, changes, actor)

    def complete_reception(self, reception_id: str, billing: Billing, completed_by: str) -> StoreResult:
        """Mark completed with its billing in a single write."""
        if not billing.total:
            billing.total = billing.compute_total()
        return self.update(
            reception_id,
            {
                "status": WorkStatus.COMPLETED,
                "billing": billing,
                "completed_at": utc_now(),
                "completed_by": completed_by,
            },
            actor=completed_by,
        )

    def active(self) -> List[Reception]:
        return [r for r in self.items if not r.is_completed]

    def completed(self) -> List[Reception]:
        return [r for r in self.items if r.is_completed]

    def for_customer(self, customer_id: str = "", mobile: str = "") -> List[Reception]:
        """Receptions linked to a customer by id, or by phone for older rows."""
        return [
            r
            for r in self.items
            if (customer_id and r.customer_info.customer_id == customer_id)
            or (mobile and r.customer_info.phone == mobile)
        ]
