"""Customer self-service portal: a logged-in customer's own receptions."""
from fastapi import APIRouter, Depends

from api.auth import Principal, require_customer
from api.dependencies import get_context, serialize
from stores.context import StoreContext

router = APIRouter(prefix="/api/portal", tags=["Portal"])


@router.get("/receptions")
def my_receptions(principal: Principal = Depends(require_customer), context: StoreContext = Depends(get_context)):
    customer = context.customers.get(principal.id)
    context.receptions.load()
    receptions = context.receptions.for_customer(customer_id=customer.id, mobile=customer.mobile)
    return {
        "customer": serialize(customer),
        "items": [
            {
                "id": r.id,
                "vehicle_info": serialize(r.vehicle_info),
                "status": r.status.value,
                "created_at": r.created_at,
                "completed_at": r.completed_at,
                "billing": serialize(r.billing) if r.billing else None,
            }
            for r in receptions
        ],
    }
