"""Vehicle reception (intake) model."""
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from models.base import (
    RowEntity,
    WorkStatus,
    dump_json,
    parse_float,
    parse_json,
    parse_list,
)
from schemas.sheets_schema import RECEPTIONS


@dataclass
class CustomerInfo:
    """Customer details captured at intake. ``customer_id`` links to the customers table."""
    name: str = ""
    phone: str = ""
    national_id: str = ""
    address: str = ""
    customer_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomerInfo":
        return cls(
            name=str(data.get("name", "")),
            phone=str(data.get("phone", "")),
            national_id=str(data.get("national_id", data.get("nationalId", ""))),
            address=str(data.get("address", "")),
            customer_id=str(data.get("customer_id", "")),
        )


@dataclass
class VehicleInfo:
    """Vehicle details captured at intake."""
    make: str = ""
    model: str = ""
    year: str = ""
    color: str = ""
    plate_number: str = ""
    vin: str = ""
    mileage: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VehicleInfo":
        return cls(
            make=str(data.get("make", "")),
            model=str(data.get("model", "")),
            year=str(data.get("year", "")),
            color=str(data.get("color", "")),
            plate_number=str(data.get("plate_number", data.get("plateNumber", ""))),
            vin=str(data.get("vin", "")),
            mileage=str(data.get("mileage", "")),
        )


@dataclass
class ServiceInfo:
    """Requested work. ``signature`` holds the customer's signature image data."""
    description: str = ""
    customer_complaints: List[str] = field(default_factory=list)
    customer_requests: List[str] = field(default_factory=list)
    estimated_completion: str = ""
    signature: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceInfo":
        return cls(
            description=str(data.get("description", "")),
            customer_complaints=list(data.get("customer_complaints", data.get("customerComplaints", [])) or []),
            customer_requests=list(data.get("customer_requests", data.get("customerRequests", [])) or []),
            estimated_completion=str(data.get("estimated_completion", "") or ""),
            signature=data.get("signature"),
        )


@dataclass
class BillingLine:
    name: str
    price: float
    quantity: float = 1

    @property
    def amount(self) -> float:
        return self.price * self.quantity


@dataclass
class Billing:
    """Invoice for a completed reception. Discount and tax are percentages."""
    services: List[BillingLine] = field(default_factory=list)
    parts: List[BillingLine] = field(default_factory=list)
    discount: float = 0.0
    tax: float = 0.0
    total: float = 0.0

    @property
    def subtotal(self) -> float:
        return sum(line.amount for line in self.services) + sum(line.amount for line in self.parts)

    def compute_total(self) -> float:
        """Subtotal, minus discount %, plus tax % on the discounted amount."""
        discounted = self.subtotal * (1 - self.discount / 100)
        return round(discounted * (1 + self.tax / 100), 2)

    @classmethod
    def calculate(
        cls,
        services: List[BillingLine],
        parts: List[BillingLine],
        discount: float = 0.0,
        tax: float = 0.0,
    ) -> "Billing":
        billing = cls(services=list(services), parts=list(parts), discount=discount, tax=tax)
        billing.total = billing.compute_total()
        return billing

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Billing":
        def lines(key: str) -> List[BillingLine]:
            return [
                BillingLine(
                    name=str(item.get("name", "")),
                    price=parse_float(item.get("price")),
                    quantity=parse_float(item.get("quantity"), default=1),
                )
                for item in data.get(key, []) or []
            ]

        return cls(
            services=lines("services"),
            parts=lines("parts"),
            discount=parse_float(data.get("discount")),
            tax=parse_float(data.get("tax")),
            total=parse_float(data.get("total")),
        )


@dataclass
class Reception(RowEntity):
    """One vehicle's visit, from drop-off to billed completion."""
    table: ClassVar[str] = RECEPTIONS

    customer_info: CustomerInfo
    vehicle_info: VehicleInfo
    service_info: ServiceInfo = field(default_factory=ServiceInfo)
    status: WorkStatus = WorkStatus.PENDING
    billing: Optional[Billing] = None
    completed_at: Optional[str] = None
    completed_by: Optional[str] = None
    images: List[str] = field(default_factory=list)
    documents: List[str] = field(default_factory=list)
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "customer_info": dump_json(asdict(self.customer_info)),
            "vehicle_info": dump_json(asdict(self.vehicle_info)),
            "service_info": dump_json(asdict(self.service_info)),
            "status": self.status.value,
            "billing": dump_json(self.billing.to_dict()) if self.billing else "",
            "completed_at": self.completed_at or "",
            "completed_by": self.completed_by or "",
            "images": dump_json(self.images),
            "documents": dump_json(self.documents),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Reception":
        billing = parse_json(record.get("billing"), None)
        return cls(
            id=record.get("id", ""),
            customer_info=CustomerInfo.from_dict(parse_json(record.get("customer_info"), {})),
            vehicle_info=VehicleInfo.from_dict(parse_json(record.get("vehicle_info"), {})),
            service_info=ServiceInfo.from_dict(parse_json(record.get("service_info"), {})),
            status=WorkStatus.parse(record.get("status")),
            billing=Billing.from_dict(billing) if isinstance(billing, dict) else None,
            completed_at=record.get("completed_at") or None,
            completed_by=record.get("completed_by") or None,
            images=parse_list(record.get("images")),
            documents=parse_list(record.get("documents")),
            created_at=record.get("created_at", ""),
            updated_at=record.get("updated_at", ""),
        )

    @property
    def is_completed(self) -> bool:
        return self.status == WorkStatus.COMPLETED
