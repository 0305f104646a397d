"""Entity models for the shop's sheet-backed tables."""
from models.base import WorkStatus, generate_id, utc_now
from models.customer import Customer
from models.message import Message
from models.reception import Billing, BillingLine, CustomerInfo, Reception, ServiceInfo, VehicleInfo
from models.sms import SMSLog, SMSSettings, SMSStatus, SMSTemplate
from models.task import AssignedUser, HistoryEntry, Priority, Task, VehicleRef
from models.user import Role, User, UserPermissions

__all__ = [
    "WorkStatus",
    "generate_id",
    "utc_now",
    "User",
    "Role",
    "UserPermissions",
    "Customer",
    "Reception",
    "CustomerInfo",
    "VehicleInfo",
    "ServiceInfo",
    "Billing",
    "BillingLine",
    "Task",
    "Priority",
    "AssignedUser",
    "VehicleRef",
    "HistoryEntry",
    "Message",
    "SMSTemplate",
    "SMSSettings",
    "SMSLog",
    "SMSStatus",
]
