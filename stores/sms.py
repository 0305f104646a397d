"""SMS send log store."""
from models.sms import SMSLog
from stores.base import EntityStore


class SMSLogStore(EntityStore[SMSLog]):
    entity_class = SMSLog
