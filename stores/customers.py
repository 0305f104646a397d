"""Customers store: 6-digit login codes and portal login."""
import logging
import secrets
from typing import Optional

from models.customer import Customer
from stores.base import EntityStore, LoginResult, ResultStatus, ValidationFailed

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 20


def _normalize_mobile(mobile: str) -> str:
    return "".join(ch for ch in (mobile or "") if ch.isdigit())


class CustomerStore(EntityStore[Customer]):
    entity_class = Customer

    def check_duplicate(self, entity: Customer, exclude_id: Optional[str] = None) -> Optional[str]:
        mobile = _normalize_mobile(entity.mobile)
        for customer in self.items:
            if customer.id == exclude_id:
                continue
            if mobile and _normalize_mobile(customer.mobile) == mobile:
                return f"A customer with mobile {entity.mobile} already exists"
            if entity.code and customer.code == entity.code:
                return f"Customer code {entity.code} is already in use"
        return None

    def generate_code(self) -> str:
        """Random 6-digit code not used by any known customer."""
        used = {customer.code for customer in self.items}
        for _ in range(CODE_ATTEMPTS):
            code = f"{secrets.randbelow(900000) + 100000}"
            if code not in used:
                return code
        raise ValidationFailed("Could not generate a unique customer code", ResultStatus.FAILED)

    def prepare_new(self, entity: Customer, actor: str = "") -> Customer:
        if not entity.code:
            entity.code = self.generate_code()
        return entity

    def find_by_mobile(self, mobile: str) -> Optional[Customer]:
        mobile = _normalize_mobile(mobile)
        for customer in self.items:
            if _normalize_mobile(customer.mobile) == mobile:
                return customer
        return None

    def find_by_code(self, code: str) -> Optional[Customer]:
        for customer in self.items:
            if customer.code == code.strip():
                return customer
        return None

    def authenticate(self, code: str, mobile: str) -> LoginResult:
        """Portal login by customer code and mobile number."""
        self.load()
        customer = self.find_by_code(code)
        if customer is None or _normalize_mobile(customer.mobile) != _normalize_mobile(mobile):
            logger.warning(f"Failed customer login for code {code}")
            return LoginResult(success=False, error="Invalid customer code or mobile number")
        if not customer.can_login:
            return LoginResult(success=False, error="Portal access is disabled for this customer")
        return LoginResult(success=True, entity=customer)
