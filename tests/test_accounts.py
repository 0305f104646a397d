"""Tests for staff accounts, customer codes and both logins."""

from models import Customer, User
from models.user import Role
from stores.base import ResultStatus
from stores.users import hash_password, verify_password


class TestPasswords:
    def test_hash_and_verify(self):
        stored = hash_password("s3cret")
        assert "$" in stored
        assert verify_password("s3cret", stored)
        assert not verify_password("wrong", stored)

    def test_same_password_different_salt(self):
        assert hash_password("x") != hash_password("x")

    def test_verify_rejects_malformed_hash(self):
        assert not verify_password("x", "")
        assert not verify_password("x", "no-salt")


class TestUserStore:
    """Tests for staff accounts."""

    def test_create_user_hashes_password(self, context, spreadsheet):
        result = context.users.create_user(User(username="ali"), "pw")
        assert result.ok
        stored = spreadsheet.records("users")[0]["password_hash"]
        assert stored and stored != "pw"

    def test_username_unique_case_insensitive(self, context, technician):
        result = context.users.create_user(User(username="TECH"), "pw")
        assert result.status == ResultStatus.DUPLICATE

    def test_rename_to_taken_username(self, context, technician, admin_user):
        result = context.users.update(technician.id, {"username": "Boss"})
        assert result.status == ResultStatus.DUPLICATE

    def test_authenticate(self, context, technician):
        result = context.users.authenticate("Tech", "tech-password")
        assert result.success
        assert result.entity.id == technician.id

    def test_authenticate_wrong_password(self, context, technician):
        result = context.users.authenticate("tech", "nope")
        assert not result.success
        assert result.error == "Invalid username or password"

    def test_inactive_user_cannot_log_in(self, context, technician):
        context.users.update(technician.id, {"active": False})
        result = context.users.authenticate("tech", "tech-password")
        assert not result.success
        assert result.error == "Account is disabled"

    def test_set_password(self, context, technician):
        assert context.users.set_password(technician.id, "new-pw").ok
        assert context.users.authenticate("tech", "new-pw").success

    def test_seed_default_admin_once(self, context):
        result = context.users.seed_default_admin("first")
        assert result.ok
        assert result.entity.role == Role.ADMIN
        assert context.users.seed_default_admin("second") is None
        assert context.users.authenticate("admin", "first").success

    def test_find_by_auth_id(self, context):
        context.users.create_user(User(username="linked", auth_user_id="ext-1"), "pw")
        assert context.users.find_by_auth_id("ext-1").username == "linked"
        assert context.users.find_by_auth_id("ext-2") is None


class TestCustomerStore:
    """Tests for customers and their login codes."""

    def test_new_customer_gets_six_digit_code(self, context):
        result = context.customers.add(Customer(name="Sara", mobile="0912 000 0001"))
        assert result.ok
        code = result.entity.code
        assert len(code) == 6 and code.isdigit()

    def test_codes_are_unique(self, context):
        codes = set()
        for i in range(30):
            result = context.customers.add(Customer(name=f"C{i}", mobile=f"0912{i:07d}"))
            codes.add(result.entity.code)
        assert len(codes) == 30

    def test_generate_code_avoids_existing_codes(self, context, monkeypatch):
        context.customers.add(Customer(name="A", mobile="1", code="123456"))
        draws = iter([23456, 23456, 99999])
        monkeypatch.setattr("stores.customers.secrets.randbelow", lambda n: next(draws))
        assert context.customers.generate_code() == "199999"

    def test_code_exhaustion_fails(self, context, monkeypatch):
        context.customers.add(Customer(name="A", mobile="1", code="100000"))
        monkeypatch.setattr("stores.customers.secrets.randbelow", lambda n: 0)
        result = context.customers.add(Customer(name="B", mobile="2"))
        assert result.status == ResultStatus.FAILED

    def test_duplicate_mobile_ignores_formatting(self, context):
        context.customers.add(Customer(name="Sara", mobile="0912-000-0001"))
        result = context.customers.add(Customer(name="Sara 2", mobile="09120000001"))
        assert result.status == ResultStatus.DUPLICATE

    def test_portal_login(self, context):
        customer = context.customers.add(Customer(name="Sara", mobile="09120000001")).entity
        assert context.customers.authenticate(customer.code, "0912 000 0001").success
        assert not context.customers.authenticate(customer.code, "0999").success

    def test_portal_login_disabled(self, context):
        customer = context.customers.add(Customer(name="Sara", mobile="0912", can_login=False)).entity
        result = context.customers.authenticate(customer.code, "0912")
        assert not result.success
        assert "disabled" in result.error
