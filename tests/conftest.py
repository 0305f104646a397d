"""
Pytest configuration and shared fixtures.

Every fixture runs against an in-memory spreadsheet (tests/fakes.py), so
no test touches the network or a real Google account.
"""

import os
import sys
from pathlib import Path

# Set environment variables BEFORE any imports that might use them
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["SMS_ENABLED"] = "false"

import pytest

# Add project root and the tests directory to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeCredentials, FakeDriveService, FakeSpreadsheet  # noqa: E402


@pytest.fixture
def spreadsheet():
    """Spreadsheet with every table and its header row."""
    return FakeSpreadsheet().add_all_tables()


@pytest.fixture
def credentials():
    return FakeCredentials()


@pytest.fixture
def storage(tmp_path):
    from services.local_storage import LocalStorage

    return LocalStorage(str(tmp_path / "local.db"))


@pytest.fixture
def offline_cache(storage):
    from services.offline_cache import OfflineCache

    return OfflineCache(storage)


@pytest.fixture
def sheets_client(spreadsheet, credentials, offline_cache):
    from core.config import SheetsConfig
    from services.sheets import SheetsClient

    return SheetsClient(
        SheetsConfig(spreadsheet_id="sheet-1"),
        service=spreadsheet,
        credentials=credentials,
        offline_cache=offline_cache,
    )


@pytest.fixture
def app_config(tmp_path):
    from core.config import AppConfig, SheetsConfig, StorageConfig

    return AppConfig(
        sheets=SheetsConfig(spreadsheet_id="sheet-1"),
        storage=StorageConfig(local_storage_path=str(tmp_path / "context.db")),
        shop_name="Test Garage",
    )


@pytest.fixture
def drive_service():
    return FakeDriveService()


@pytest.fixture
def context(app_config, spreadsheet, drive_service, credentials):
    """Store context wired to the fake spreadsheet and fake Drive."""
    from stores.context import create_context

    return create_context(
        app_config,
        sheets_service=spreadsheet,
        drive_service=drive_service,
        credentials=credentials,
    )


@pytest.fixture
def app(context):
    """Create FastAPI test application."""
    from api.main import create_app

    return create_app(context)


@pytest.fixture
def client(app):
    """Create test client."""
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def admin_user(context):
    from models.user import Role, User, UserPermissions

    result = context.users.create_user(
        User(
            username="boss",
            name="Shop Owner",
            role=Role.ADMIN,
            permissions=UserPermissions.for_role(Role.ADMIN),
        ),
        "admin-password",
    )
    assert result.ok
    return result.entity


@pytest.fixture
def technician(context):
    from models.user import Role, User

    result = context.users.create_user(
        User(username="tech", name="Tina Tech", role=Role.TECHNICIAN),
        "tech-password",
    )
    assert result.ok
    return result.entity


@pytest.fixture
def auth_headers(admin_user):
    """Admin bearer token headers."""
    from api.auth import STAFF, create_token

    token = create_token(admin_user.id, STAFF, admin_user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tech_headers(technician):
    from api.auth import STAFF, create_token

    token = create_token(technician.id, STAFF, technician.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_client(client, auth_headers):
    """Create authenticated test client."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def reception(context):
    """A pending reception for a Corolla."""
    from models.reception import CustomerInfo, Reception, VehicleInfo

    result = context.receptions.add(
        Reception(
            customer_info=CustomerInfo(name="Sara Karimi", phone="09120000001"),
            vehicle_info=VehicleInfo(make="Toyota", model="Corolla", plate_number="12A345"),
        ),
        actor="reception-desk",
    )
    assert result.ok
    return result.entity
