"""Tests for structured logging, log context and secrets lookup."""

import base64
import json
import logging
import os
from unittest.mock import patch

from core.logging_config import (
    JSONFormatter,
    LogContext,
    TextFormatter,
    clear_context,
    current_table,
    generate_run_id,
    set_context,
    setup_logging,
)
from core.secrets import check_production_readiness, get_service_account_info


def _record(message="hello"):
    return logging.LogRecord("stores.base", logging.INFO, __file__, 1, message, None, None)


class TestFormatters:
    def teardown_method(self):
        clear_context()

    def test_json_includes_context_fields(self):
        with LogContext(table="tasks", entity_id="t1", actor="Tina"):
            data = json.loads(JSONFormatter().format(_record("Updated task")))
        assert data["message"] == "Updated task"
        assert data["table"] == "tasks"
        assert data["entity_id"] == "t1"
        assert data["actor"] == "Tina"
        assert "run_id" not in data

    def test_text_includes_context_fields(self):
        set_context(run_id="run_1", table="receptions")
        line = TextFormatter().format(_record())
        assert "[run=run_1, table=receptions]" in line
        assert line.endswith("stores.base [run=run_1, table=receptions]: hello")


class TestLogContext:
    def test_restores_previous_values(self):
        set_context(table="users")
        with LogContext(table="tasks"):
            assert current_table.get() == "tasks"
            with LogContext(table="messages"):
                assert current_table.get() == "messages"
            assert current_table.get() == "tasks"
        assert current_table.get() == "users"
        clear_context()

    def test_run_ids_are_unique(self):
        assert generate_run_id() != generate_run_id()
        assert generate_run_id().startswith("run_")


class TestSetupLogging:
    def test_named_logger_does_not_propagate(self):
        logger = setup_logging(level="debug", format_type="json", logger_name="autoshop-test")
        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False


class TestSecrets:
    @patch.dict(os.environ, {}, clear=True)
    def test_service_account_from_file(self, tmp_path):
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps({"type": "service_account", "client_email": "a@b"}))
        assert get_service_account_info(str(path))["client_email"] == "a@b"

    @patch.dict(os.environ, {}, clear=True)
    def test_service_account_from_env(self):
        encoded = base64.b64encode(json.dumps({"type": "service_account"}).encode()).decode()
        os.environ["SHEETS_CREDENTIALS_JSON"] = encoded
        assert get_service_account_info() == {"type": "service_account"}

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_credentials(self, tmp_path):
        assert get_service_account_info(str(tmp_path / "missing.json")) is None

    @patch.dict(os.environ, {"JWT_SECRET_KEY": "short", "CORS_ORIGINS": "*"}, clear=True)
    def test_production_readiness_warnings(self, tmp_path):
        warnings = check_production_readiness(str(tmp_path / "missing.json"))
        assert len(warnings) == 3
