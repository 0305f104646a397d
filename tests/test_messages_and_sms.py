"""Tests for staff messaging and SMS notifications."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from core.config import SMSConfig
from models.sms import SMSStatus
from services.sms import (
    SETTINGS_KEY,
    GatewayResult,
    MelipayamakClient,
    SMSGatewayError,
    SMSService,
)


class TestMessageStore:
    """Tests for the staff inbox."""

    def test_send_and_read(self, context):
        sent = context.messages.send("u1", "u2", "Parts", "Filters arrived", from_name="Ali", to_name="Tina")
        assert sent.ok
        assert context.messages.unread_count("u2") == 1

        assert context.messages.mark_as_read(sent.entity.id, actor="u2").ok
        assert context.messages.unread_count("u2") == 0

    def test_inbox_and_sent(self, context):
        context.messages.send("u1", "u2", "a", "...")
        context.messages.send("u2", "u1", "b", "...")
        assert [m.subject for m in context.messages.inbox("u2")] == ["a"]
        assert [m.subject for m in context.messages.sent("u2")] == ["b"]


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = str(payload)
    return response


class TestMelipayamakClient:
    """Tests for the gateway client."""

    def test_send_success(self):
        client = MelipayamakClient("user", "pass", cost_per_message=40)
        with patch.object(client._session, "post", return_value=_response(payload={"RetStatus": 1, "StrRetStatus": "Ok"})) as post:
            result = client.send("0912", "3000", "hello")

        assert result.success
        assert result.cost == 40
        url = post.call_args[0][0]
        body = post.call_args[1]["json"]
        assert url.endswith("/SendSMS")
        assert body["username"] == "user" and body["to"] == "0912" and body["from"] == "3000"

    def test_send_rejected(self):
        client = MelipayamakClient("user", "pass")
        with patch.object(client._session, "post", return_value=_response(payload={"RetStatus": 35, "StrRetStatus": "InvalidData"})):
            result = client.send("0912", "3000", "hello")
        assert not result.success
        assert result.message == "InvalidData"

    @patch("services.sms.time.sleep")
    def test_retries_server_errors(self, sleep):
        client = MelipayamakClient("user", "pass")
        responses = [_response(502), _response(payload={"RetStatus": 1, "Value": "1250.5"})]
        with patch.object(client._session, "post", side_effect=responses):
            assert client.get_balance() == 1250.5
        sleep.assert_called_once_with(1)

    @patch("services.sms.time.sleep")
    def test_unreachable_gateway(self, sleep):
        client = MelipayamakClient("user", "pass")
        with patch.object(client._session, "post", side_effect=requests.ConnectionError("down")):
            with pytest.raises(SMSGatewayError):
                client.get_balance()
        assert sleep.call_count == 2

    def test_client_error_not_retried(self):
        client = MelipayamakClient("user", "pass")
        with patch.object(client._session, "post", return_value=_response(401)) as post:
            assert client.validate_credentials() is False
        assert post.call_count == 1


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.send.return_value = GatewayResult(success=True, cost=50.0)
    gateway.get_balance.return_value = 1000.0
    return gateway


@pytest.fixture
def sms(context, gateway):
    service = SMSService(
        context.storage,
        log_store=context.sms_logs,
        gateway=gateway,
        config=SMSConfig(enabled=True, username="user", password="pass", sender="3000"),
    )
    return service


class TestSMSService:
    """Tests for templates, sending and logging."""

    def test_defaults_from_config(self, sms):
        assert sms.settings.is_configured
        assert [t.id for t in sms.settings.templates] == ["1", "2", "3"]

    def test_send_logs_attempt(self, sms, gateway, context, spreadsheet):
        log = sms.send("0912", "Your car is ready")

        gateway.send.assert_called_once_with("0912", "3000", "Your car is ready")
        assert log.status == SMSStatus.SENT
        assert log.cost == 50.0
        record = spreadsheet.records("sms_logs")[0]
        assert record["status"] == "sent" and record["to"] == "0912"

    def test_send_template(self, sms, gateway):
        log = sms.send_template("0912", "3", {"customerName": "Sara", "shopName": "Test Garage"})
        assert log.message == "Dear Sara, your vehicle is ready for pickup. Test Garage"
        assert log.template_used == "3"

    def test_send_template_missing_variable(self, sms, gateway):
        with pytest.raises(ValueError):
            sms.send_template("0912", "3", {"customerName": "Sara"})
        gateway.send.assert_not_called()

    def test_gateway_error_is_logged_as_failure(self, sms, gateway):
        gateway.send.side_effect = SMSGatewayError("timeout")
        log = sms.send("0912", "hi")
        assert log.status == SMSStatus.FAILED
        assert log.error == "timeout"

    def test_disabled_service_does_not_send(self, context, gateway):
        service = SMSService(context.storage, log_store=context.sms_logs, gateway=gateway)
        log = service.send("0912", "hi")
        assert log.status == SMSStatus.FAILED
        gateway.send.assert_not_called()
        assert service.balance() == 0.0

    def test_bulk_counts(self, sms, gateway):
        gateway.send.side_effect = [GatewayResult(success=True, cost=50), GatewayResult(success=False, message="blocked")]
        result = sms.send_bulk(["0912", "0913"], "Holiday hours")
        assert (result.sent, result.failed) == (1, 1)
        assert len(result.logs) == 2

    def test_template_crud_persists(self, sms, context):
        template = sms.add_template("Invoice", "Total: {amount}")
        assert template.variables == ["amount"]
        sms.update_template(template.id, content="Total due: {amount} {currency}")
        assert sms.delete_template("1")

        reloaded = SMSService(context.storage)
        ids = [t.id for t in reloaded.settings.templates]
        assert "1" not in ids
        assert reloaded.get_template(template.id).variables == ["amount", "currency"]

    def test_update_settings_resets_gateway(self, sms, context):
        sms.update_settings(password="new")
        assert isinstance(sms.gateway, MelipayamakClient)
        assert sms.gateway.password == "new"
        assert context.storage.get_item(SETTINGS_KEY)["password"] == "new"

    def test_unknown_template(self, sms):
        with pytest.raises(ValueError):
            sms.render("404", {})
