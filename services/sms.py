"""SMS notifications through the Melipayamak REST gateway.

``MelipayamakClient`` talks to the vendor. ``SMSService`` holds the
settings and templates, renders messages and records every attempt in the
``sms_logs`` table.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from core.config import SMSConfig
from models.base import generate_id, utc_now
from models.sms import SMSLog, SMSSettings, SMSStatus, SMSTemplate, extract_variables
from services.local_storage import LocalStorage

logger = logging.getLogger(__name__)

SETTINGS_KEY = "sms-settings"


class SMSGatewayError(Exception):
    """The gateway was unreachable or rejected the request."""


@dataclass
class GatewayResult:
    success: bool
    cost: float = 0.0
    message: str = ""
    response: Dict[str, Any] = field(default_factory=dict)


class MelipayamakClient:
    API_BASE = "https://rest.payamak-panel.com/api/SendSMS"

    def __init__(
        self,
        username: str,
        password: str,
        api_base: Optional[str] = None,
        cost_per_message: float = 50.0,
        timeout: int = 30,
    ):
        self.username = username
        self.password = password
        self.api_base = (api_base or self.API_BASE).rstrip("/")
        self.cost_per_message = cost_per_message
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def _make_request(self, endpoint: str, data: Dict[str, Any], retries: int = 3) -> Dict[str, Any]:
        url = f"{self.api_base}/{endpoint}"
        payload = {"username": self.username, "password": self.password, **data}
        for attempt in range(retries):
            try:
                response = self._session.post(url, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                if attempt < retries - 1:
                    time.sleep(2 ** attempt)
                    continue
                raise SMSGatewayError(f"SMS gateway unreachable: {e}") from e

            if response.status_code >= 500 and attempt < retries - 1:
                time.sleep(2 ** attempt)
                continue
            if response.status_code != 200:
                raise SMSGatewayError(
                    f"SMS gateway returned HTTP {response.status_code}: {response.text[:200]}"
                )
            try:
                return response.json()
            except ValueError as e:
                raise SMSGatewayError(f"SMS gateway returned invalid JSON: {e}") from e
        raise SMSGatewayError("Max retries exceeded")

    def send(self, to: str, sender: str, text: str, is_flash: bool = False) -> GatewayResult:
        data = self._make_request(
            "SendSMS", {"to": to, "from": sender, "text": text, "isflash": is_flash}
        )
        if data.get("RetStatus") == 1:
            return GatewayResult(
                success=True,
                cost=self.cost_per_message,
                message=str(data.get("StrRetStatus", "Ok")),
                response=data,
            )
        return GatewayResult(
            success=False,
            message=str(data.get("StrRetStatus") or f"RetStatus {data.get('RetStatus')}"),
            response=data,
        )

    def get_balance(self) -> float:
        data = self._make_request("GetCredit", {})
        if data.get("RetStatus") != 1:
            raise SMSGatewayError(f"Balance request rejected: {data.get('StrRetStatus')}")
        try:
            return float(data.get("Value", 0))
        except (TypeError, ValueError) as e:
            raise SMSGatewayError(f"Unexpected balance value: {data.get('Value')!r}") from e

    def validate_credentials(self) -> bool:
        try:
            self.get_balance()
            return True
        except SMSGatewayError:
            return False


@dataclass
class BulkSendResult:
    sent: int = 0
    failed: int = 0
    logs: List[SMSLog] = field(default_factory=list)


class SMSService:
    """Settings, templates and sending, with every attempt logged."""

    def __init__(self, storage: LocalStorage, log_store=None, gateway=None, config: Optional[SMSConfig] = None):
        self.storage = storage
        self.log_store = log_store
        self.config = config or SMSConfig()
        self._gateway = gateway
        self.settings = self._load_settings()

    def _load_settings(self) -> SMSSettings:
        stored = self.storage.get_item(SETTINGS_KEY)
        if isinstance(stored, dict):
            return SMSSettings.from_dict(stored)
        return SMSSettings(
            username=self.config.username,
            password=self.config.password,
            sender=self.config.sender,
            enabled=self.config.enabled,
        )

    def _save_settings(self) -> None:
        self.storage.set_item(SETTINGS_KEY, self.settings.to_dict())

    @property
    def gateway(self):
        if self._gateway is None:
            self._gateway = MelipayamakClient(
                self.settings.username,
                self.settings.password,
                api_base=self.config.api_base,
                cost_per_message=self.config.cost_per_message,
            )
        return self._gateway

    def update_settings(self, **changes) -> SMSSettings:
        for key in ("username", "password", "sender", "enabled"):
            if key in changes and changes[key] is not None:
                setattr(self.settings, key, changes[key])
        if "username" in changes or "password" in changes:
            self._gateway = None
        self._save_settings()
        return self.settings

    # -------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------

    def get_template(self, template_id: str) -> Optional[SMSTemplate]:
        for template in self.settings.templates:
            if template.id == template_id:
                return template
        return None

    def add_template(self, name: str, content: str) -> SMSTemplate:
        template = SMSTemplate(id=generate_id(), name=name, content=content)
        self.settings.templates.append(template)
        self._save_settings()
        return template

    def update_template(
        self, template_id: str, name: Optional[str] = None, content: Optional[str] = None
    ) -> Optional[SMSTemplate]:
        template = self.get_template(template_id)
        if template is None:
            return None
        if name is not None:
            template.name = name
        if content is not None:
            template.content = content
            template.variables = extract_variables(content)
        self._save_settings()
        return template

    def delete_template(self, template_id: str) -> bool:
        before = len(self.settings.templates)
        self.settings.templates = [t for t in self.settings.templates if t.id != template_id]
        if len(self.settings.templates) == before:
            return False
        self._save_settings()
        return True

    def render(self, template_id: str, values: Dict[str, Any]) -> str:
        """Render a template. Raises ValueError for unknown templates or missing variables."""
        template = self.get_template(template_id)
        if template is None:
            raise ValueError(f"Unknown SMS template: {template_id}")
        return template.render(values)

    # -------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------

    def _record(self, log: SMSLog) -> SMSLog:
        if self.log_store is None:
            return log
        result = self.log_store.add(log)
        if result.ok:
            return result.entity
        logger.warning(f"SMS log for {log.to} not saved: {result.error}")
        return log

    def send(self, to: str, text: str, template_id: Optional[str] = None) -> SMSLog:
        """Send one message. The returned log tells whether it went out."""
        log = SMSLog(to=to, message=text, template_used=template_id, sent_at=utc_now())

        if not self.settings.is_configured:
            log.status = SMSStatus.FAILED
            log.error = "SMS sending is disabled or not configured"
            logger.warning(f"SMS to {to} not sent: {log.error}")
            return self._record(log)

        try:
            result = self.gateway.send(to, self.settings.sender, text)
        except SMSGatewayError as e:
            log.status = SMSStatus.FAILED
            log.error = str(e)
            logger.error(f"SMS to {to} failed: {e}")
            return self._record(log)

        if result.success:
            log.status = SMSStatus.SENT
            log.cost = result.cost
            logger.info(f"SMS sent to {to}")
        else:
            log.status = SMSStatus.FAILED
            log.error = result.message
            logger.error(f"SMS to {to} rejected: {result.message}")
        return self._record(log)

    def send_template(self, to: str, template_id: str, values: Dict[str, Any]) -> SMSLog:
        text = self.render(template_id, values)
        return self.send(to, text, template_id=template_id)

    def send_bulk(self, recipients: List[str], text: str, template_id: Optional[str] = None) -> BulkSendResult:
        result = BulkSendResult()
        for to in recipients:
            log = self.send(to, text, template_id=template_id)
            result.logs.append(log)
            if log.status == SMSStatus.SENT:
                result.sent += 1
            else:
                result.failed += 1
        return result

    def balance(self) -> float:
        """Remaining credit; 0 when sending is disabled."""
        if not self.settings.is_configured:
            return 0.0
        return self.gateway.get_balance()
