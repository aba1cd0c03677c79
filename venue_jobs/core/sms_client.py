import httpx
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import settings
from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class SmsSendResult:
    success: bool
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"success": self.success, "sid": self.sid}
        if self.status:
            data["status"] = self.status
        if self.error:
            data["error"] = self.error
        return data


class SmsClient:
    """Client for sending SMS through the Twilio REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str = "https://api.twilio.com",
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize SMS client.

        Args:
            account_sid: Twilio account SID
            auth_token: Twilio auth token
            from_number: Sender phone number in E.164 format
            base_url: Twilio API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "SmsClient":
        return cls(
            account_sid=settings.TWILIO_ACCOUNT_SID or "",
            auth_token=settings.TWILIO_AUTH_TOKEN or "",
            from_number=settings.TWILIO_PHONE_NUMBER or "",
            base_url=settings.TWILIO_API_BASE_URL,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    async def send_sms(self, to: str, body: str) -> SmsSendResult:
        """
        Send a single SMS.

        Provider rejections (4xx) come back as an unsuccessful result.
        Transport errors and 5xx responses raise httpx.HTTPError so the job
        is retried by the queue.
        """
        if not to:
            return SmsSendResult(success=False, error="Missing recipient phone number")
        if not body:
            return SmsSendResult(success=False, error="Missing message body")

        data = {"To": to, "From": self.from_number, "Body": body}

        async with httpx.AsyncClient(
            timeout=self.timeout,
            auth=(self.account_sid, self.auth_token),
            transport=self.transport,
        ) as client:
            logger.info("Sending SMS", to=to, body_length=len(body))
            response = await client.post(self.messages_url, data=data)

        if response.status_code >= 500:
            logger.warning("SMS provider error", to=to, status_code=response.status_code)
            response.raise_for_status()

        try:
            content = response.json()
        except ValueError:
            content = {"message": response.text[:500]}

        if response.status_code >= 400:
            error = content.get("message") or f"HTTP {response.status_code}"
            logger.warning("SMS rejected", to=to, status_code=response.status_code, error=error)
            return SmsSendResult(success=False, error=error)

        logger.info("SMS accepted", to=to, sid=content.get("sid"), status=content.get("status"))
        return SmsSendResult(success=True, sid=content.get("sid"), status=content.get("status"))
