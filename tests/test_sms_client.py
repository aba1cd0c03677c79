"""
Tests for the Twilio SMS client using httpx.MockTransport.
"""
import base64
import httpx
import pytest
from urllib.parse import parse_qs

from venue_jobs.core.sms_client import SmsClient


def make_client(handler, **overrides) -> SmsClient:
    options = dict(
        account_sid="AC123",
        auth_token="secret",
        from_number="+441234567890",
        base_url="https://api.twilio.test/",
        transport=httpx.MockTransport(handler),
    )
    options.update(overrides)
    return SmsClient(**options)


class TestSmsClient:
    """Test cases for SmsClient."""

    @pytest.mark.asyncio
    async def test_send_sms_posts_form_with_basic_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        result = await make_client(handler).send_sms("+447700900000", "hi")

        assert result.success is True
        assert result.sid == "SM123"
        assert result.status == "queued"
        assert seen["url"] == "https://api.twilio.test/2010-04-01/Accounts/AC123/Messages.json"
        assert seen["auth"] == "Basic " + base64.b64encode(b"AC123:secret").decode()
        assert seen["form"] == {"To": ["+447700900000"], "From": ["+441234567890"], "Body": ["hi"]}

    @pytest.mark.asyncio
    async def test_provider_rejection_is_unsuccessful_result(self):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        result = await make_client(handler).send_sms("+000", "hi")

        assert result.success is False
        assert result.error == "Invalid 'To' Phone Number"
        assert result.to_dict() == {"success": False, "sid": None, "error": "Invalid 'To' Phone Number"}

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(httpx.HTTPStatusError):
            await make_client(handler).send_sms("+447700900000", "hi")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(httpx.ConnectError):
            await make_client(handler).send_sms("+447700900000", "hi")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to, body", [("", "hi"), ("+447700900000", "")])
    async def test_missing_fields_do_not_call_provider(self, to, body):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={})

        result = await make_client(handler).send_sms(to, body)

        assert result.success is False
        assert calls == []

    def test_is_configured(self):
        assert make_client(lambda r: None).is_configured is True
        assert make_client(lambda r: None, auth_token="").is_configured is False
