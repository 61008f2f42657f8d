"""
Tests for the DoH transport
Testing request headers, transport error mapping and A record extraction
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from doh_flag_resolver.errors import NoAnswerSection, NoARecord, RequestFailed
from doh_flag_resolver.transport import DohTransport, extract_a_record

URL = "https://dns.google/resolve?name=example.com&type=A"


def mock_session(status=200, payload=None, json_error=None, get_error=None):
    """aiohttp.ClientSession double whose get() yields one canned response"""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload, side_effect=json_error)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.get = MagicMock(return_value=context, side_effect=get_error)
    return session


class TestDohTransport:
    """Test DoH GET requests"""

    async def test_success(self):
        payload = {"Status": 0, "Answer": [{"type": 1, "data": "93.184.216.34"}]}
        session = mock_session(payload=payload)
        transport = DohTransport(session=session)

        assert await transport.get_json(URL, "example.com") == payload

    async def test_requests_dns_json(self):
        """Test the Accept header and timeout sent with each query"""
        session = mock_session(payload={})
        transport = DohTransport(session=session, timeout=5.0)

        await transport.get_json(URL, "example.com")

        args, kwargs = session.get.call_args
        assert args == (URL,)
        assert kwargs["headers"] == {"Accept": "application/dns-json"}
        assert kwargs["timeout"].total == 5.0

    async def test_accepts_dns_json_content_type(self):
        """Test the body is decoded regardless of the response content type"""
        session = mock_session(payload={})
        await DohTransport(session=session).get_json(URL, "example.com")

        response = await session.get.return_value.__aenter__()
        response.json.assert_awaited_with(content_type=None)

    @pytest.mark.parametrize("status", [400, 429, 500, 503])
    async def test_non_2xx(self, status):
        transport = DohTransport(session=mock_session(status=status))

        with pytest.raises(RequestFailed) as exc_info:
            await transport.get_json(URL, "example.com")

        assert str(status) in str(exc_info.value)
        assert exc_info.value.url == URL
        assert exc_info.value.hostname == "example.com"

    @pytest.mark.parametrize(
        "error",
        [
            aiohttp.ClientConnectionError("connection refused"),
            aiohttp.ServerDisconnectedError(),
            asyncio.TimeoutError(),
        ],
    )
    async def test_transport_errors(self, error):
        transport = DohTransport(session=mock_session(get_error=error))

        with pytest.raises(RequestFailed):
            await transport.get_json(URL, "example.com")

    async def test_malformed_json(self):
        session = mock_session(json_error=ValueError("Expecting value"))

        with pytest.raises(RequestFailed) as exc_info:
            await DohTransport(session=session).get_json(URL, "example.com")

        assert "Expecting value" in str(exc_info.value)

    async def test_non_object_body(self):
        session = mock_session(payload=["not", "an", "object"])

        with pytest.raises(RequestFailed):
            await DohTransport(session=session).get_json(URL, "example.com")

    async def test_timeout_clamped(self):
        assert DohTransport(timeout=0.01).timeout == 1.0
        assert DohTransport(timeout=600).timeout == 60.0

    async def test_close_leaves_shared_session_open(self):
        session = mock_session()
        await DohTransport(session=session).close()
        session.close.assert_not_awaited()

    async def test_close_owned_session(self):
        transport = DohTransport()
        session = await transport._get_session()
        await transport.close()
        assert session.closed


class TestExtractARecord:
    """Test answer extraction"""

    def test_single_a_record(self):
        response = {"Answer": [{"type": 1, "data": "93.184.216.34"}]}
        assert extract_a_record(response, "example.com") == "93.184.216.34"

    def test_first_a_record_in_order(self):
        response = {
            "Answer": [
                {"name": "www.example.com.", "type": 5, "data": "example.com."},
                {"name": "example.com.", "type": 1, "data": "10.0.0.2"},
                {"name": "example.com.", "type": 1, "data": "10.0.0.1"},
            ]
        }
        assert extract_a_record(response, "www.example.com") == "10.0.0.2"

    def test_no_a_record(self):
        with pytest.raises(NoARecord):
            extract_a_record({"Answer": [{"type": 16, "data": "txt"}]}, "example.com")

    def test_empty_answer(self):
        with pytest.raises(NoARecord):
            extract_a_record({"Answer": []}, "example.com")

    def test_aaaa_only(self):
        with pytest.raises(NoARecord):
            extract_a_record({"Answer": [{"type": 28, "data": "2606:2800::1"}]}, "example.com")

    @pytest.mark.parametrize(
        "response",
        [{}, {"Status": 3}, {"Answer": None}, {"Answer": "93.184.216.34"}],
    )
    def test_missing_answer_section(self, response):
        with pytest.raises(NoAnswerSection) as exc_info:
            extract_a_record(response, "example.com")
        assert exc_info.value.hostname == "example.com"

    def test_malformed_entries_skipped(self):
        response = {"Answer": ["junk", {"type": 1}, {"type": 1, "data": "10.1.1.1"}]}
        assert extract_a_record(response, "example.com") == "10.1.1.1"
