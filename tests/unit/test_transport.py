"""Tests for the httpx transport."""

import json

import httpx
import pytest

from heclogger.context import BATCH_CONTENT_TYPE, RequestOptions
from heclogger.errors import TransportError
from heclogger.transport import HttpxTransport, decode_body

URL = "https://hec.test:8088/services/collector/event/1.0"


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPost:
    """Single POSTs through a mocked httpx client."""

    async def test_json_body(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"text": "Success", "code": 0})

        async with make_client(handler) as client:
            transport = HttpxTransport(client)
            options = RequestOptions(
                url=URL,
                headers={"Authorization": "Splunk abc", "Content-Type": "application/json"},
                body={"event": {"message": "hello", "severity": "info"}, "time": "1.000"},
            )
            response, body = await transport.post(options)

        assert response.status_code == 200
        assert body == {"text": "Success", "code": 0}

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == URL
        assert request.headers["authorization"] == "Splunk abc"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == options.body

    async def test_string_body_sent_raw(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"text": "Success", "code": 0})

        raw = '{"event":{"message":"a"}}{"event":{"message":"b"}}'
        async with make_client(handler) as client:
            options = RequestOptions(
                url=URL, headers={"Content-Type": BATCH_CONTENT_TYPE}, body=raw, json=False
            )
            await HttpxTransport(client).post(options)

        assert seen[0].content.decode() == raw
        assert seen[0].headers["content-type"] == BATCH_CONTENT_TYPE

    async def test_http_error_status_is_not_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"text": "Invalid token", "code": 4})

        async with make_client(handler) as client:
            response, body = await HttpxTransport(client).post(RequestOptions(url=URL, body={}))

        assert response.status_code == 403
        assert body == {"text": "Invalid token", "code": 4}

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            httpx.RemoteProtocolError("eof"),
            httpx.DecodingError("bad gzip"),
            httpx.TooManyRedirects("redirect loop"),
            httpx.InvalidURL("bad url"),
        ],
    )
    async def test_request_failures_raise_transport_error(self, exc):
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc

        async with make_client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await HttpxTransport(client).post(RequestOptions(url=URL, body={}))

        assert exc_info.value.__cause__ is exc

    async def test_injected_client_not_closed(self):
        client = make_client(lambda request: httpx.Response(200))
        transport = HttpxTransport(client)
        await transport.aclose()
        assert client.is_closed is False
        await client.aclose()

    async def test_owned_clients_closed(self):
        transport = HttpxTransport()
        insecure = transport._client_for(RequestOptions(url=URL, strict_ssl=False))
        strict = transport._client_for(RequestOptions(url=URL, strict_ssl=True))

        assert insecure is not strict
        await transport.aclose()
        assert insecure.is_closed
        assert strict.is_closed


class TestDecodeBody:
    """Response decoding."""

    def test_json(self):
        assert decode_body(httpx.Response(200, json={"code": 0})) == {"code": 0}

    def test_text(self):
        assert decode_body(httpx.Response(200, text="ok")) == "ok"

    def test_empty(self):
        assert decode_body(httpx.Response(204)) is None
