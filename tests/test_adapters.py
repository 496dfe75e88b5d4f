"""Tests for the gateway client, the transcription adapter and error handling."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ticketflow.adapters import gateway_client
from ticketflow.adapters.vendor_adapter_openai import OpenAITranscriptionClient
from ticketflow.infra.config import config
from ticketflow.infra.error_handler import (
    APIError,
    AuthError,
    ErrorCategory,
    NetworkError,
    RateLimitError,
    TranscriptionError,
    classify_error,
    retry_with_backoff,
)


@pytest.fixture
def gateway(monkeypatch):
    """Route gateway HTTP calls to a handler set by the test."""
    state = {"requests": [], "response": httpx.Response(200, json={})}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["response"]

    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(gateway_client.httpx, "AsyncClient", client_factory)
    monkeypatch.setattr(config, "GATEWAY_URL", "http://gateway.local/")
    monkeypatch.setattr(config, "GATEWAY_TOKEN", "gw-token")
    return state


class TestGatewayClient:
    """Test gateway_client against a mock transport."""

    @pytest.mark.asyncio
    async def test_send_text(self, gateway):
        gateway["response"] = httpx.Response(200, json={"key": {"id": "SENT1"}})

        result = await gateway_client.send_text(3, "5511988887777@s.whatsapp.net", "hello")

        assert result == {"key": {"id": "SENT1"}}
        request = gateway["requests"][0]
        assert str(request.url) == "http://gateway.local/lines/3/messages/text"
        assert request.headers["Authorization"] == "Bearer gw-token"
        assert json.loads(request.content) == {"to": "5511988887777@s.whatsapp.net", "text": "hello"}

    @pytest.mark.asyncio
    async def test_download_media(self, gateway):
        gateway["response"] = httpx.Response(200, content=b"binary")
        assert await gateway_client.download_media(1, {"key": {"id": "M1"}}) == b"binary"

        gateway["response"] = httpx.Response(200, content=b"")
        assert await gateway_client.download_media(1, {"key": {"id": "M1"}}) is None

    @pytest.mark.asyncio
    async def test_send_media_encodes_file(self, gateway, tmp_path):
        path = tmp_path / "welcome.png"
        path.write_bytes(b"png")

        await gateway_client.send_media(1, "x@s.whatsapp.net", str(path), caption="Hi")

        body = json.loads(gateway["requests"][0].content)
        assert body["fileName"] == "welcome.png"
        assert body["mimetype"] == "image/png"
        assert body["caption"] == "Hi"
        assert body["data"] == "cG5n"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,error_type,retryable", [
        (500, APIError, True),
        (404, APIError, False),
        (401, AuthError, False),
        (429, RateLimitError, True),
    ])
    async def test_http_errors_are_wrapped(self, gateway, status_code, error_type, retryable):
        gateway["response"] = httpx.Response(status_code, json={"error": "nope"})

        with pytest.raises(error_type) as exc_info:
            await gateway_client.send_text(1, "x@s.whatsapp.net", "hello")

        assert exc_info.value.retryable is retryable

    def test_user_jid(self):
        assert gateway_client.user_jid("5511988887777") == "5511988887777@s.whatsapp.net"


class TestErrorHandling:
    """Test error classification and retries."""

    def test_classify_error(self):
        assert classify_error(ConnectionError("reset")) == (ErrorCategory.NETWORK, True, None)
        assert classify_error(Exception("429 too many requests, retry-after: 7")) == (
            ErrorCategory.RATE_LIMIT, True, 7.0,
        )
        assert classify_error(Exception("401 unauthorized"))[0] == ErrorCategory.AUTH_ERROR
        assert classify_error(ValueError("bad input")) == (ErrorCategory.UNKNOWN, False, None)
        assert classify_error(NetworkError("down"))[1] is True

    @pytest.mark.asyncio
    async def test_retry_until_success(self):
        func = AsyncMock(side_effect=[ConnectionError("reset"), ConnectionError("reset"), "ok"])
        on_retry = MagicMock()

        result = await retry_with_backoff(func, max_retries=3, initial_delay=0.001, on_retry=on_retry)

        assert result == "ok"
        assert func.await_count == 3
        assert on_retry.call_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(self):
        func = AsyncMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            await retry_with_backoff(func, max_retries=3, initial_delay=0.001)

        assert func.await_count == 1


class TestTranscriptionClient:
    """Test the OpenAI transcription adapter with a stubbed SDK client."""

    def _client(self, create):
        adapter = OpenAITranscriptionClient()
        sdk = SimpleNamespace(audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create)))
        adapter.client_for = MagicMock(return_value=sdk)
        return adapter

    @pytest.mark.asyncio
    async def test_transcribe(self, tmp_path):
        path = tmp_path / "voice.ogg"
        path.write_bytes(b"OggS")
        create = AsyncMock(return_value=SimpleNamespace(text="  see you tomorrow "))

        text = await self._client(create).transcribe(str(path), api_key="sk-test")

        assert text == "see you tomorrow"
        assert create.await_args.kwargs["model"] == config.OPENAI_TRANSCRIPTION_MODEL

    @pytest.mark.asyncio
    async def test_empty_transcript_is_an_error(self, tmp_path):
        path = tmp_path / "voice.ogg"
        path.write_bytes(b"OggS")
        create = AsyncMock(return_value=SimpleNamespace(text="   "))

        with pytest.raises(TranscriptionError):
            await self._client(create).transcribe(str(path), api_key="sk-test")

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(config, "OPENAI_API_KEY", None)
        with pytest.raises(ValueError):
            OpenAITranscriptionClient().client_for(None)

    def test_clients_are_cached_per_key(self):
        adapter = OpenAITranscriptionClient()
        assert adapter.client_for("sk-a") is adapter.client_for("sk-a")
        assert adapter.client_for("sk-a") is not adapter.client_for("sk-b")
