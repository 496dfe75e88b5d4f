"""Tests for media download, storage and transcription."""

import re
from unittest.mock import AsyncMock, patch

import pytest

from ticketflow.infra.error_handler import MediaDownloadError, TranscriptionError
from ticketflow.models.content import ContentKind
from ticketflow.models.tenant import LineContext
from ticketflow.services import media_service
from ticketflow.services.media_service import StoredMedia, build_filename, extension_for, media_body, sanitize_filename


class TestFilenames:
    """Test stored filename construction."""

    def test_generated_name_uses_mime_subtype(self):
        assert re.match(r"^\d+\.jpe?g$", build_filename(None, "image/jpeg"))

    def test_mime_parameters_are_stripped(self):
        assert build_filename(None, "audio/ogg; codecs=opus", now_ms=1700000000000) == "1700000000000.ogg"

    def test_missing_or_malformed_mimetype(self):
        assert extension_for(None) == "unknown"
        assert extension_for("garbage") == "unknown"

    def test_original_name_is_prefixed_and_sanitized(self):
        name = build_filename('"Invoice #42 (final).pdf"', "application/pdf", now_ms=1700000000000)
        assert name == "1700000000000_Invoice__42__final_.pdf"

    def test_sanitize(self):
        assert sanitize_filename("  'a b/c.txt'  ") == "a_b_c.txt"
        assert re.match(r"^[A-Za-z0-9_.-]+$", sanitize_filename("ünïcødé ✓.png"))


class TestMediaBody:
    """Test body selection for media messages."""

    def test_precedence(self):
        stored = StoredMedia(filename="1.ogg", path="/tmp/1.ogg", mimetype="audio/ogg", media_type="audio")
        assert media_body(None, stored) == "1.ogg"
        assert media_body("caption", stored) == "caption"
        stored.transcript = "spoken words"
        assert media_body("caption", stored) == "spoken words"


class TestAcquireMedia:
    """Test acquire_media against a mocked gateway."""

    def _line(self, **overrides):
        return LineContext(tenant_id=1, line_id=1, **overrides)

    @pytest.mark.asyncio
    async def test_stores_file_under_tenant_directory(self, public_root):
        envelope = {"imageMessage": {"mimetype": "image/jpeg", "caption": "look"}}
        with patch.object(media_service.gateway_client, "download_media", new=AsyncMock(return_value=b"\xff\xd8data")):
            stored = await media_service.acquire_media(self._line(), {"key": {}}, envelope, ContentKind.IMAGE, "M1")

        assert re.match(r"^\d+\.jpe?g$", stored.filename)
        assert stored.media_type == "image"
        path = public_root / "company1" / stored.filename
        assert path.read_bytes() == b"\xff\xd8data"

    @pytest.mark.asyncio
    async def test_download_error_raises(self, public_root):
        download = AsyncMock(side_effect=RuntimeError("gateway down"))
        with patch.object(media_service.gateway_client, "download_media", new=download):
            with pytest.raises(MediaDownloadError):
                await media_service.acquire_media(self._line(), {}, {"imageMessage": {}}, ContentKind.IMAGE, "M1")

    @pytest.mark.asyncio
    async def test_empty_download_raises(self, public_root):
        with patch.object(media_service.gateway_client, "download_media", new=AsyncMock(return_value=b"")):
            with pytest.raises(MediaDownloadError):
                await media_service.acquire_media(self._line(), {}, {"imageMessage": {}}, ContentKind.IMAGE, "M1")

        assert not (public_root / "company1").exists()

    @pytest.mark.asyncio
    async def test_audio_transcription(self, public_root):
        line = self._line(audio_transcription=True, openai_api_key="sk-test")
        envelope = {"audioMessage": {"mimetype": "audio/ogg; codecs=opus"}}
        transcribe = AsyncMock(return_value="hello there")
        with patch.object(media_service.gateway_client, "download_media", new=AsyncMock(return_value=b"OggS")), \
                patch.object(media_service.openai_transcription_client, "transcribe", new=transcribe):
            stored = await media_service.acquire_media(line, {}, envelope, ContentKind.AUDIO, "M1")

        assert stored.transcript == "hello there"
        assert stored.filename.endswith(".ogg")
        transcribe.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transcription_failure_keeps_filename_body(self, public_root):
        line = self._line(audio_transcription=True, openai_api_key="sk-test")
        envelope = {"audioMessage": {"mimetype": "audio/ogg"}}
        transcribe = AsyncMock(side_effect=TranscriptionError("quota exceeded"))
        with patch.object(media_service.gateway_client, "download_media", new=AsyncMock(return_value=b"OggS")), \
                patch.object(media_service.openai_transcription_client, "transcribe", new=transcribe):
            stored = await media_service.acquire_media(line, {}, envelope, ContentKind.AUDIO, "M1")

        assert stored.transcript is None
        assert media_body(None, stored) == stored.filename

    @pytest.mark.asyncio
    async def test_transcription_disabled_for_non_audio(self, public_root):
        line = self._line(audio_transcription=True, openai_api_key="sk-test")
        transcribe = AsyncMock()
        with patch.object(media_service.gateway_client, "download_media", new=AsyncMock(return_value=b"data")), \
                patch.object(media_service.openai_transcription_client, "transcribe", new=transcribe):
            await media_service.acquire_media(line, {}, {"videoMessage": {"mimetype": "video/mp4"}}, ContentKind.VIDEO)

        transcribe.assert_not_awaited()
