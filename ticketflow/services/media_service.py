"""Media acquisition: download, store under the tenant directory, transcribe."""

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles

from ticketflow.adapters import gateway_client
from ticketflow.adapters.vendor_adapter_openai import openai_transcription_client
from ticketflow.infra.config import config
from ticketflow.infra.error_handler import MediaDownloadError
from ticketflow.infra.metrics import media_downloads_total, transcriptions_total
from ticketflow.models.content import ContentKind
from ticketflow.models.tenant import LineContext

logger = logging.getLogger(__name__)

DIRECTORY_MODE = 0o777
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_MIME_SUBTYPE = re.compile(r"^[A-Za-z0-9.+-]+/([A-Za-z0-9.+-]+)$")


@dataclass
class StoredMedia:
    filename: str
    path: str
    mimetype: Optional[str]
    media_type: str  # MIME major type, e.g. "image"
    transcript: Optional[str] = None


def extension_for(mimetype: Optional[str]) -> str:
    """MIME subtype with parameters stripped; 'unknown' when absent or malformed."""
    if not mimetype or not isinstance(mimetype, str):
        return "unknown"
    essence = mimetype.split(";", 1)[0].strip()
    match = _MIME_SUBTYPE.match(essence)
    if not match:
        return "unknown"
    return match.group(1).lower()


def sanitize_filename(filename: str) -> str:
    """Strip wrapping quotes and replace anything outside [A-Za-z0-9_.-] with '_'."""
    name = filename.strip().strip("\"'")
    return _UNSAFE_CHARS.sub("_", name)


def build_filename(original: Optional[str], mimetype: Optional[str], now_ms: Optional[int] = None) -> str:
    """
    Timestamped filename for a stored media file.

    `<epoch-ms>.<ext>` when no original name is supplied, otherwise
    `<epoch-ms>_<original>`; the result is always sanitized.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if original and str(original).strip():
        return f"{now_ms}_{sanitize_filename(str(original))}"
    return sanitize_filename(f"{now_ms}.{extension_for(mimetype)}")


def tenant_directory(tenant_id: int) -> Path:
    return Path(config.PUBLIC_ROOT) / f"company{tenant_id}"


def media_node(envelope: Dict[str, Any], kind: ContentKind) -> Dict[str, Any]:
    node = envelope.get(kind.value) if isinstance(envelope, dict) else None
    return node if isinstance(node, dict) else {}


async def write_media(tenant_id: int, filename: str, data: bytes) -> Path:
    """Write bytes under the tenant directory, creating it world-writable on first use."""
    directory = tenant_directory(tenant_id)
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        # mkdir's mode is masked by the umask
        os.chmod(directory, DIRECTORY_MODE)

    path = directory / filename
    async with aiofiles.open(path, "wb") as f:
        await f.write(data)
    return path


def transcription_enabled(line: LineContext, kind: ContentKind) -> bool:
    return (
        kind == ContentKind.AUDIO
        and line.audio_transcription
        and bool(line.openai_api_key or config.OPENAI_API_KEY)
    )


async def acquire_media(
    line: LineContext,
    raw_event: Dict[str, Any],
    envelope: Dict[str, Any],
    kind: ContentKind,
    message_id: Optional[str] = None,
) -> StoredMedia:
    """
    Download and store the media of one event.

    Args:
        line: Line context (tenant id, settings)
        raw_event: Event as received, handed back to the gateway for download
        envelope: Unwrapped content envelope holding the media node
        kind: Media content kind
        message_id: Protocol message id, for error reporting

    Returns:
        StoredMedia with the sanitized filename and optional transcript

    Raises:
        MediaDownloadError: If the gateway fails or returns no content
    """
    try:
        data = await gateway_client.download_media(line.line_id, raw_event)
    except Exception as e:
        media_downloads_total.labels(status="failure").inc()
        raise MediaDownloadError(f"Media download failed: {e}", message_id=message_id) from e

    if not data:
        media_downloads_total.labels(status="empty").inc()
        raise MediaDownloadError("Media download returned no content", message_id=message_id)

    node = media_node(envelope, kind)
    mimetype = node.get("mimetype")
    filename = build_filename(node.get("fileName"), mimetype)
    path = await write_media(line.tenant_id, filename, data)
    media_downloads_total.labels(status="success").inc()

    media_type = mimetype.split("/", 1)[0] if isinstance(mimetype, str) and "/" in mimetype else kind.value
    stored = StoredMedia(filename=filename, path=str(path), mimetype=mimetype, media_type=media_type)

    if transcription_enabled(line, kind):
        stored.transcript = await transcribe_safely(stored.path, line.openai_api_key)

    return stored


async def transcribe_safely(path: str, api_key: Optional[str]) -> Optional[str]:
    """Transcribe an audio file; failures are logged and yield None."""
    try:
        text = await openai_transcription_client.transcribe(path, api_key=api_key)
        transcriptions_total.labels(status="success").inc()
        return text
    except Exception as e:
        transcriptions_total.labels(status="failure").inc()
        logger.warning(f"Audio transcription failed for {Path(path).name}: {e}")
        return None


def media_body(caption: Optional[str], stored: StoredMedia) -> str:
    """Transcript when available, else the caption, else the stored filename."""
    if stored.transcript:
        return stored.transcript
    if caption:
        return caption
    return stored.filename
