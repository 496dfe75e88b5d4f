"""Client for the transport gateway that owns the protocol sessions."""

import base64
import logging
import mimetypes
from pathlib import Path
from typing import Optional, Dict, Any

import httpx

from ticketflow.infra.config import config
from ticketflow.infra.error_handler import wrap_http_error

logger = logging.getLogger(__name__)

USER_JID_SUFFIX = "@s.whatsapp.net"


def user_jid(number: str) -> str:
    """Conversation id for a plain phone number."""
    return f"{number}{USER_JID_SUFFIX}"


def _headers() -> Dict[str, str]:
    headers = {"Accept": "application/json"}
    if config.GATEWAY_TOKEN:
        headers["Authorization"] = f"Bearer {config.GATEWAY_TOKEN}"
    return headers


def _url(line_id: int, path: str) -> str:
    return f"{config.GATEWAY_URL.rstrip('/')}/lines/{line_id}{path}"


async def _post(line_id: int, path: str, payload: Dict[str, Any]) -> httpx.Response:
    try:
        async with httpx.AsyncClient(timeout=config.GATEWAY_TIMEOUT_SECONDS) as client:
            response = await client.post(_url(line_id, path), json=payload, headers=_headers())
            response.raise_for_status()
            return response
    except httpx.HTTPError as e:
        raise wrap_http_error(e, "gateway") from e


async def download_media(line_id: int, raw_event: Dict[str, Any]) -> Optional[bytes]:
    """
    Download the binary attached to a protocol event.

    Args:
        line_id: Line whose session received the event
        raw_event: The event as delivered by the gateway

    Returns:
        Media bytes, or None when the gateway returned no content

    Raises:
        PipelineError: If the gateway call fails
    """
    response = await _post(line_id, "/media/download", {"message": raw_event})
    return response.content or None


async def send_text(line_id: int, to_jid: str, text: str) -> Dict[str, Any]:
    """
    Send a text message through a line.

    Returns:
        Gateway response (includes the sent message key)
    """
    response = await _post(line_id, "/messages/text", {"to": to_jid, "text": text})
    return response.json() if response.content else {}


async def send_media(
    line_id: int,
    to_jid: str,
    file_path: str,
    caption: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Send a file from local storage as a media message.

    The file is read from disk and posted base64-encoded with its MIME type.
    """
    path = Path(file_path)
    mimetype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    payload = {
        "to": to_jid,
        "fileName": path.name,
        "mimetype": mimetype,
        "caption": caption,
        "data": base64.b64encode(path.read_bytes()).decode("ascii"),
    }
    response = await _post(line_id, "/messages/media", payload)
    return response.json() if response.content else {}
