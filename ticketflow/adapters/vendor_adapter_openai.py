"""OpenAI vendor adapter for audio transcription."""

import logging
from pathlib import Path
from typing import Optional

from openai import AsyncOpenAI

from ticketflow.infra.config import config
from ticketflow.infra.error_handler import TranscriptionError, retry_with_backoff

logger = logging.getLogger(__name__)


class OpenAITranscriptionClient:
    """Transcribes stored audio files with the OpenAI audio API."""

    def __init__(self):
        self._clients = {}

    def client_for(self, api_key: Optional[str] = None) -> AsyncOpenAI:
        """Lazy, per-key client; tenant keys take precedence over the process key."""
        key = api_key or config.OPENAI_API_KEY
        if not key:
            raise ValueError("OPENAI_API_KEY not configured")
        if key not in self._clients:
            self._clients[key] = AsyncOpenAI(api_key=key)
        return self._clients[key]

    async def transcribe(self, file_path: str, api_key: Optional[str] = None) -> str:
        """
        Transcribe an audio file.

        Args:
            file_path: Path to the stored audio file
            api_key: Tenant API key (falls back to OPENAI_API_KEY)

        Returns:
            Transcribed text

        Raises:
            TranscriptionError: If the API call fails or returns no text
        """
        client = self.client_for(api_key)
        path = Path(file_path)

        async def _call():
            with path.open("rb") as audio:
                return await client.audio.transcriptions.create(
                    model=config.OPENAI_TRANSCRIPTION_MODEL,
                    file=audio,
                )

        try:
            result = await retry_with_backoff(_call, max_retries=2, initial_delay=1.0, max_delay=10.0)
        except Exception as e:
            raise TranscriptionError(f"Transcription failed for {path.name}: {e}") from e

        text = getattr(result, "text", None)
        if not text or not text.strip():
            raise TranscriptionError(f"Transcription returned no text for {path.name}")
        return text.strip()


openai_transcription_client = OpenAITranscriptionClient()
