"""Line context model for runtime tenant configuration."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional


@dataclass
class LineContext:
    """Runtime context for one protocol line with its tenant settings loaded."""
    tenant_id: int
    line_id: int
    line_number: Optional[str] = None  # digits of the line's own number
    queue_count: int = 0  # queues attached to the line
    greeting_message: Optional[str] = None
    greeting_media_path: Optional[str] = None
    block_group_messages: bool = False
    audio_transcription: bool = False
    openai_api_key: Optional[str] = None  # tenant key, falls back to config
    greeting_allow_list: FrozenSet[str] = field(default_factory=frozenset)  # digits exempt from the group rule
