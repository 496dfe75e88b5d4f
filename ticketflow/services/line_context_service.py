"""Service to load LineContext from database."""

import re
from typing import Dict, FrozenSet, Optional

from sqlalchemy import text

from ticketflow.infra.database import get_db_session
from ticketflow.models.tenant import LineContext

_TRUTHY = {"enabled", "true", "1", "yes", "on"}


def setting_enabled(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() in _TRUTHY


def parse_allow_list(value: Optional[str]) -> FrozenSet[str]:
    """Comma separated numbers; only their digits are kept."""
    if not value:
        return frozenset()
    numbers = (re.sub(r"\D", "", part) for part in value.split(","))
    return frozenset(number for number in numbers if number)


def load_line_context(tenant_id: int, line_id: int) -> LineContext:
    """
    Load the LineContext for one protocol line.

    Loads:
    - Line number and greeting configuration
    - Number of queues attached to the line
    - Tenant settings (group blocking, transcription, greeting allow-list)
    """
    with get_db_session(tenant_id) as session:
        line_row = session.execute(
            text("""
                SELECT id, number, greeting_message, greeting_media_path
                FROM lines
                WHERE id = :line_id AND tenant_id = :tenant_id
            """),
            {"line_id": line_id, "tenant_id": tenant_id},
        ).fetchone()

        if not line_row:
            raise ValueError(f"Line {line_id} not found for tenant {tenant_id}")

        queue_count = session.execute(
            text("SELECT COUNT(*) FROM line_queues WHERE line_id = :line_id"),
            {"line_id": line_id},
        ).scalar() or 0

        setting_rows = session.execute(
            text("SELECT key, value FROM tenant_settings WHERE tenant_id = :tenant_id"),
            {"tenant_id": tenant_id},
        ).fetchall()

    settings: Dict[str, Optional[str]] = {row.key: row.value for row in setting_rows}

    return LineContext(
        tenant_id=tenant_id,
        line_id=line_id,
        line_number=re.sub(r"\D", "", line_row.number or "") or None,
        queue_count=int(queue_count),
        greeting_message=line_row.greeting_message or None,
        greeting_media_path=line_row.greeting_media_path or None,
        block_group_messages=setting_enabled(settings.get("block_group_messages")),
        audio_transcription=setting_enabled(settings.get("audio_transcription")),
        openai_api_key=settings.get("openai_api_key") or None,
        greeting_allow_list=parse_allow_list(settings.get("greeting_allow_list")),
    )
