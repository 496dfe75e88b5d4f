"""Tests for LineContext loading."""

import pytest

from conftest import LINE_ID, LINE_NUMBER, TENANT_ID, seed_line
from ticketflow.services.line_context_service import load_line_context, parse_allow_list, setting_enabled


class TestSettingParsers:
    """Test tenant setting parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("enabled", True),
        ("TRUE", True),
        (" on ", True),
        ("disabled", False),
        ("", False),
        (None, False),
    ])
    def test_setting_enabled(self, value, expected):
        assert setting_enabled(value) is expected

    def test_parse_allow_list(self):
        assert parse_allow_list("120363000000@g.us, +55 11 9999-0000,,") == frozenset({"120363000000", "551199990000"})
        assert parse_allow_list(None) == frozenset()


class TestLoadLineContext:
    """Test load_line_context against the database."""

    def test_loads_line_and_settings(self, db_engine):
        seed_line(
            db_engine,
            greeting_message="Hi {{name}}",
            settings={
                "block_group_messages": "enabled",
                "audio_transcription": "true",
                "openai_api_key": "sk-tenant",
                "greeting_allow_list": "120363000000",
            },
            queue_count=2,
        )

        line = load_line_context(TENANT_ID, LINE_ID)

        assert line.line_number == LINE_NUMBER
        assert line.queue_count == 2
        assert line.greeting_message == "Hi {{name}}"
        assert line.block_group_messages is True
        assert line.audio_transcription is True
        assert line.openai_api_key == "sk-tenant"
        assert line.greeting_allow_list == frozenset({"120363000000"})

    def test_defaults(self, db_engine):
        seed_line(db_engine)

        line = load_line_context(TENANT_ID, LINE_ID)

        assert line.queue_count == 0
        assert line.greeting_message is None
        assert line.block_group_messages is False
        assert line.audio_transcription is False

    def test_unknown_line(self, db_engine):
        seed_line(db_engine)
        with pytest.raises(ValueError):
            load_line_context(TENANT_ID, 99)
