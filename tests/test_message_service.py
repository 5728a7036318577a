"""
Tests for message normalization, validation and storage helpers.
"""

import pytest

from app import message_service
from app.errors import MessageValidationError, StorageError


class TestNormalize:
    """Test whitespace normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("hello", "hello"),
        ("  hello   world ", "hello world"),
        ("\thello\n\nworld\r\n", "hello world"),
        ("a   b", "a b"),
        ("", ""),
        ("   ", ""),
    ])
    def test_normalize(self, raw, expected):
        assert message_service.normalize(raw) == expected

    @pytest.mark.parametrize("raw", [None, 42, ["hello"], {"text": "hello"}])
    def test_non_string_becomes_empty(self, raw):
        assert message_service.normalize(raw) == ""

    @pytest.mark.parametrize("raw", [
        "  spaced   out  ",
        "tabs\tand\nnewlines",
        "already normal",
        "\u2003em\u2003space\u00a0",
    ])
    def test_idempotent(self, raw):
        once = message_service.normalize(raw)
        assert message_service.normalize(once) == once


class TestValidate:
    """Test the 1-50 character rule."""

    @pytest.mark.parametrize("text", ["a", "x" * 50, "hello world"])
    def test_valid(self, text):
        message_service.validate(text)

    @pytest.mark.parametrize("text", ["", "x" * 51])
    def test_invalid(self, text):
        with pytest.raises(MessageValidationError) as exc_info:
            message_service.validate(text)

        assert exc_info.value.error == "Text must be 1-50 chars"
        assert exc_info.value.status_code == 400


class TestStorage:
    """Test create and list_recent against the database."""

    def test_create_returns_increasing_ids(self, db_session):
        first = message_service.create(db_session, "first", 1_000)
        second = message_service.create(db_session, "second", 2_000)

        assert second > first

    def test_list_recent_orders_by_created_at_desc(self, db_session):
        message_service.create(db_session, "old", 1_000)
        message_service.create(db_session, "newest", 3_000)
        message_service.create(db_session, "middle", 2_000)

        texts = [m.text for m in message_service.list_recent(db_session)]

        assert texts == ["newest", "middle", "old"]

    def test_list_recent_breaks_ties_by_id(self, db_session):
        message_service.create(db_session, "a", 1_000)
        message_service.create(db_session, "b", 1_000)

        texts = [m.text for m in message_service.list_recent(db_session)]

        assert texts == ["b", "a"]

    def test_list_recent_respects_limit(self, db_session):
        for i in range(15):
            message_service.create(db_session, f"m{i}", i)

        messages = message_service.list_recent(db_session, limit=10)

        assert len(messages) == 10
        assert messages[0].text == "m14"
        assert messages[-1].text == "m5"

    def test_database_error_becomes_storage_error(self, db_session):
        from app.models import Message
        from app.storage import engine

        Message.__table__.drop(bind=engine)

        with pytest.raises(StorageError) as exc_info:
            message_service.list_recent(db_session)

        assert exc_info.value.error == "Database error"
        assert exc_info.value.detail == "no such table: messages"
        assert "SELECT" not in exc_info.value.detail

    def test_session_usable_after_failed_insert(self, db_session):
        from app.models import Message
        from app.storage import engine

        Message.__table__.drop(bind=engine)
        with pytest.raises(StorageError):
            message_service.create(db_session, "lost", 1_000)

        Message.__table__.create(bind=engine)
        assert message_service.create(db_session, "kept", 2_000) >= 1
