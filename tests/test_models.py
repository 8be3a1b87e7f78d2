"""Tests for row <-> record helpers."""

from datetime import datetime, timezone

from answer_board.models import (
    is_published, last_modified_at, mask_email, parse_config, record_from_row, record_to_row,
)

HEADERS = ["userId", "adminEmail", "isActive", "configJson", "lastModified"]


def test_record_from_row_coerces_active_flag() -> None:
    rec = record_from_row(HEADERS, ["U1", "a@x.com", "true", "{}", ""])
    assert rec["isActive"] is True
    assert record_from_row(HEADERS, ["U1", "a@x.com", "FALSE"])["isActive"] is False


def test_record_from_row_skips_blank_headers() -> None:
    assert record_from_row(["userId", "", "note"], ["U1", "x", "hi"]) == {"userId": "U1", "note": "hi"}


def test_record_to_row_serializes_values() -> None:
    row = record_to_row(HEADERS, {"userId": "U1", "isActive": False, "configJson": {"a": 1}, "lastModified": None})
    assert row == ["U1", "", "FALSE", '{"a": 1}', ""]


def test_parse_config_tolerates_bad_blobs() -> None:
    assert parse_config({"configJson": '{"isPublished": true}'}) == {"isPublished": True}
    assert parse_config({"configJson": "[1, 2]"}) == {}
    assert parse_config({"configJson": "{oops"}) == {}
    assert parse_config({"configJson": {"x": 1}}) == {"x": 1}
    assert parse_config(None) == {}
    assert is_published({"configJson": '{"isPublished": true}'}) is True


def test_last_modified_at_parses_iso_and_sheet_dates() -> None:
    assert last_modified_at({"lastModified": "2024-05-01T12:00:00+00:00"}) == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert last_modified_at({"lastModified": "5/1/2024 12:00:00"}) == datetime(2024, 5, 1, 12)
    assert last_modified_at({"lastModified": "not a date"}) is None
    assert last_modified_at({}) is None


def test_mask_email() -> None:
    assert mask_email("teacher@school.edu") == "teacher@***"
    assert mask_email(None) == "N/A"
