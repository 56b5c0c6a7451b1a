"""Tests for relevant date intervals and their serialized form."""

import json
from datetime import datetime, timezone

from passkit.app.schemas.pass_document import Pass, RelevantDate

from passkit.tests.conftest import build_valid_pass


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_relevant_date_is_earliest_start(valid_pass):
    valid_pass.set_relevant_dates(
        [
            RelevantDate(start_date=_utc(2025, 6, 20, 12, 0, 0)),
            RelevantDate(start_date=_utc(2025, 6, 19, 1, 23, 45)),
            RelevantDate(
                start_date=_utc(2025, 6, 21, 8, 0, 0),
                end_date=_utc(2025, 6, 21, 23, 0, 0),
            ),
        ]
    )

    assert valid_pass.relevant_date == _utc(2025, 6, 19, 1, 23, 45)

    payload = json.loads(valid_pass.to_json())
    assert payload["relevantDate"] == "2025-06-19T01:23:45Z"


def test_relevant_date_derived_at_construction():
    document = Pass(
        relevant_dates=[
            {"relevantDate": "2025-06-20T00:00:00Z"},
            {"startDate": "2025-06-19T01:23:45Z", "endDate": "2025-06-19T05:00:00Z"},
        ]
    )

    assert document.relevant_date == _utc(2025, 6, 19, 1, 23, 45)


def test_start_only_entry_serializes_as_relevant_date():
    entry = RelevantDate(start_date=_utc(2025, 6, 19, 1, 23, 45))

    assert json.loads(entry.to_json()) == {"relevantDate": "2025-06-19T01:23:45Z"}


def test_window_entry_serializes_start_and_end():
    entry = RelevantDate(
        start_date=_utc(2025, 6, 19, 1, 23, 45),
        end_date=_utc(2025, 6, 19, 3, 0, 0),
    )

    assert json.loads(entry.to_json()) == {
        "startDate": "2025-06-19T01:23:45Z",
        "endDate": "2025-06-19T03:00:00Z",
    }


def test_entries_nest_in_pass_json(valid_pass):
    valid_pass.set_relevant_dates(
        [RelevantDate(start_date=_utc(2025, 6, 19, 1, 23, 45))]
    )

    payload = json.loads(valid_pass.to_json())

    assert payload["relevantDates"] == [{"relevantDate": "2025-06-19T01:23:45Z"}]


def test_entry_without_start_is_invalid():
    document = build_valid_pass()
    document.set_relevant_dates([RelevantDate(end_date=_utc(2025, 6, 19))])

    assert document.relevant_date is None
    assert document.get_validation_errors() == [
        "RelevantDate requires a startDate"
    ]


def test_naive_timestamps_are_treated_as_utc():
    entry = RelevantDate(start_date=datetime(2025, 6, 19, 1, 23, 45))

    assert entry.start_date.tzinfo is not None
    assert json.loads(entry.to_json()) == {"relevantDate": "2025-06-19T01:23:45Z"}
