from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ValidationException
from app.sessions.validators import SessionValidator

NOW = datetime(2030, 1, 1, 9, 0)


@pytest.fixture
def validator():
    return SessionValidator(max_package_size=50, interval_days=7)


def test_single_date(validator):
    start = NOW + timedelta(days=1)
    assert validator.resolve_dates(NOW, date=start) == [start]


def test_date_and_count_generates_weekly_series(validator):
    start = NOW + timedelta(days=1)
    dates = validator.resolve_dates(NOW, date=start, count=3)
    assert dates == [start, start + timedelta(days=7), start + timedelta(days=14)]


def test_explicit_dates_must_match_count(validator):
    dates = [NOW + timedelta(days=1), NOW + timedelta(days=2)]
    assert validator.resolve_dates(NOW, dates=dates, count=2) == dates
    with pytest.raises(ValidationException, match="Count does not match"):
        validator.resolve_dates(NOW, dates=dates, count=3)


def test_empty_dates_rejected(validator):
    with pytest.raises(ValidationException, match="cannot be empty"):
        validator.resolve_dates(NOW, dates=[])


def test_missing_input_rejected(validator):
    with pytest.raises(ValidationException):
        validator.resolve_dates(NOW)


def test_past_dates_rejected(validator):
    with pytest.raises(ValidationException, match="future"):
        validator.resolve_dates(NOW, date=NOW - timedelta(minutes=1))
    with pytest.raises(ValidationException, match="future"):
        validator.resolve_dates(NOW, dates=[NOW + timedelta(days=1), NOW - timedelta(days=1)])


def test_package_size_is_capped(validator):
    with pytest.raises(ValidationException, match="Maximum package size"):
        validator.resolve_dates(NOW, date=NOW + timedelta(days=1), count=51)
    dates = [NOW + timedelta(days=i + 1) for i in range(51)]
    with pytest.raises(ValidationException, match="Maximum package size"):
        validator.resolve_dates(NOW, dates=dates)


def test_aware_dates_are_normalized_to_utc(validator):
    aware = datetime(2030, 1, 2, 10, 0, tzinfo=timezone(timedelta(hours=1)))
    assert validator.resolve_dates(NOW, date=aware) == [datetime(2030, 1, 2, 9, 0)]


def test_validate_text(validator):
    assert validator.validate_text("  hello ", "Question") == "hello"
    with pytest.raises(ValidationException, match="Question cannot be empty"):
        validator.validate_text("   ", "Question")
