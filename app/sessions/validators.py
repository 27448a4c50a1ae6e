"""Validation logic for session scheduling"""
from datetime import datetime, timedelta
from pathlib import PurePosixPath
from typing import List, Optional

from app.config import settings
from app.core.exceptions import ValidationException
from app.utils.timezone import to_naive_utc


class SessionValidator:
    """Validates scheduling input for single sessions and packages"""

    def __init__(self, max_package_size: Optional[int] = None, interval_days: Optional[int] = None):
        self.max_package_size = max_package_size or settings.max_package_size
        self.interval_days = interval_days or settings.package_interval_days

    def resolve_dates(
        self,
        now: datetime,
        date: Optional[datetime] = None,
        dates: Optional[List[datetime]] = None,
        count: Optional[int] = None,
    ) -> List[datetime]:
        """
        Turn the scheduling input into the list of session dates.

        - ``dates``: used as given; ``count`` must match its length if also given
        - ``date`` + ``count > 1``: ``count`` sessions, ``interval_days`` apart
        - ``date`` alone: one session

        All dates must be in the future and the package size is capped.
        """
        if count is not None and count < 1:
            raise ValidationException("count must be at least 1")

        if dates is not None:
            if len(dates) == 0:
                raise ValidationException("Dates array cannot be empty")
            if count is not None and len(dates) != count:
                raise ValidationException("Count does not match dates array length")
            session_dates = [to_naive_utc(d) for d in dates]
        elif date is not None:
            start = to_naive_utc(date)
            total = count or 1
            if total > self.max_package_size:
                raise ValidationException(f"Maximum package size is {self.max_package_size} sessions")
            session_dates = [start + timedelta(days=i * self.interval_days) for i in range(total)]
        else:
            raise ValidationException("date, dates, or count is required")

        if len(session_dates) > self.max_package_size:
            raise ValidationException(f"Maximum package size is {self.max_package_size} sessions")
        if any(d < now for d in session_dates):
            raise ValidationException("All session dates must be in the future")
        return session_dates

    def validate_new_date(self, now: datetime, date: datetime) -> datetime:
        date = to_naive_utc(date)
        if date < now:
            raise ValidationException("Session date cannot be in the past")
        return date

    def validate_text(self, value: Optional[str], field: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValidationException(f"{field} cannot be empty")
        return value

    def validate_file_path(self, value: Optional[str]) -> str:
        """Stored paths are relative to the uploads directory and may not climb out of it"""
        value = self.validate_text(value, "File path").replace("\\", "/")
        path = PurePosixPath(value)
        if path.is_absolute() or ".." in path.parts:
            raise ValidationException("File path must be relative to the uploads directory")
        return str(path)
