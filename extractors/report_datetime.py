from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from extractors.errors import DatePatternMismatchError, IntegerConversionError, ReportFormatError
from extractors.numerals import parse_digits

JST = timezone(timedelta(hours=9), "JST")

# e.g. "入院患者受入病床数等に関する調査結果（2022年11月30日0時5分時点）"
TITLE_DATETIME_PATTERN = re.compile(
    r"（(?P<year>[^（）]+?)年(?P<month>[^（）]+?)月(?P<day>[^（）]+?)日"
    r"(?P<hour>[^（）]+?)時(?:(?P<minute>[^（）]+?)分)?時点）$"
)
FILENAME_FORMAT = "%Y%m%dT%H%M%Z"


@dataclass(frozen=True)
class DateCapture:
    year: str
    month: str
    day: str
    hour: str
    minute: Optional[str]


def capture_datetime(title: str) -> Optional[DateCapture]:
    matched = TITLE_DATETIME_PATTERN.search(title)
    if not matched:
        return None
    return DateCapture(
        year=matched.group("year"),
        month=matched.group("month"),
        day=matched.group("day"),
        hour=matched.group("hour"),
        minute=matched.group("minute"),
    )


def parse_report_datetime(title: str) -> datetime:
    capture = capture_datetime(title)
    if capture is None:
        raise DatePatternMismatchError(title)
    year = parse_digits(capture.year)
    month = parse_digits(capture.month)
    day = parse_digits(capture.day)
    hour = parse_digits(capture.hour)
    minute = parse_digits(capture.minute) if capture.minute is not None else 0
    try:
        return datetime(year, month, day, hour, minute, tzinfo=JST)
    except ValueError as exc:
        raise IntegerConversionError(title, str(exc)) from exc


def extract_datetime(title: str) -> Optional[datetime]:
    try:
        return parse_report_datetime(title)
    except ReportFormatError:
        return None


def format_timestamp(value: datetime) -> str:
    return value.strftime(FILENAME_FORMAT)
