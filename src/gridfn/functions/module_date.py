"""Date functions: DATE, YEAR, MONTH, DAY, EOMONTH.

Dates are spreadsheet serial numbers: days since 1899-12-30, so serial 1 is
1900-01-01.  Results carry an ``m/d/yyyy`` format hint.
"""

from __future__ import annotations

import calendar
import datetime
import math
from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError
from gridfn.functions.helpers import to_number, unwrap
from gridfn.values import Payload

_EPOCH = datetime.date(1899, 12, 30)
_MIN_DATE = datetime.date(1899, 12, 30)
DATE_FORMAT = "m/d/yyyy"


def to_serial(date: datetime.date) -> int:
    return (date - _EPOCH).days


def from_serial(serial: int | float) -> datetime.date:
    return _EPOCH + datetime.timedelta(days=math.trunc(serial))


def coerce_date(value: Any) -> datetime.date:
    """Convert a cell value to a date.

    Accepts:
    - datetime.date objects (returned as-is)
    - ISO format strings ("YYYY-MM-DD")
    - serial numbers (int or float)
    """
    value = unwrap(value)
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            pass
    serial = to_number(value)
    if serial < 0:
        raise EvaluationError(f"Invalid date serial number: {serial}")
    try:
        return from_serial(serial)
    except OverflowError:
        raise EvaluationError(f"Invalid date serial number: {serial}")


def _fn_date(ctx: Any, year: Any, month: Any, day: Any) -> Payload:
    """DATE(year, month, day) -- months and days overflow into the next unit."""
    y = math.trunc(to_number(year))
    m = math.trunc(to_number(month))
    d = math.trunc(to_number(day))
    if 0 <= y < 1900:
        y += 1900
    carry, month_index = divmod(m - 1, 12)
    y += carry
    if not 1 <= y <= 9999:
        raise EvaluationError("[[FUNCTION_NAME]] year is out of range.")
    first = datetime.date(y, month_index + 1, 1)
    try:
        result = first + datetime.timedelta(days=d - 1)
    except OverflowError:
        raise EvaluationError("[[FUNCTION_NAME]] result is out of range.")
    if result < _MIN_DATE:
        raise EvaluationError("[[FUNCTION_NAME]] result is before the first supported date.")
    return Payload(value=to_serial(result), format=DATE_FORMAT)


def _fn_year(ctx: Any, date: Any) -> int:
    return coerce_date(date).year


def _fn_month(ctx: Any, date: Any) -> int:
    return coerce_date(date).month


def _fn_day(ctx: Any, date: Any) -> int:
    return coerce_date(date).day


def _fn_eomonth(ctx: Any, start_date: Any, months: Any) -> Payload:
    """EOMONTH(start_date, months) -- last day of the month, offset by months.

    EOMONTH(DATE(2024,1,15), 1) is 2024-02-29.
    """
    start = coerce_date(start_date)
    total_months = (start.year * 12 + start.month - 1) + math.trunc(to_number(months))
    target_year, target_month = divmod(total_months, 12)
    target_month += 1
    if not 1 <= target_year <= 9999:
        raise EvaluationError("[[FUNCTION_NAME]] result is out of range.")
    last_day = calendar.monthrange(target_year, target_month)[1]
    return Payload(value=to_serial(datetime.date(target_year, target_month, last_day)), format=DATE_FORMAT)


DATE_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "DATE": FunctionDeclaration(
        description="Converts year/month/day into a date.",
        args=[
            arg("year (number)", "The year component of the date."),
            arg("month (number)", "The month component of the date."),
            arg("day (number)", "The day component of the date."),
        ],
        returns=["DATE"],
        compute=_fn_date,
    ),
    "YEAR": FunctionDeclaration(
        description="Year specified by a given date.",
        args=[arg("date (date)", "The date from which to extract the year.")],
        returns=["NUMBER"],
        compute=_fn_year,
    ),
    "MONTH": FunctionDeclaration(
        description="Month of the year a specific date falls in, in numeric format.",
        args=[arg("date (date)", "The date from which to extract the month.")],
        returns=["NUMBER"],
        compute=_fn_month,
    ),
    "DAY": FunctionDeclaration(
        description="Day of the month that a specific date falls on.",
        args=[arg("date (date)", "The date from which to extract the day.")],
        returns=["NUMBER"],
        compute=_fn_day,
    ),
    "EOMONTH": FunctionDeclaration(
        description="Last day of a month before or after a date.",
        args=[
            arg("start_date (date)", "The date from which to calculate the result."),
            arg("months (number)", "The number of months before (negative) or after (positive) start_date to consider."),
        ],
        returns=["DATE"],
        compute=_fn_eomonth,
    ),
}
