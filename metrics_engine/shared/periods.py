from __future__ import annotations

import re
from typing import Iterable, List, Tuple

from metrics_engine.core.errors import BadRequestError

_MONTH_ID_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month(month_id: str) -> Tuple[int, int]:
    match = _MONTH_ID_PATTERN.match(month_id or "")
    if not match:
        raise BadRequestError(f"Unsupported month identifier: {month_id!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise BadRequestError(f"Unsupported month identifier: {month_id!r}")
    return year, month


def month_id(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def validate_quarter(quarter: int) -> int:
    if quarter not in (1, 2, 3, 4):
        raise BadRequestError(f"Quarter must be between 1 and 4, got {quarter}")
    return quarter


def quarter_of_month(month: str) -> Tuple[int, int]:
    """Return ``(quarter, year)`` for a ``YYYY-MM`` identifier."""
    year, month_number = parse_month(month)
    return (month_number - 1) // 3 + 1, year


def months_in_quarter(quarter: int, year: int) -> List[str]:
    validate_quarter(quarter)
    first = (quarter - 1) * 3 + 1
    return [month_id(year, first + offset) for offset in range(3)]


def months_between(start: str, end: str) -> List[str]:
    """Inclusive list of month identifiers from ``start`` to ``end``."""
    year, month = parse_month(start)
    end_year, end_month = parse_month(end)
    if (year, month) > (end_year, end_month):
        raise BadRequestError("Start month must not be after end month")
    months: List[str] = []
    while (year, month) <= (end_year, end_month):
        months.append(month_id(year, month))
        year, month = _add_months(year, month, 1)
    return months


def normalize_months(months: Iterable[str]) -> List[str]:
    """Validate, de-duplicate and sort month identifiers."""
    unique = {month for month in months if month}
    for month in unique:
        parse_month(month)
    return sorted(unique)


def _add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    month_index = month - 1 + months
    return year + month_index // 12, month_index % 12 + 1
