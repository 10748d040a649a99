from __future__ import annotations

from datetime import date
from typing import Generic, Optional, TypeVar

from metrics_engine.shared.base import BaseSchema


T = TypeVar("T")

CALCULATION_VERSION = "v1"


class Meta(BaseSchema):
    as_of_date: str
    source: str
    period: str
    calculation_version: str = CALCULATION_VERSION
    department_id: Optional[str] = None
    data_status: Optional[str] = None


class ResponseEnvelope(BaseSchema, Generic[T]):
    data: T
    meta: Optional[Meta] = None


def build_meta(
    source: str,
    period: str = "",
    department_id: Optional[str] = None,
    data_status: Optional[str] = None,
) -> Meta:
    return Meta(
        as_of_date=date.today().isoformat(),
        source=source,
        period=period,
        department_id=department_id,
        data_status=data_status,
    )

