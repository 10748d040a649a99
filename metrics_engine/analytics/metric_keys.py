"""Codec for the flat ``sub:`` metric key encoding.

Financial entries, targets and forecasts store sub-metrics (line items nested
under a parent metric) in the same ``metric_name`` column as ordinary metrics:

    sub:{parent_key}:{order_index}:{name}    current writers
    sub:{parent_key}:{name}                  legacy rows, no order index

Statement imports write the order index zero-padded (``004``) while target
saves write it bare (``4``). Both decode to the same index. Everything after
the last structural colon is the name, so names may contain ``:`` themselves.
Nothing outside this module should split these strings.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

SUB_METRIC_PREFIX = "sub:"
# Legacy keys carry no order index and sort after every indexed sibling.
LEGACY_ORDER_INDEX = 999

MetricIdentity = Tuple[str, ...]


class MalformedMetricKeyError(ValueError):
    def __init__(self, raw: str) -> None:
        super().__init__(f"Malformed sub-metric key: {raw!r}")
        self.raw = raw


class PlainMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str

    @property
    def identity(self) -> MetricIdentity:
        return ("metric", self.name)


class SubMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    parent_key: str
    order_index: Optional[int] = None
    name: str

    @property
    def identity(self) -> MetricIdentity:
        return ("submetric", self.parent_key, self.name)

    @property
    def sort_index(self) -> int:
        return LEGACY_ORDER_INDEX if self.order_index is None else self.order_index


MetricKey = Union[PlainMetric, SubMetric]


def _require_str(raw: object) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"Metric key must be a string, got {type(raw).__name__}")
    return raw


def is_sub_metric_key(raw: str) -> bool:
    return _require_str(raw).startswith(SUB_METRIC_PREFIX)


def decode(raw: str) -> MetricKey:
    if not is_sub_metric_key(raw):
        return PlainMetric(name=raw)

    parts = raw.split(":")
    if len(parts) >= 4:
        order_segment = parts[2]
        order_index = int(order_segment) if order_segment.isdigit() else None
        return SubMetric(parent_key=parts[1], order_index=order_index, name=":".join(parts[3:]))
    if len(parts) == 3:
        return SubMetric(parent_key=parts[1], order_index=None, name=parts[2])
    raise MalformedMetricKeyError(raw)


def try_decode(raw: str) -> Optional[MetricKey]:
    try:
        return decode(raw)
    except MalformedMetricKeyError:
        logger.debug("Skipping malformed metric key %r", raw)
        return None


def sub_metric_prefix(parent_key: str) -> str:
    return f"{SUB_METRIC_PREFIX}{parent_key}:"


def encode(parent_key: str, order_index: Optional[int], name: str) -> str:
    """Key a target row is saved under: ``sub:{parent}:{index}:{name}``, index unpadded."""
    _require_str(parent_key)
    _require_str(name)
    index = LEGACY_ORDER_INDEX if order_index is None else order_index
    if index < 0:
        raise ValueError("Sub-metric order index must not be negative")
    return f"{sub_metric_prefix(parent_key)}{index}:{name}"


def metric_identity(raw: str) -> Optional[MetricIdentity]:
    """Identity used for matching: order index is presentation only."""
    key = try_decode(raw)
    return key.identity if key is not None else None


def sort_metric_keys(selected: Sequence[str], parent_order: Sequence[str]) -> List[str]:
    """Order selected keys so each parent is followed by its sub-metrics.

    ``parent_order`` is the canonical metric ordering (a brand's statement
    layout). Sub-metrics sort by order index, legacy keys last, then by name.
    Keys that match nothing in ``parent_order`` keep their relative order at
    the end.
    """
    selected_set = set(selected)
    subs_by_parent: Dict[str, List[Tuple[SubMetric, str]]] = {}
    for raw in selected:
        key = try_decode(raw)
        if isinstance(key, SubMetric):
            subs_by_parent.setdefault(key.parent_key, []).append((key, raw))

    ordered: List[str] = []
    placed: Set[str] = set()
    for parent in parent_order:
        if parent in selected_set and parent not in placed:
            ordered.append(parent)
            placed.add(parent)
        children = sorted(
            subs_by_parent.get(parent, []),
            key=lambda item: (item[0].sort_index, item[0].name),
        )
        for _, raw in children:
            if raw not in placed:
                ordered.append(raw)
                placed.add(raw)

    for raw in selected:
        if raw not in placed:
            ordered.append(raw)
            placed.add(raw)
    return ordered
