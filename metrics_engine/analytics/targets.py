from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from metrics_engine.analytics.metric_keys import (
    MetricIdentity,
    encode,
    metric_identity,
)
from metrics_engine.models.financials import (
    FinancialTargetRecord,
    ForecastEntryRecord,
    TargetDirection,
)
from metrics_engine.models.rocks import RockRecord
from metrics_engine.schemas.targets import QuarterRollup, ResolvedTarget
from metrics_engine.shared.periods import months_in_quarter, quarter_of_month

DEFAULT_DIRECTION: TargetDirection = "above"

TargetKey = Tuple[str, MetricIdentity, int, int]
ForecastKey = Tuple[str, MetricIdentity, str]


def rock_metric_key(rock: RockRecord) -> Optional[str]:
    """Encoded metric key a linked rock tracks; ``None`` for unlinked rocks."""
    if rock.linked_metric_type == "metric":
        return rock.linked_metric_key or None
    if rock.linked_metric_type == "submetric":
        if not rock.linked_parent_metric_key or not rock.linked_submetric_name:
            return None
        # order index is not stored on rocks and is ignored when matching
        return encode(rock.linked_parent_metric_key, None, rock.linked_submetric_name)
    return None


def find_rock_for_metric(rocks: Iterable[RockRecord], metric_key: str) -> Optional[RockRecord]:
    for rock in rocks:
        if rock.linked_metric_type == "metric" and rock.linked_metric_key == metric_key:
            return rock
    return None


def find_rock_for_sub_metric(
    rocks: Iterable[RockRecord], parent_key: str, sub_metric_name: str
) -> Optional[RockRecord]:
    for rock in rocks:
        if (
            rock.linked_metric_type == "submetric"
            and rock.linked_parent_metric_key == parent_key
            and rock.linked_submetric_name == sub_metric_name
        ):
            return rock
    return None


class TargetIndex:
    """Explicit targets and forecast values keyed by normalized metric identity.

    Several target rows can share an identity when the same sub-metric was
    saved under differently formatted keys (``004`` and ``4``, or a legacy key
    with no index). Lookups prefer the row whose ``metric_name`` equals the
    requested key, then the most recently updated row.
    """

    def __init__(self) -> None:
        self._targets: Dict[TargetKey, List[FinancialTargetRecord]] = {}
        self._forecasts: Dict[ForecastKey, float] = {}

    @classmethod
    def from_rows(
        cls,
        targets: Iterable[FinancialTargetRecord] = (),
        forecasts: Optional[Mapping[str, Iterable[ForecastEntryRecord]]] = None,
    ) -> "TargetIndex":
        index = cls()
        index.add_targets(targets)
        for department_id, entries in (forecasts or {}).items():
            index.add_forecast_entries(department_id, entries)
        return index

    def add_targets(self, targets: Iterable[FinancialTargetRecord]) -> None:
        for target in targets:
            identity = metric_identity(target.metric_name)
            if identity is None:
                continue
            key = (target.department_id, identity, target.quarter, target.year)
            self._targets.setdefault(key, []).append(target)

    def add_forecast_entries(
        self, department_id: str, entries: Iterable[ForecastEntryRecord]
    ) -> None:
        for entry in entries:
            if entry.forecast_value is None:
                continue
            identity = metric_identity(entry.metric_name)
            if identity is None:
                continue
            self._forecasts[(department_id, identity, entry.month)] = entry.forecast_value

    def target_for(
        self,
        department_id: str,
        identity: MetricIdentity,
        quarter: int,
        year: int,
        metric_key: Optional[str] = None,
    ) -> Optional[FinancialTargetRecord]:
        candidates = self._targets.get((department_id, identity, quarter, year))
        if not candidates:
            return None
        if metric_key is not None:
            for candidate in candidates:
                if candidate.metric_name == metric_key:
                    return candidate
        return max(candidates, key=_recency)

    def forecast_for(
        self, department_id: str, identity: MetricIdentity, month: str
    ) -> Optional[float]:
        return self._forecasts.get((department_id, identity, month))


def _recency(target: FinancialTargetRecord) -> Tuple[bool, float, str]:
    # rows without a timestamp lose to any stamped row; name breaks ties
    stamp = target.updated_at.timestamp() if target.updated_at is not None else 0.0
    return (target.updated_at is not None, stamp, target.metric_name)


class TargetResolver:
    def __init__(self, index: TargetIndex, forecast_fallback: bool = True) -> None:
        self.index = index
        self.forecast_fallback = forecast_fallback

    def resolve_quarter(
        self,
        department_id: str,
        metric_key: str,
        quarter: int,
        year: int,
        direction: Optional[TargetDirection] = None,
        rollup: QuarterRollup = "sum",
    ) -> Optional[ResolvedTarget]:
        identity = metric_identity(metric_key)
        if identity is None:
            return None
        explicit = self.index.target_for(
            department_id, identity, quarter, year, metric_key=metric_key
        )
        if explicit is not None:
            return ResolvedTarget(
                value=explicit.target_value,
                direction=explicit.target_direction,
                source="manual",
            )
        if not self.forecast_fallback:
            return None

        values: List[float] = []
        for month in months_in_quarter(quarter, year):
            value = self.index.forecast_for(department_id, identity, month)
            if value is not None:
                values.append(value)
        if not values:
            return None
        total = sum(values)
        return ResolvedTarget(
            value=total / len(values) if rollup == "average" else total,
            direction=direction or DEFAULT_DIRECTION,
            source="forecast",
        )

    def resolve_month(
        self,
        department_id: str,
        metric_key: str,
        month: str,
        direction: Optional[TargetDirection] = None,
        rock: Optional[RockRecord] = None,
    ) -> Optional[ResolvedTarget]:
        identity = metric_identity(metric_key)
        if identity is None:
            return None

        if rock is not None and rock.is_linked:
            for monthly in rock.monthly_targets:
                if monthly.month == month:
                    return ResolvedTarget(
                        value=monthly.target_value,
                        direction=rock.target_direction,
                        source="manual",
                    )

        quarter, year = quarter_of_month(month)
        explicit = self.index.target_for(
            department_id, identity, quarter, year, metric_key=metric_key
        )
        if explicit is not None:
            return ResolvedTarget(
                value=explicit.target_value,
                direction=explicit.target_direction,
                source="manual",
            )
        if not self.forecast_fallback:
            return None

        forecast_value = self.index.forecast_for(department_id, identity, month)
        if forecast_value is None:
            return None
        if direction is None and rock is not None:
            direction = rock.target_direction
        return ResolvedTarget(
            value=forecast_value,
            direction=direction or DEFAULT_DIRECTION,
            source="forecast",
        )

    def resolve_rock_months(
        self, rock: RockRecord, months: Sequence[str]
    ) -> Dict[str, Optional[ResolvedTarget]]:
        metric_key = rock_metric_key(rock)
        if metric_key is None:
            return {}
        return {
            month: self.resolve_month(rock.department_id, metric_key, month, rock=rock)
            for month in months
        }

