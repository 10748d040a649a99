from __future__ import annotations

import math
from typing import List, Mapping, Optional

from metrics_engine.models.financials import TargetDirection
from metrics_engine.models.rocks import RockRecord
from metrics_engine.schemas.rocks import RockMonthStatus
from metrics_engine.schemas.targets import PerformanceStatus, PerformanceVerdict, ResolvedTarget

DEFAULT_CLOSE_THRESHOLD_PCT = 10.0


def variance_pct(actual: Optional[float], target: float) -> Optional[float]:
    """Percentage distance of ``actual`` from ``target``, relative to ``|target|``.

    A zero target has no scale, so any miss is infinitely far in its direction.
    """
    if actual is None:
        return None
    difference = actual - target
    if target == 0:
        if difference == 0:
            return 0.0
        return math.copysign(math.inf, difference)
    return difference / abs(target) * 100


def classify(
    actual: Optional[float],
    target: float,
    direction: TargetDirection,
    close_threshold_pct: float = DEFAULT_CLOSE_THRESHOLD_PCT,
) -> PerformanceStatus:
    if actual is None:
        return "pending"
    variance = variance_pct(actual, target)
    if direction == "above":
        if actual >= target:
            return "met"
        if variance >= -close_threshold_pct:
            return "close"
        return "missed"
    if direction == "below":
        if actual <= target:
            return "met"
        if variance <= close_threshold_pct:
            return "close"
        return "missed"
    raise ValueError(f"Unknown target direction: {direction!r}")


def build_verdict(
    actual: Optional[float],
    target: float,
    direction: TargetDirection,
    close_threshold_pct: float = DEFAULT_CLOSE_THRESHOLD_PCT,
) -> PerformanceVerdict:
    variance = variance_pct(actual, target)
    return PerformanceVerdict(
        actual=actual,
        target=target,
        direction=direction,
        variance_pct=round(variance, 4) if variance is not None and math.isfinite(variance) else None,
        status=classify(actual, target, direction, close_threshold_pct),
    )


def rock_month_statuses(
    rock: RockRecord,
    targets: Mapping[str, Optional[ResolvedTarget]],
    actuals: Mapping[str, Optional[float]],
    close_threshold_pct: float = DEFAULT_CLOSE_THRESHOLD_PCT,
) -> List[RockMonthStatus]:
    """Verdict for each month of a rock, in month order.

    ``targets`` holds the resolved target per month; a month without one is
    pending whatever its actual value. Unlinked rocks have no statuses.
    """
    if not rock.is_linked:
        return []
    statuses: List[RockMonthStatus] = []
    for month in sorted(targets):
        target = targets[month]
        actual = actuals.get(month)
        if target is None:
            statuses.append(RockMonthStatus(month=month, actual_value=actual, status="pending"))
            continue
        verdict = build_verdict(actual, target.value, target.direction, close_threshold_pct)
        statuses.append(
            RockMonthStatus(
                month=month,
                target_value=target.value,
                target_source=target.source,
                actual_value=actual,
                variance_pct=verdict.variance_pct,
                status=verdict.status,
            )
        )
    return statuses
