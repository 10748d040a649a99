from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from metrics_engine.analytics.cache import FinancialDataCache
from metrics_engine.analytics.metric_keys import (
    MalformedMetricKeyError,
    SubMetric,
    decode,
    encode,
)
from metrics_engine.analytics.performance import build_verdict, rock_month_statuses
from metrics_engine.analytics.targets import (
    TargetIndex,
    TargetResolver,
    find_rock_for_metric,
    find_rock_for_sub_metric,
    rock_metric_key,
)
from metrics_engine.core.config import get_settings
from metrics_engine.core.errors import BadRequestError
from metrics_engine.models.financials import FinancialTargetRecord, TargetDirection
from metrics_engine.models.rocks import RockRecord
from metrics_engine.repositories.financials_repository import FinancialsRepository
from metrics_engine.repositories.rocks_repository import RocksRepository
from metrics_engine.schemas.rocks import RockTargetStatus
from metrics_engine.schemas.targets import (
    PerformanceVerdict,
    QuarterRollup,
    SavedTarget,
    SubMetricTargetUpsertRequest,
    TargetResolution,
    TargetUpsertRequest,
)
from metrics_engine.services.metrics_service import MetricsService
from metrics_engine.shared.periods import months_in_quarter, quarter_of_month, validate_quarter

logger = logging.getLogger(__name__)


class TargetsService:
    def __init__(
        self,
        repository: FinancialsRepository,
        rocks_repository: RocksRepository,
        metrics_service: MetricsService,
        cache: FinancialDataCache,
    ) -> None:
        self.repository = repository
        self.rocks_repository = rocks_repository
        self.metrics_service = metrics_service
        self.cache = cache
        self.settings = get_settings()

    def _resolver(
        self,
        department_id: str,
        year: int,
        targets: Iterable[FinancialTargetRecord],
    ) -> TargetResolver:
        forecasts = {}
        if self.settings.forecast_fallback_enabled:
            forecasts[department_id] = self.cache.get_forecast_entries(
                department_id, year, self.repository.list_forecast_entries
            )
        return TargetResolver(
            TargetIndex.from_rows(targets, forecasts),
            forecast_fallback=self.settings.forecast_fallback_enabled,
        )

    def resolve_quarter(
        self,
        department_id: str,
        metric_key: str,
        quarter: int,
        year: int,
        direction: Optional[TargetDirection] = None,
        rollup: QuarterRollup = "sum",
    ) -> TargetResolution:
        self._validate_metric_key(metric_key)
        validate_quarter(quarter)
        targets = self.repository.list_financial_targets(department_id, year, quarter)
        resolver = self._resolver(department_id, year, targets)
        target = resolver.resolve_quarter(
            department_id, metric_key, quarter, year, direction=direction, rollup=rollup
        )
        return TargetResolution(
            department_id=department_id,
            metric_key=metric_key,
            period=f"Q{quarter} {year}",
            target=target,
        )

    def resolve_month(
        self,
        department_id: str,
        metric_key: str,
        month: str,
        direction: Optional[TargetDirection] = None,
    ) -> TargetResolution:
        key = self._validate_metric_key(metric_key)
        quarter, year = quarter_of_month(month)
        targets = self.repository.list_financial_targets(department_id, year, quarter)
        rocks = self.rocks_repository.list_linked_rocks(department_id, year, quarter)
        if isinstance(key, SubMetric):
            rock = find_rock_for_sub_metric(rocks, key.parent_key, key.name)
        else:
            rock = find_rock_for_metric(rocks, metric_key)
        resolver = self._resolver(department_id, year, targets)
        target = resolver.resolve_month(
            department_id, metric_key, month, direction=direction, rock=rock
        )
        return TargetResolution(
            department_id=department_id,
            metric_key=metric_key,
            period=month,
            target=target,
        )

    def upsert_target(self, request: TargetUpsertRequest) -> SavedTarget:
        self._validate_metric_key(request.metric_key)
        return self._save_target(
            request.department_id,
            request.metric_key,
            request.quarter,
            request.year,
            request.target_value,
            request.target_direction,
        )

    def upsert_sub_metric_target(self, request: SubMetricTargetUpsertRequest) -> SavedTarget:
        try:
            metric_key = encode(
                request.parent_metric_key, request.order_index, request.sub_metric_name
            )
        except (TypeError, ValueError) as exc:
            raise BadRequestError(str(exc)) from exc
        return self._save_target(
            request.department_id,
            metric_key,
            request.quarter,
            request.year,
            request.target_value,
            request.target_direction,
        )

    def _save_target(
        self,
        department_id: str,
        metric_key: str,
        quarter: int,
        year: int,
        value: float,
        direction: TargetDirection,
    ) -> SavedTarget:
        record = self.repository.upsert_target(
            department_id, metric_key, quarter, year, value, direction
        )
        logger.info(
            "Saved %s target for department %s Q%s %s", metric_key, department_id, quarter, year
        )
        return SavedTarget(
            department_id=record.department_id,
            metric_key=record.metric_name,
            quarter=record.quarter,
            year=record.year,
            target_value=record.target_value,
            target_direction=record.target_direction,
        )

    def get_rock_statuses(
        self, department_id: str, quarter: int, year: int
    ) -> List[RockTargetStatus]:
        validate_quarter(quarter)
        months = months_in_quarter(quarter, year)
        rocks = self.rocks_repository.list_linked_rocks(department_id, year, quarter)
        if not rocks:
            return []
        targets = self.repository.list_financial_targets(department_id, year, quarter)
        resolver = self._resolver(department_id, year, targets)
        threshold = self.settings.performance_close_threshold_pct

        statuses: List[RockTargetStatus] = []
        for rock in rocks:
            metric_key = rock_metric_key(rock)
            if metric_key is None:
                logger.debug("Rock %s has an incomplete metric link", rock.id)
                continue
            actuals = self.metrics_service.get_department_actuals(department_id, metric_key, months)
            statuses.append(
                self._rock_status(
                    rock,
                    metric_key,
                    rock_month_statuses(
                        rock, resolver.resolve_rock_months(rock, months), actuals, threshold
                    ),
                )
            )
        return statuses

    @staticmethod
    def _rock_status(rock: RockRecord, metric_key: str, months) -> RockTargetStatus:
        return RockTargetStatus(
            rock_id=rock.id,
            title=rock.title,
            quarter=rock.quarter,
            year=rock.year,
            metric_key=metric_key,
            direction=rock.target_direction,
            progress_percentage=rock.progress_percentage,
            months=months,
        )

    def classify(
        self, actual: Optional[float], target: float, direction: TargetDirection
    ) -> PerformanceVerdict:
        return build_verdict(
            actual, target, direction, self.settings.performance_close_threshold_pct
        )

    @staticmethod
    def _validate_metric_key(metric_key: str):
        try:
            return decode(metric_key)
        except MalformedMetricKeyError as exc:
            raise BadRequestError(str(exc), details={"metricKey": metric_key}) from exc

