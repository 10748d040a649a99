from __future__ import annotations

from functools import lru_cache

from metrics_engine.analytics.cache import FinancialDataCache
from metrics_engine.repositories.financials_repository import FinancialsRepository
from metrics_engine.repositories.payplans_repository import PayplansRepository
from metrics_engine.repositories.rocks_repository import RocksRepository
from metrics_engine.services.metrics_service import MetricsService
from metrics_engine.services.payplan_service import PayplanService
from metrics_engine.services.targets_service import TargetsService


@lru_cache
def get_financial_data_cache() -> FinancialDataCache:
    return FinancialDataCache()


@lru_cache
def get_financials_repository() -> FinancialsRepository:
    return FinancialsRepository()


@lru_cache
def get_rocks_repository() -> RocksRepository:
    return RocksRepository()


@lru_cache
def get_payplans_repository() -> PayplansRepository:
    return PayplansRepository()


def get_metrics_service() -> MetricsService:
    return MetricsService(
        repository=get_financials_repository(),
        cache=get_financial_data_cache(),
    )


def get_payplan_service() -> PayplanService:
    return PayplanService(
        repository=get_payplans_repository(),
        metrics_service=get_metrics_service(),
    )


def get_targets_service() -> TargetsService:
    return TargetsService(
        repository=get_financials_repository(),
        rocks_repository=get_rocks_repository(),
        metrics_service=get_metrics_service(),
        cache=get_financial_data_cache(),
    )
