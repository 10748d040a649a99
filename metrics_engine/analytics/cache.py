from __future__ import annotations

import logging
from collections import defaultdict
from threading import Lock
from typing import Callable, Dict, List, Sequence, Set, Tuple

from metrics_engine.models.financials import FinancialEntryRecord, ForecastEntryRecord
from metrics_engine.schemas.metrics import FinancialChangeEvent

logger = logging.getLogger(__name__)

EntryLoader = Callable[[List[str], List[str]], List[FinancialEntryRecord]]
ForecastLoader = Callable[[str, int], List[ForecastEntryRecord]]


class FinancialDataCache:
    """Fetched financial rows, kept until a department is explicitly refreshed.

    Change notifications never patch cached rows. They drop the department and
    the next read reloads it from the source, so duplicated or out-of-order
    notifications cannot leave the cache inconsistent. A load that started
    before a refresh is discarded instead of being stored.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: Dict[Tuple[str, str], List[FinancialEntryRecord]] = {}
        self._forecasts: Dict[Tuple[str, int], List[ForecastEntryRecord]] = {}
        self._generations: Dict[str, int] = defaultdict(int)

    def get_entries(
        self,
        department_ids: Sequence[str],
        months: Sequence[str],
        loader: EntryLoader,
    ) -> List[FinancialEntryRecord]:
        rows: List[FinancialEntryRecord] = []
        missing: Set[Tuple[str, str]] = set()
        with self._lock:
            for department_id in department_ids:
                for month in months:
                    cached = self._entries.get((department_id, month))
                    if cached is None:
                        missing.add((department_id, month))
                    else:
                        rows.extend(cached)
            generations = {department_id: self._generations[department_id] for department_id in department_ids}
        if not missing:
            return rows

        missing_departments = sorted({department_id for department_id, _ in missing})
        missing_months = sorted({month for _, month in missing})
        grouped: Dict[Tuple[str, str], List[FinancialEntryRecord]] = {pair: [] for pair in missing}
        for entry in loader(missing_departments, missing_months):
            pair = (entry.department_id, entry.month)
            if pair in grouped:
                grouped[pair].append(entry)

        with self._lock:
            for (department_id, month), loaded in grouped.items():
                if self._generations[department_id] != generations[department_id]:
                    # refreshed while loading; serve the rows but don't keep them
                    continue
                self._entries[(department_id, month)] = loaded
        logger.debug("Loaded %d department-months of financial entries", len(grouped))

        for loaded in grouped.values():
            rows.extend(loaded)
        return rows

    def get_forecast_entries(
        self, department_id: str, year: int, loader: ForecastLoader
    ) -> List[ForecastEntryRecord]:
        with self._lock:
            cached = self._forecasts.get((department_id, year))
            generation = self._generations[department_id]
        if cached is not None:
            return cached
        loaded = loader(department_id, year)
        with self._lock:
            if self._generations[department_id] == generation:
                self._forecasts[(department_id, year)] = loaded
        return loaded

    def refresh(self, department_id: str) -> None:
        with self._lock:
            self._generations[department_id] += 1
            self._entries = {
                key: value for key, value in self._entries.items() if key[0] != department_id
            }
            self._forecasts = {
                key: value for key, value in self._forecasts.items() if key[0] != department_id
            }
        logger.info("Refreshed cached financial data for department %s", department_id)

    def refresh_all(self) -> None:
        with self._lock:
            for department_id in set(self._generations) | {key[0] for key in self._entries}:
                self._generations[department_id] += 1
            self._entries = {}
            self._forecasts = {}
        logger.info("Refreshed all cached financial data")

    def handle_change(self, event: FinancialChangeEvent) -> str:
        logger.debug(
            "Financial change %s for department %s (%s, %s)",
            event.event_type,
            event.department_id,
            event.metric_name,
            event.month,
        )
        self.refresh(event.department_id)
        return event.department_id

    def cached_departments(self) -> Set[str]:
        with self._lock:
            return {key[0] for key in self._entries} | {key[0] for key in self._forecasts}
