from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from metrics_engine.core.supabase import Filters, SupabaseClient, in_filter
from metrics_engine.models.rocks import RockMonthlyTargetRecord, RockRecord

ROCK_ID_CHUNK_SIZE = 100


class RocksRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def list_linked_rocks(
        self,
        department_id: str,
        year: int,
        quarter: Optional[int] = None,
    ) -> List[RockRecord]:
        filters: Filters = [
            ("department_id", f"eq.{department_id}"),
            ("year", f"eq.{year}"),
            ("linked_metric_type", "not.is.null"),
        ]
        if quarter is not None:
            filters.append(("quarter", f"eq.{quarter}"))
        rows = self.client.select_all(
            table="rocks",
            select=(
                "id,department_id,year,quarter,title,description,linked_metric_type,"
                "linked_metric_key,linked_parent_metric_key,linked_submetric_name,"
                "target_direction,progress_percentage,status"
            ),
            filters=filters,
            order="quarter.asc,title.asc,id.asc",
        )
        rocks = [RockRecord.model_validate(row) for row in rows]
        if not rocks:
            return []
        targets = self.list_rock_monthly_targets([rock.id for rock in rocks])
        return [
            rock.model_copy(update={"monthly_targets": targets.get(rock.id, [])})
            for rock in rocks
        ]

    def list_rock_monthly_targets(
        self, rock_ids: Sequence[str]
    ) -> Dict[str, List[RockMonthlyTargetRecord]]:
        grouped: Dict[str, List[RockMonthlyTargetRecord]] = defaultdict(list)
        unique_ids = sorted({rock_id for rock_id in rock_ids if rock_id})
        for start in range(0, len(unique_ids), ROCK_ID_CHUNK_SIZE):
            chunk = unique_ids[start : start + ROCK_ID_CHUNK_SIZE]
            rows = self.client.select_all(
                table="rock_monthly_targets",
                select="id,rock_id,month,target_value",
                filters=[("rock_id", in_filter(chunk))],
                order="rock_id.asc,month.asc",
            )
            for row in rows:
                target = RockMonthlyTargetRecord.model_validate(row)
                grouped[target.rock_id].append(target)
        return grouped
