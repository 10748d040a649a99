from __future__ import annotations

from typing import List
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from metrics_engine.core.supabase import SupabaseClient, in_filter


def _client(handler) -> SupabaseClient:
    client = SupabaseClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    client.page_size = 2
    return client


def test_select_all_pages_until_short_page() -> None:
    rows = [{"id": index} for index in range(5)]
    seen: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = parse_qs(urlsplit(str(request.url)).query)
        seen.append(params)
        offset = int(params["offset"][0])
        limit = int(params["limit"][0])
        return httpx.Response(200, json=rows[offset : offset + limit])

    result = _client(handler).select_all(
        table="financial_entries",
        select="department_id,metric_name",
        filters=[("month", "in.(2026-01,2026-02)")],
        order="month.asc,metric_name.asc",
    )
    assert result == rows
    assert [params["offset"][0] for params in seen] == ["0", "2", "4"]
    assert seen[0]["order"] == ["month.asc,metric_name.asc"]
    assert seen[0]["month"] == ["in.(2026-01,2026-02)"]


def test_select_all_stops_on_empty_page() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[{"id": 1}, {"id": 2}] if len(calls) == 1 else [])

    assert len(_client(handler).select_all(table="rocks", select="id")) == 2
    assert len(calls) == 2


def test_upsert_sends_conflict_target_and_prefer_header() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["prefer"] = request.headers.get("prefer")
        captured["apikey"] = request.headers.get("apikey")
        return httpx.Response(201, json=[{"id": "t-1"}])

    rows = _client(handler).insert(
        table="financial_targets",
        payload={"metric_name": "labor_revenue"},
        upsert=True,
        on_conflict="department_id,metric_name,quarter,year",
    )
    assert rows == [{"id": "t-1"}]
    assert "on_conflict=department_id%2Cmetric_name%2Cquarter%2Cyear" in captured["url"]
    assert captured["prefer"] == "resolution=merge-duplicates,return=representation"
    assert captured["apikey"] == "test-service-role-key"


def test_http_errors_propagate() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    with pytest.raises(httpx.HTTPStatusError):
        _client(handler).select(table="rocks", select="id")


def test_delete_requires_filters() -> None:
    with pytest.raises(ValueError):
        _client(lambda request: httpx.Response(200)).delete(table="payplan_scenarios", filters=[])


def test_in_filter_quotes_reserved_characters() -> None:
    assert in_filter(["a", "b"]) == "in.(a,b)"
    assert in_filter(["Body Shop", "x,y"]) == 'in.("Body Shop","x,y")'
