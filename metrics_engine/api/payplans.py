from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Header, Response

from metrics_engine.api.dependencies import get_payplan_service
from metrics_engine.core.errors import BadRequestError
from metrics_engine.schemas.payplans import (
    PayplanCalculationRequest,
    PayplanCalculationResponse,
    PayplanScenario,
    PayplanScenarioCreateRequest,
    PayplanScenarioUpdateRequest,
)
from metrics_engine.services.payplan_service import PayplanService
from metrics_engine.shared.response import ResponseEnvelope, build_meta


router = APIRouter(prefix="/payplans", tags=["payplans"])


def require_user_id(x_user_id: str = Header(default="")) -> str:
    user_id = x_user_id.strip()
    if not user_id:
        raise BadRequestError("Missing X-User-Id header")
    return user_id


@router.get("/scenarios")
def list_payplan_scenarios(
    user_id: str = Depends(require_user_id),
    service: PayplanService = Depends(get_payplan_service),
) -> ResponseEnvelope[List[PayplanScenario]]:
    data = service.list_scenarios(user_id)
    return ResponseEnvelope(data=data, meta=build_meta(source="payplan_scenarios"))


@router.get("/scenarios/{scenario_id}")
def get_payplan_scenario(
    scenario_id: str,
    user_id: str = Depends(require_user_id),
    service: PayplanService = Depends(get_payplan_service),
) -> ResponseEnvelope[PayplanScenario]:
    data = service.get_scenario(scenario_id, user_id)
    return ResponseEnvelope(data=data, meta=build_meta(source="payplan_scenarios"))


@router.post("/scenarios", status_code=201)
def create_payplan_scenario(
    request: PayplanScenarioCreateRequest,
    user_id: str = Depends(require_user_id),
    service: PayplanService = Depends(get_payplan_service),
) -> ResponseEnvelope[PayplanScenario]:
    data = service.create_scenario(user_id, request)
    return ResponseEnvelope(data=data, meta=build_meta(source="payplan_scenarios"))


@router.patch("/scenarios/{scenario_id}")
def update_payplan_scenario(
    scenario_id: str,
    request: PayplanScenarioUpdateRequest,
    user_id: str = Depends(require_user_id),
    service: PayplanService = Depends(get_payplan_service),
) -> ResponseEnvelope[PayplanScenario]:
    data = service.update_scenario(scenario_id, user_id, request)
    return ResponseEnvelope(data=data, meta=build_meta(source="payplan_scenarios"))


@router.delete("/scenarios/{scenario_id}", status_code=204)
def delete_payplan_scenario(
    scenario_id: str,
    user_id: str = Depends(require_user_id),
    service: PayplanService = Depends(get_payplan_service),
) -> Response:
    service.delete_scenario(scenario_id, user_id)
    return Response(status_code=204)


@router.post("/calculations")
def calculate_payplans(
    request: PayplanCalculationRequest,
    user_id: str = Depends(require_user_id),
    service: PayplanService = Depends(get_payplan_service),
) -> ResponseEnvelope[PayplanCalculationResponse]:
    data = service.calculate(user_id, request)
    period = f"{data.months[0]}..{data.months[-1]}" if data.months else ""
    return ResponseEnvelope(data=data, meta=build_meta(source="payplan_scenarios", period=period))
