from __future__ import annotations

HEADERS = {"X-User-Id": "user-1"}


def test_scenarios_require_user_header(client):
    response = client.get("/api/v1/payplans/scenarios")
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Missing X-User-Id header"


def test_list_and_get_scenarios(client):
    response = client.get("/api/v1/payplans/scenarios", headers=HEADERS)
    assert response.status_code == 200
    [scenario] = response.json()["data"]
    assert scenario["baseSalaryAnnual"] == 60000
    assert scenario["rules"][0]["sourceMetric"] == "labor_revenue"

    missing = client.get("/api/v1/payplans/scenarios/scenario-1", headers={"X-User-Id": "user-2"})
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"


def test_create_update_delete_scenario(client):
    created = client.post(
        "/api/v1/payplans/scenarios",
        headers=HEADERS,
        json={
            "name": "Parts Manager",
            "baseSalaryAnnual": 48000,
            "rules": [{"sourceMetric": "parts_gross", "rate": 0.05, "minThreshold": 1000}],
        },
    )
    assert created.status_code == 201
    scenario_id = created.json()["data"]["id"]

    toggled = client.patch(
        f"/api/v1/payplans/scenarios/{scenario_id}", headers=HEADERS, json={"isActive": False}
    )
    assert toggled.status_code == 200
    assert toggled.json()["data"]["isActive"] is False

    deleted = client.delete(f"/api/v1/payplans/scenarios/{scenario_id}", headers=HEADERS)
    assert deleted.status_code == 204


def test_rule_thresholds_are_validated(client):
    response = client.post(
        "/api/v1/payplans/scenarios",
        headers=HEADERS,
        json={"name": "Bad", "rules": [{"sourceMetric": "gp", "rate": 0.1, "minThreshold": 10, "maxThreshold": 1}]},
    )
    assert response.status_code == 422


def test_calculations(client):
    response = client.post(
        "/api/v1/payplans/calculations",
        headers=HEADERS,
        json={"storeIds": ["store-a"], "months": ["2026-03"]},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["rows"][0]["label"] == "↳ Advisor Commission (3.0%)"
    assert payload["data"]["rows"][0]["values"] == {"2026-03": 1200.0}
    assert payload["data"]["groups"][0]["sourceMetric"] == "labor_revenue"
    assert payload["meta"]["period"] == "2026-03..2026-03"
