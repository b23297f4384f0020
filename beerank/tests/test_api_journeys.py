"""
API tests for journey planning and the journey lifecycle.
"""

import pytest


@pytest.mark.asyncio
async def test_plan_connected_journey(client, network):
    ranks, routes = network

    response = await client.post("/v1/journeys/plan", json={
        "origin_rank_id": ranks["A"].id,
        "destination_rank_id": ranks["C"].id,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["journey_type"] == "connected"
    assert data["hop_count"] == 2
    assert data["max_hops"] == 3
    assert data["total_fare"] == 25
    assert data["total_duration_minutes"] == 45
    assert data["total_distance_km"] == 20.8
    assert [s["route_id"] for s in data["segments"]] == [routes["AB"].id, routes["BC"].id]
    assert [s["waiting_time_minutes"] for s in data["segments"]] == [0, 15]


@pytest.mark.asyncio
async def test_plan_from_coordinates(client, network):
    ranks, _ = network

    response = await client.post("/v1/journeys/plan", json={
        "origin": {"latitude": -33.9251, "longitude": 18.4239},
        "destination": {"latitude": -34.0187, "longitude": 18.4744},
    })

    assert response.status_code == 200
    assert response.json()["journey_type"] == "direct"
    assert response.json()["rank_path"] == [ranks["A"].id, ranks["B"].id]


@pytest.mark.asyncio
async def test_plan_no_route_is_not_an_error(client, network):
    ranks, _ = network

    response = await client.post("/v1/journeys/plan", json={
        "origin_rank_id": ranks["D"].id,
        "destination_rank_id": ranks["A"].id,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["journey_type"] == "no_route_found"
    assert data["segments"] == []
    assert data["rank_path"] == []
    assert data["reason"] == "no route found within 3 hops"


@pytest.mark.asyncio
async def test_plan_respects_max_hops(client, network):
    ranks, _ = network
    body = {"origin_rank_id": ranks["A"].id, "destination_rank_id": ranks["D"].id}

    response = await client.post("/v1/journeys/plan", json={**body, "max_hops": 2})
    assert response.json()["journey_type"] == "no_route_found"
    assert response.json()["reason"] == "no route found within 2 hops"

    response = await client.post("/v1/journeys/plan", json={**body, "max_hops": 7})
    assert response.status_code == 422
    assert response.json()["details"]["max_hops_limit"] == 6


@pytest.mark.asyncio
async def test_plan_request_errors(client, network):
    ranks, _ = network

    # Both a rank id and a coordinate for the origin
    response = await client.post("/v1/journeys/plan", json={
        "origin_rank_id": ranks["A"].id,
        "origin": {"latitude": -33.9, "longitude": 18.4},
        "destination_rank_id": ranks["B"].id,
    })
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"

    response = await client.post("/v1/journeys/plan", json={
        "origin_rank_id": ranks["A"].id, "destination_rank_id": ranks["A"].id
    })
    assert response.json()["error_code"] == "ERR_PLAN_001"

    response = await client.post("/v1/journeys/plan", json={
        "origin": {"latitude": -25.0, "longitude": 25.0}, "destination_rank_id": ranks["A"].id
    })
    assert response.json()["error_code"] == "ERR_PLAN_002"

    response = await client.post("/v1/journeys/plan", json={
        "origin_rank_id": 9999, "destination_rank_id": ranks["A"].id
    })
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_journey_lifecycle_over_http(client, seed, network):
    ranks, _ = network
    user = await seed.user()

    response = await client.post("/v1/journeys", json={
        "user_id": user.id,
        "origin_rank_id": ranks["A"].id,
        "destination_rank_id": ranks["C"].id,
    })
    assert response.status_code == 201
    journey = response.json()
    journey_id = journey["journey_id"]
    assert journey["status"] == "planned"
    assert [c["sequence_order"] for c in journey["connections"]] == [1, 2]

    response = await client.post(f"/v1/journeys/{journey_id}/transitions", json={"action": "complete"})
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_STATE_002"
    assert response.json()["details"]["allowed_next_states"] == ["active", "cancelled"]

    response = await client.post(f"/v1/journeys/{journey_id}/transitions", json={"action": "start"})
    assert response.json()["status"] == "active"

    response = await client.post(f"/v1/journeys/{journey_id}/rating", json={"rating": 5})
    assert response.status_code == 409

    response = await client.post(f"/v1/journeys/{journey_id}/transitions", json={"action": "complete"})
    assert response.json()["status"] == "completed"

    response = await client.post(f"/v1/journeys/{journey_id}/rating", json={"rating": 9})
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_RATING_001"

    response = await client.post(f"/v1/journeys/{journey_id}/rating", json={"rating": 5, "feedback": "Sharp"})
    assert response.status_code == 200
    assert response.json()["rating"] == 5

    response = await client.get("/v1/journeys", params={"user_id": user.id, "status": "completed"})
    assert response.json()["total"] == 1

    response = await client.get("/v1/journeys/stats", params={"user_id": user.id})
    assert response.json()["completed_journeys"] == 1
    assert response.json()["total_spent"] == 25

    response = await client.delete(f"/v1/journeys/{journey_id}")
    assert response.status_code == 204
    response = await client.get(f"/v1/journeys/{journey_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_without_reason_rejected(client, seed, network):
    ranks, _ = network
    user = await seed.user()
    response = await client.post("/v1/journeys", json={
        "user_id": user.id,
        "origin_rank_id": ranks["A"].id,
        "destination_rank_id": ranks["B"].id,
    })
    journey_id = response.json()["journey_id"]

    response = await client.post(f"/v1/journeys/{journey_id}/transitions", json={"action": "cancel"})
    assert response.status_code == 422

    response = await client.post(f"/v1/journeys/{journey_id}/transitions", json={"action": "cancel", "reason": "late"})
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "late"


@pytest.mark.asyncio
async def test_create_journey_for_unknown_user(client, network):
    ranks, _ = network

    response = await client.post("/v1/journeys", json={
        "user_id": 9999,
        "origin_rank_id": ranks["A"].id,
        "destination_rank_id": ranks["B"].id,
    })

    assert response.status_code == 404
