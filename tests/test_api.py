# tests/test_api.py
from datetime import date

import pytest
from httpx import AsyncClient

MONDAY = date(2030, 1, 7)


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    response = await async_client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


@pytest.mark.asyncio
async def test_weekly_template_defaults_then_replace(async_client: AsyncClient, make_provider):
    provider = make_provider()

    response = await async_client.get(f"/api/v1/providers/{provider.id}/weekly-template")
    assert response.status_code == 200
    assert response.json()["is_default"] is True

    response = await async_client.put(
        f"/api/v1/providers/{provider.id}/weekly-template",
        json={"days": [{"day_of_week": 2, "is_available": True, "time_blocks": [{"start_time": "08:00", "end_time": "10:00"}]}]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_default"] is False
    assert data["days"][2]["time_blocks"][0]["start_time"] == "08:00:00"
    assert data["days"][1]["is_available"] is False


@pytest.mark.asyncio
async def test_overlapping_blocks_rejected(async_client: AsyncClient, make_provider):
    provider = make_provider()
    response = await async_client.put(
        f"/api/v1/providers/{provider.id}/weekly-template",
        json={"days": [{"day_of_week": 1, "is_available": True, "time_blocks": [
            {"start_time": "09:00", "end_time": "12:00"},
            {"start_time": "11:00", "end_time": "13:00"},
        ]}]},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_exception_validation_errors_are_listed(async_client: AsyncClient, make_provider):
    provider = make_provider()
    response = await async_client.post(
        f"/api/v1/providers/{provider.id}/exceptions",
        json={"exception_date": "2030-01-07", "exception_type": "custom_hours", "is_recurring": True, "recurrence_pattern": "weekly"},
    )
    assert response.status_code == 422
    assert len(response.json()["errors"]) == 2


@pytest.mark.asyncio
async def test_recurring_exception_then_slots(async_client: AsyncClient, make_provider):
    provider = make_provider()
    response = await async_client.post(
        f"/api/v1/providers/{provider.id}/exceptions",
        json={
            "exception_date": "2030-01-07",
            "exception_type": "unavailable",
            "is_recurring": True,
            "recurrence_pattern": "weekly",
            "recurrence_days": [1, 3, 5],
            "recurrence_count": 6,
        },
    )
    assert response.status_code == 201
    assert len(response.json()["ids"]) == 6

    response = await async_client.get(
        f"/api/v1/providers/{provider.id}/available-slots",
        params={"start_date": "2030-01-07", "end_date": "2030-01-08", "duration": 60},
    )
    assert response.status_code == 200
    slots = response.json()["slots"]
    assert {s["date"] for s in slots} == {"2030-01-08"}


@pytest.mark.asyncio
async def test_delete_exception(async_client: AsyncClient, make_provider):
    provider = make_provider()
    created = await async_client.post(f"/api/v1/providers/{provider.id}/exceptions", json={"exception_date": "2030-01-07"})
    exception_id = created.json()["ids"][0]

    response = await async_client.delete(f"/api/v1/exceptions/{exception_id}")
    assert response.status_code == 204
    response = await async_client.delete(f"/api/v1/exceptions/{exception_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_booking_policy_round_trip(async_client: AsyncClient, make_provider):
    provider = make_provider()
    policy = (await async_client.get(f"/api/v1/providers/{provider.id}/booking-policy")).json()
    assert policy["is_default"] is True

    policy["max_daily_appointments"] = 4
    response = await async_client.put(f"/api/v1/providers/{provider.id}/booking-policy", json=policy)
    assert response.status_code == 200
    assert response.json()["max_daily_appointments"] == 4
    assert response.json()["is_default"] is False


@pytest.mark.asyncio
async def test_slots_for_unknown_provider(async_client: AsyncClient):
    response = await async_client.get(
        "/api/v1/providers/999/available-slots",
        params={"start_date": "2030-01-07", "end_date": "2030-01-07"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_payer_search_and_acceptance(async_client: AsyncClient, make_payer):
    blocked = make_payer(name="Blocked Plan", credentialing_status="Blocked", effective_date=None)
    make_payer(name="Open Plan")

    response = await async_client.get("/api/v1/payers/search", params={"q": "plan"})
    assert response.status_code == 200
    assert [p["acceptance_status"] for p in response.json()] == ["active", "not-accepted"]

    response = await async_client.get(f"/api/v1/payers/{blocked.id}/acceptance")
    assert response.json()["acceptance_status"] == "not-accepted"


@pytest.mark.asyncio
async def test_available_providers_for_payer(async_client: AsyncClient, make_provider, make_payer):
    payer = make_payer()
    make_provider(first_name="Zed", last_name="Young")
    make_provider(first_name="Ann", last_name="Adams")

    response = await async_client.get(
        f"/api/v1/payers/{payer.id}/available-providers",
        params={"date": MONDAY.isoformat(), "duration": 60},
    )
    assert response.status_code == 200
    assert [r["provider"]["display_name"] for r in response.json()] == ["Dr. Ann Adams", "Dr. Zed Young"]


@pytest.mark.asyncio
async def test_merged_availability_for_payer(async_client: AsyncClient, make_provider, make_payer, add_to_network):
    payer = make_payer()
    provider = make_provider()
    add_to_network(provider, payer)

    response = await async_client.get(
        f"/api/v1/payers/{payer.id}/merged-availability",
        params={"start_date": "2030-01-07", "end_date": "2030-01-07", "duration": 60},
    )
    assert response.status_code == 200
    assert len(response.json()["slots"]) == 5


@pytest.mark.asyncio
async def test_booking_then_conflict(async_client: AsyncClient, make_provider, make_payer):
    provider = make_provider(npi="1234567890")
    payer = make_payer()
    body = {
        "selected_provider_id": provider.id,
        "payer_id": payer.id,
        "start_time": "2030-01-07T09:00:00",
        "end_time": "2030-01-07T10:00:00",
        "patient": {"first_name": "Pat", "last_name": "Example", "email": ""},
    }

    response = await async_client.post("/api/v1/appointments", json=body)
    assert response.status_code == 201
    created = response.json()
    assert created["rendering_provider_id"] is None
    assert len(created["confirmation_code"]) == 8

    summary = await async_client.get(f"/api/v1/appointments/{created['appointment_id']}")
    assert summary.json()["billing_provider_npi"] == "1234567890"

    response = await async_client.post("/api/v1/appointments", json=body)
    assert response.status_code == 409
    assert response.json()["retryable"] is True


@pytest.mark.asyncio
async def test_booking_lead(async_client: AsyncClient, make_payer):
    payer = make_payer(name="Someday Health", credentialing_status="Not started", effective_date=None)
    response = await async_client.post(
        "/api/v1/booking-leads",
        json={"payer_id": payer.id, "patient": {"first_name": "Pat", "last_name": "Example", "email": "pat@example.com"}},
    )
    assert response.status_code == 201
    assert response.json()["requested_payer_name"] == "Someday Health"
