import pytest
from fastapi.testclient import TestClient
from fastapi import FastAPI
from datetime import date, datetime, timedelta, timezone

from trainerbook.routers.rou_booking import router
from trainerbook.configuration.database import (
    get_bookings_container,
    get_claims_container,
    get_slots_container
)
from trainerbook.dependencies.dep_auth import get_current_user

app = FastAPI()
app.include_router(router)

@pytest.fixture
def client(slots_db, bookings_db, claims_db, client_user, next_monday):
    # Trainer-1 offers 09:00-10:00 and 10:00-11:00 on next Monday
    for start, end in (("09:00", "10:00"), ("10:00", "11:00")):
        slots_db.upsert_item(body={
            "id": f"slot-{start}",
            "trainer_id": "trainer-1",
            "day_of_week": 1,
            "specific_date": next_monday.isoformat(),
            "start_time": start,
            "end_time": end,
            "is_recurring": False
        })
    app.dependency_overrides[get_slots_container] = lambda: slots_db
    app.dependency_overrides[get_bookings_container] = lambda: bookings_db
    app.dependency_overrides[get_claims_container] = lambda: claims_db
    app.dependency_overrides[get_current_user] = lambda: client_user
    yield TestClient(app)
    app.dependency_overrides.clear()

def act_as(user):
    app.dependency_overrides[get_current_user] = lambda: user

def booking_payload(day, client_id="client-1", start="10:00", end="11:00"):
    return {
        "client_id": client_id,
        "trainer_id": "trainer-1",
        "booking_date": day.isoformat(),
        "start_time": start,
        "end_time": end,
        "hourly_rate": "60.00",
        "total_price": "60.00",
        "session_type": "in_person",
        "client_notes": "Knee injury last year"
    }

def store_confirmed_booking(bookings_db, day):
    now = datetime.now(timezone.utc).isoformat()
    bookings_db.upsert_item(body={
        "id": "booking-past",
        "client_id": "client-1",
        "trainer_id": "trainer-1",
        "booking_date": day.isoformat(),
        "start_time": "08:00",
        "end_time": "09:00",
        "duration_minutes": 60,
        "session_type": "virtual",
        "hourly_rate": "60.00",
        "total_price": "60.00",
        "status": "confirmed",
        "changes": [],
        "created_at": now,
        "updated_at": now
    })

def test_create_booking(client, next_monday):
    response = client.post("/bookings/", json=booking_payload(next_monday))

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["duration_minutes"] == 60
    assert data["session_type"] == "in_person"
    assert data["changes"][0]["change_type"] == "created"

def test_create_booking_rejects_times_with_seconds(client, bookings_db, next_monday):
    response = client.post("/bookings/", json=booking_payload(next_monday, start="10:00:10", end="10:00:50"))

    assert response.status_code == 422
    assert bookings_db.items == {}

def test_second_booking_for_same_slot_conflicts(client, next_monday, other_client):
    client.post("/bookings/", json=booking_payload(next_monday))
    act_as(other_client)

    response = client.post("/bookings/", json=booking_payload(next_monday, client_id="client-2"))

    assert response.status_code == 409
    assert response.json()["detail"] == "This time slot is no longer available, please pick another time"

def test_booking_for_someone_else_is_forbidden(client, next_monday):
    response = client.post("/bookings/", json=booking_payload(next_monday, client_id="client-2"))

    assert response.status_code == 403

def test_get_booking_only_for_participants(client, next_monday, trainer, other_client):
    booking_id = client.post("/bookings/", json=booking_payload(next_monday)).json()["id"]

    assert client.get(f"/bookings/{booking_id}").status_code == 200
    act_as(trainer)
    assert client.get(f"/bookings/{booking_id}").status_code == 200
    act_as(other_client)
    assert client.get(f"/bookings/{booking_id}").status_code == 403

def test_get_unknown_booking(client):
    assert client.get("/bookings/missing").status_code == 404

def test_user_bookings_views(client, next_monday, trainer):
    client.post("/bookings/", json=booking_payload(next_monday))
    client.post("/bookings/", json=booking_payload(next_monday, start="09:00", end="10:00"))

    response = client.get("/bookings/users/client-1")
    assert response.status_code == 200
    assert [b["start_time"] for b in response.json()] == ["09:00:00", "10:00:00"]

    response = client.get("/bookings/users/client-1", params={"view": "pending"})
    assert len(response.json()) == 2
    response = client.get("/bookings/users/client-1", params={"view": "completed"})
    assert response.json() == []
    response = client.get("/bookings/users/client-1", params={"view": "upcoming"})
    assert len(response.json()) == 2

    act_as(trainer)
    response = client.get("/bookings/users/trainer-1", params={"status": "pending"})
    assert len(response.json()) == 2

def test_user_bookings_only_for_self(client):
    assert client.get("/bookings/users/client-2").status_code == 403

def test_user_bookings_unknown_view(client):
    assert client.get("/bookings/users/client-1", params={"view": "someday"}).status_code == 400

def test_confirm_and_cancel(client, next_monday, trainer, client_user):
    booking_id = client.post("/bookings/", json=booking_payload(next_monday)).json()["id"]

    assert client.post(f"/bookings/{booking_id}/confirm").status_code == 403

    act_as(trainer)
    response = client.post(f"/bookings/{booking_id}/confirm")
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    act_as(client_user)
    response = client.post(f"/bookings/{booking_id}/cancel", json={"reason": ""})
    assert response.status_code == 400

    response = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "Travelling"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Travelling"

    # The window is bookable again
    response = client.post("/bookings/", json=booking_payload(next_monday))
    assert response.status_code == 200

def test_confirm_with_reason_keeps_trainer_notes_empty(client, next_monday, trainer):
    booking_id = client.post("/bookings/", json=booking_payload(next_monday)).json()["id"]
    act_as(trainer)

    response = client.patch(f"/bookings/{booking_id}/status", json={"status": "confirmed", "reason": "See you there"})

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert response.json()["trainer_notes"] is None

def test_status_update_rejects_illegal_transition(client, next_monday, trainer):
    booking_id = client.post("/bookings/", json=booking_payload(next_monday)).json()["id"]
    act_as(trainer)

    response = client.patch(f"/bookings/{booking_id}/status", json={"status": "confirmed"})
    assert response.status_code == 200

    response = client.patch(f"/bookings/{booking_id}/status", json={"status": "pending"})
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot change a confirmed booking to pending"

def test_future_session_cannot_be_completed(client, next_monday, trainer):
    booking_id = client.post("/bookings/", json=booking_payload(next_monday)).json()["id"]
    act_as(trainer)
    client.post(f"/bookings/{booking_id}/confirm")

    response = client.post(f"/bookings/{booking_id}/complete", json={"notes": "Too early"})

    assert response.status_code == 400

def test_complete_past_session_with_notes(client, bookings_db, trainer):
    store_confirmed_booking(bookings_db, date.today() - timedelta(days=1))
    act_as(trainer)

    response = client.post("/bookings/booking-past/complete", json={
        "notes": "Mobility work",
        "client_feedback": "Felt great",
        "next_steps": "Increase load"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["session_notes"]["client_feedback"] == "Felt great"
    assert data["trainer_notes"].startswith("Session notes:\nMobility work")

def test_complete_through_status_update(client, bookings_db, trainer):
    store_confirmed_booking(bookings_db, date.today() - timedelta(days=1))
    act_as(trainer)

    response = client.patch("/bookings/booking-past/status", json={"status": "completed", "reason": "Solid session"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["trainer_notes"] == "Session notes:\nSolid session"
