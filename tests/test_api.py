from datetime import datetime

from barberbook.models import User

from conftest import MONDAY, SUNDAY, TZ, auth_header


def availability(client, seed, day=MONDAY, service_id=None, barber_id=None):
    resp = client.get(
        f"/barbershops/{seed.shop_id}/availability",
        params={
            "barber_id": barber_id or seed.barber_id,
            "date": day.isoformat(),
            "service_id": service_id or seed.haircut_id,
        },
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["available_starts"]


def book(client, seed, start, email="ana@example.com", **extra):
    payload = {
        "barber_id": seed.barber_id,
        "service_id": seed.haircut_id,
        "appointment_date": MONDAY.isoformat(),
        "start_time": start,
        **extra,
    }
    return client.post("/appointments", json=payload, headers=auth_header(email))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_availability_for_open_and_closed_days(client, seed):
    assert availability(client, seed) == ["09:00", "09:15", "09:30"]
    assert availability(client, seed, day=SUNDAY) == []


def test_availability_unknown_barber_or_service(client, seed):
    resp = client.get(
        f"/barbershops/{seed.shop_id}/availability",
        params={"barber_id": seed.client_id, "date": MONDAY.isoformat(), "service_id": seed.haircut_id},
    )
    assert resp.status_code == 404
    resp = client.get(
        f"/barbershops/{seed.shop_id}/availability",
        params={"barber_id": seed.barber_id, "date": MONDAY.isoformat(), "service_id": 999},
    )
    assert resp.status_code == 404


def test_booking_removes_slot_and_repeat_is_taken(client, seed):
    assert availability(client, seed) == ["09:00", "09:15", "09:30"]

    resp = book(client, seed, "09:00")
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "scheduled"
    assert body["end_time"] == "09:30:00"
    assert body["client_id"] == seed.client_id

    # cached snapshot is reconciled through the change feed
    assert availability(client, seed) == ["09:30"]

    resp = book(client, seed, "09:15")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "This time is no longer available, pick another"


def test_never_valid_slot_differs_from_taken(client, seed):
    resp = book(client, seed, "09:45")
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Service cannot finish before closing time"

    resp = book(client, seed, "09:00", appointment_date=SUNDAY.isoformat())
    assert resp.status_code == 422
    assert resp.json()["detail"] == "The barbershop is closed on this date"


def test_unknown_service_is_404(client, seed):
    resp = book(client, seed, "09:00", service_id=999)
    assert resp.status_code == 404


def test_past_slots_hidden_and_rejected(client, seed, services):
    services["now"] = datetime(2030, 1, 7, 9, 20, tzinfo=TZ)
    assert availability(client, seed) == ["09:30"]
    resp = book(client, seed, "09:15")
    assert resp.status_code == 422
    assert resp.json()["detail"] == "This time has already passed"


def test_staff_books_on_behalf_of_client(client, seed):
    resp = book(client, seed, "09:00", email="joao@navalha.com")
    assert resp.status_code == 422

    resp = book(client, seed, "09:00", email="joao@navalha.com", client_id=seed.client_id)
    assert resp.status_code == 201
    assert resp.json()["client_id"] == seed.client_id


def test_lifecycle_endpoints(client, seed):
    appt_id = book(client, seed, "09:00").json()["id"]

    # clients cannot confirm
    assert client.patch(f"/appointments/{appt_id}/confirm", headers=auth_header("ana@example.com")).status_code == 403

    barber = auth_header("joao@navalha.com")
    assert client.patch(f"/appointments/{appt_id}/confirm", headers=barber).json()["status"] == "confirmed"
    assert client.patch(f"/appointments/{appt_id}/complete", headers=barber).json()["status"] == "completed"

    resp = client.patch(f"/appointments/{appt_id}/cancel", headers=barber)
    assert resp.status_code == 409


def test_client_cancel_frees_slot(client, seed):
    appt_id = book(client, seed, "09:00").json()["id"]
    assert availability(client, seed) == ["09:30"]

    resp = client.patch(f"/appointments/{appt_id}/cancel", headers=auth_header("ana@example.com"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert availability(client, seed) == ["09:00", "09:15", "09:30"]


def test_admin_delete(client, seed):
    appt_id = book(client, seed, "09:00").json()["id"]
    assert client.delete(f"/appointments/{appt_id}", headers=auth_header("joao@navalha.com")).status_code == 403
    assert client.delete(f"/appointments/{appt_id}", headers=auth_header("admin@navalha.com")).status_code == 204
    assert availability(client, seed) == ["09:00", "09:15", "09:30"]


def test_listing_appointments(client, seed):
    first = book(client, seed, "09:00").json()["id"]
    second = book(client, seed, "09:30").json()["id"]
    client.patch(f"/appointments/{first}/cancel", headers=auth_header("ana@example.com"))

    barber = auth_header("joao@navalha.com")
    active = client.get("/barbers/me/appointments", params={"on_date": MONDAY.isoformat()}, headers=barber).json()
    assert [a["id"] for a in active] == [second]

    everything = client.get("/barbers/me/appointments", params={"status": "all"}, headers=barber).json()
    assert [a["id"] for a in everything] == [first, second]

    mine = client.get("/clients/me/appointments", headers=auth_header("ana@example.com")).json()
    assert {a["id"] for a in mine} == {first, second}

    bad = client.get("/barbers/me/appointments", params={"status": "nope"}, headers=barber)
    assert bad.status_code == 422


def test_opening_hours_admin(client, seed):
    admin = auth_header("admin@navalha.com")
    resp = client.put(
        "/barbershops/me/opening-hours",
        json={"opening_hours": {"monday": {"open": "10:00", "close": "11:00"}}},
        headers=admin,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["opening_hours"]["monday"] == {"open": "10:00", "close": "11:00"}
    assert resp.json()["opening_hours"]["tuesday"] is None
    assert availability(client, seed) == ["10:00", "10:15", "10:30"]

    resp = client.put(
        "/barbershops/me/opening-hours",
        json={"opening_hours": {"monday": {"open": "11:00", "close": "10:00"}}},
        headers=admin,
    )
    assert resp.status_code == 422

    resp = client.put(
        "/barbershops/me/opening-hours",
        json={"opening_hours": {}},
        headers=auth_header("joao@navalha.com"),
    )
    assert resp.status_code == 403


def test_barber_block_hides_slots(client, seed):
    barber = auth_header("joao@navalha.com")
    resp = client.put(
        "/barbers/me/blocks",
        json={"title": "Break", "block_date": MONDAY.isoformat(), "start_time": "09:15", "end_time": "09:45"},
        headers=barber,
    )
    assert resp.status_code == 201, resp.text
    block_id = resp.json()["id"]
    assert availability(client, seed, service_id=seed.beard_id) == ["09:00", "09:45"]

    # other barbers are not affected
    assert availability(client, seed, service_id=seed.beard_id, barber_id=seed.other_barber_id) == [
        "09:00", "09:15", "09:30", "09:45",
    ]

    assert client.delete(f"/barbers/me/blocks/{block_id}", headers=barber).status_code == 204
    assert availability(client, seed, service_id=seed.beard_id) == ["09:00", "09:15", "09:30", "09:45"]


def test_block_validation(client, seed):
    barber = auth_header("joao@navalha.com")
    resp = client.put(
        "/barbers/me/blocks",
        json={"title": "Weekly", "recurrence_type": "weekly", "days_of_week": [1, 1], "is_full_day": True},
        headers=barber,
    )
    assert resp.status_code == 422
    resp = client.put(
        "/barbers/me/blocks",
        json={"title": "No date", "is_full_day": True},
        headers=barber,
    )
    assert resp.status_code == 422


def test_services_listing(client, seed):
    admin = auth_header("admin@navalha.com")
    resp = client.post("/barbershops/me/services", json={"name": "Fade", "duration_minutes": 45, "price": 60}, headers=admin)
    assert resp.status_code == 201
    names = [s["name"] for s in client.get(f"/barbershops/{seed.shop_id}/services").json()]
    assert names == ["Beard", "Fade", "Haircut"]


def test_register_and_login(client, seed):
    resp = client.post(
        "/users",
        json={"email": "bia@example.com", "password": "secret-pass", "role": "client", "barbershop_id": seed.shop_id},
    )
    assert resp.status_code == 201
    assert client.post("/users", json={"email": "bia@example.com", "password": "secret-pass", "role": "client"}).status_code == 409

    resp = client.post("/auth/login", data={"username": "bia@example.com", "password": "secret-pass"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    me = client.get("/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["email"] == "bia@example.com"
    assert me["barbershop_id"] == seed.shop_id

    assert client.post("/auth/login", data={"username": "bia@example.com", "password": "wrong-pass"}).status_code == 401


def any_barber(client, seed, service_id=None):
    resp = client.get(
        f"/barbershops/{seed.shop_id}/availability",
        params={"date": MONDAY.isoformat(), "service_id": service_id or seed.haircut_id},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["barber_id"] is None
    return resp.json()["available_starts"]


def deactivate(session, user_id):
    user = session.get(User, user_id)
    user.is_active = False
    session.add(user)
    session.commit()


def test_any_barber_availability_is_union_of_eligible_barbers(client, seed):
    assert any_barber(client, seed) == ["09:00", "09:15", "09:30"]

    book(client, seed, "09:00")
    # pedro is still free at 09:00
    assert any_barber(client, seed) == ["09:00", "09:15", "09:30"]

    book(client, seed, "09:00", barber_id=seed.other_barber_id)
    assert any_barber(client, seed) == ["09:30"]

    # only joao does beards
    assert any_barber(client, seed, service_id=seed.beard_id) == ["09:30", "09:45"]


def test_service_assignment_controls_any_barber(client, seed):
    admin = auth_header("admin@navalha.com")
    book(client, seed, "09:00")

    path = f"/barbershops/me/services/{seed.beard_id}/barbers/{seed.other_barber_id}"
    assert client.put(path, headers=admin).status_code == 204
    assert any_barber(client, seed, service_id=seed.beard_id) == ["09:00", "09:15", "09:30", "09:45"]

    assert client.delete(path, headers=admin).status_code == 204
    assert any_barber(client, seed, service_id=seed.beard_id) == ["09:30", "09:45"]

    assert client.put(path, headers=auth_header("joao@navalha.com")).status_code == 403


def test_inactive_barber_has_no_availability(client, seed, session):
    deactivate(session, seed.barber_id)

    resp = client.get(
        f"/barbershops/{seed.shop_id}/availability",
        params={"barber_id": seed.barber_id, "date": MONDAY.isoformat(), "service_id": seed.haircut_id},
    )
    assert resp.status_code == 404
    assert book(client, seed, "09:00").status_code == 404

    # nor is offered under "any barber"
    assert any_barber(client, seed, service_id=seed.beard_id) == []
    assert any_barber(client, seed) == ["09:00", "09:15", "09:30"]


def test_reschedule_endpoint(client, seed):
    first = book(client, seed, "09:00", service_id=seed.beard_id).json()["id"]
    book(client, seed, "09:30", service_id=seed.beard_id)
    assert availability(client, seed, service_id=seed.beard_id) == ["09:15", "09:45"]

    me = auth_header("ana@example.com")
    resp = client.patch(f"/appointments/{first}", json={"start_time": "09:15"}, headers=me)
    assert resp.status_code == 200, resp.text
    assert resp.json()["start_time"] == "09:15:00"
    assert availability(client, seed, service_id=seed.beard_id) == ["09:00", "09:45"]

    resp = client.patch(f"/appointments/{first}", json={"start_time": "09:30"}, headers=me)
    assert resp.status_code == 409
    resp = client.patch(f"/appointments/{first}", json={"appointment_date": SUNDAY.isoformat()}, headers=me)
    assert resp.status_code == 422

    other_barber = auth_header("pedro@navalha.com")
    assert client.patch(f"/appointments/{first}", json={"start_time": "09:00"}, headers=other_barber).status_code == 403


def test_reschedule_to_another_barber_updates_both_listings(client, seed):
    appt_id = book(client, seed, "09:00").json()["id"]
    assert availability(client, seed) == ["09:30"]
    assert availability(client, seed, barber_id=seed.other_barber_id) == ["09:00", "09:15", "09:30"]

    resp = client.patch(
        f"/appointments/{appt_id}",
        json={"barber_id": seed.other_barber_id},
        headers=auth_header("admin@navalha.com"),
    )
    assert resp.status_code == 200, resp.text
    assert availability(client, seed) == ["09:00", "09:15", "09:30"]
    assert availability(client, seed, barber_id=seed.other_barber_id) == ["09:30"]


def test_admin_cannot_register_into_a_run_barbershop(client, seed):
    resp = client.post(
        "/users",
        json={"email": "intruder@example.com", "password": "secret-pass", "role": "admin", "barbershop_id": seed.shop_id},
    )
    assert resp.status_code == 403

    resp = client.post("/users", json={"email": "owner@example.com", "password": "secret-pass", "role": "admin"})
    assert resp.status_code == 201
