"""End-to-end tests through the FastAPI app"""


def availability_params(seed, **extra):
    params = {"salonId": seed.salon.id, "serviceId": seed.manicure.id, "date": "2026-06-01"}
    params.update(extra)
    return params


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_public_availability_renders_salon_local_times(client, seed):
    response = client.get(
        "/public/booking/availability", params=availability_params(seed, technicianId=seed.anna.id)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["timezone"] == "America/Los_Angeles"
    assert body["durationMinutes"] == 30
    assert body["slots"][0]["startTime"] == "2026-06-01T09:00:00-07:00"
    assert body["slots"][0]["technicianName"] == "Anna"


def test_public_booking_then_slot_disappears(client, seed):
    response = client.post(
        "/public/booking/appointments",
        json={
            "salonId": seed.salon.id,
            "serviceId": seed.manicure.id,
            "technicianId": seed.anna.id,
            "date": "2026-06-01",
            "time": "09:00",
            "clientName": "Gia Ruiz",
            "clientPhone": "(415) 555-0123",
        },
    )

    assert response.status_code == 201
    appointment = response.json()["appointment"]
    assert appointment["status"] == "BOOKED"
    assert appointment["source"] == "ONLINE"
    assert appointment["clientName"] == "Gia Ruiz"

    slots = client.get(
        "/public/booking/availability", params=availability_params(seed, technicianId=seed.anna.id)
    ).json()["slots"]
    assert slots[0]["startTime"] == "2026-06-01T09:30:00-07:00"


def test_public_booking_rejects_bad_phone(client, seed):
    response = client.post(
        "/public/booking/appointments",
        json={
            "salonId": seed.salon.id,
            "serviceId": seed.manicure.id,
            "technicianId": seed.anna.id,
            "date": "2026-06-01",
            "time": "09:00",
            "clientName": "Gia Ruiz",
            "clientPhone": "12345",
        },
    )
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "ValidationError"


def test_public_directory_listings(client, seed):
    services = client.get("/public/booking/services", params={"salonId": seed.salon.id}).json()
    technicians = client.get("/public/booking/technicians", params={"salonId": seed.salon.id}).json()

    assert [s["name"] for s in services] == ["Full Set", "Gel Manicure", "Pedicure"]
    assert [t["name"] for t in technicians] == ["Anna", "Bella"]


def test_dashboard_requires_salon_header(client, seed):
    response = client.get("/appointments", params={"start": "2026-06-01"})
    assert response.status_code == 401


def test_dashboard_booking_conflict_and_patch(client, seed, dashboard_headers):
    payload = {
        "clientId": seed.dana.id,
        "serviceId": seed.pedicure.id,
        "technicianId": seed.anna.id,
        "startTime": "2026-06-01T10:00:00-07:00",
    }
    created = client.post("/appointments", json=payload, headers=dashboard_headers)
    assert created.status_code == 201
    appointment_id = created.json()["id"]
    assert created.json()["endTime"] == "2026-06-01T10:45:00-07:00"

    clash = client.post(
        "/appointments",
        json={**payload, "clientId": seed.eli.id, "startTime": "2026-06-01T10:30:00"},
        headers=dashboard_headers,
    )
    assert clash.status_code == 409
    assert clash.json()["detail"]["conflictingAppointmentId"] == appointment_id

    confirmed = client.patch(
        f"/appointments/{appointment_id}", json={"status": "CONFIRMED"}, headers=dashboard_headers
    )
    assert confirmed.json()["status"] == "CONFIRMED"

    moved = client.patch(
        f"/appointments/{appointment_id}",
        json={"startTime": "2026-06-01T13:00:00", "technicianId": seed.bella.id},
        headers=dashboard_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["technicianName"] == "Bella"
    assert moved.json()["startTime"] == "2026-06-01T13:00:00-07:00"

    done = client.patch(
        f"/appointments/{appointment_id}", json={"status": "COMPLETED"}, headers=dashboard_headers
    )
    assert done.json()["status"] == "COMPLETED"

    again = client.patch(
        f"/appointments/{appointment_id}", json={"status": "CANCELLED"}, headers=dashboard_headers
    )
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "InvalidTransition"


def test_patch_body_must_pick_one_action(client, seed, dashboard_headers):
    response = client.patch(
        "/appointments/1",
        json={"status": "CONFIRMED", "startTime": "2026-06-01T13:00:00"},
        headers=dashboard_headers,
    )
    assert response.status_code == 422


def test_appointment_list_and_cross_salon_access(client, seed, dashboard_headers):
    for hour, technician in ((11, seed.bella.id), (9, seed.anna.id)):
        client.post(
            "/appointments",
            json={
                "clientId": seed.dana.id,
                "serviceId": seed.manicure.id,
                "technicianId": technician,
                "startTime": f"2026-06-01T{hour:02d}:00:00",
            },
            headers=dashboard_headers,
        )

    listing = client.get("/appointments", params={"start": "2026-06-01"}, headers=dashboard_headers)
    times = [a["startTime"][11:16] for a in listing.json()["appointments"]]
    assert times == ["09:00", "11:00"]

    only_bella = client.get(
        "/appointments",
        params={"start": "2026-06-01", "technicianId": seed.bella.id},
        headers=dashboard_headers,
    ).json()["appointments"]
    assert len(only_bella) == 1

    appointment_id = listing.json()["appointments"][0]["id"]
    foreign = client.get(
        f"/appointments/{appointment_id}", headers={"X-Salon-ID": str(seed.other_salon.id)}
    )
    assert foreign.status_code == 403
    assert client.get("/appointments/9999", headers=dashboard_headers).status_code == 404


def test_technician_schedule(client, seed, dashboard_headers):
    response = client.get(f"/technicians/{seed.anna.id}/schedule", headers=dashboard_headers)

    assert response.status_code == 200
    entries = response.json()["entries"]
    assert [(e["dayOfWeek"], e["isWorking"]) for e in entries] == [(0, False), (1, True)]
    assert entries[1]["startTime"] == "09:00:00"


def test_recurring_series_flow(client, seed, dashboard_headers):
    response = client.post(
        "/recurring-appointments",
        json={
            "clientId": seed.dana.id,
            "technicianId": seed.anna.id,
            "serviceId": seed.manicure.id,
            "frequency": "WEEKLY",
            "dayOfWeek": 1,
            "preferredTime": "10:00",
        },
        headers=dashboard_headers,
    )
    assert response.status_code == 201
    series = response.json()
    assert series["nextOccurrence"] == "2026-06-01"
    assert series["technicianName"] == "Anna"

    response = client.post(
        "/recurring-appointments/generate", json={"daysAhead": 14}, headers=dashboard_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert [a["startTime"] for a in body["created"]] == [
        "2026-06-01T10:00:00-07:00",
        "2026-06-08T10:00:00-07:00",
    ]
    assert body["skipped"] == []

    listed = client.get("/recurring-appointments", headers=dashboard_headers).json()
    assert listed["recurringAppointments"][0]["nextOccurrence"] == "2026-06-15"

    paused = client.patch(
        f"/recurring-appointments/{series['id']}", json={"active": False}, headers=dashboard_headers
    )
    assert paused.json()["active"] is False

    deleted = client.delete(f"/recurring-appointments/{series['id']}", headers=dashboard_headers)
    assert deleted.status_code == 204
    missing = client.get(f"/recurring-appointments/{series['id']}", headers=dashboard_headers)
    assert missing.status_code == 404


def test_recurring_monthly_series_needs_day_of_month(client, seed, dashboard_headers):
    response = client.post(
        "/recurring-appointments",
        json={
            "clientId": seed.dana.id,
            "technicianId": seed.anna.id,
            "serviceId": seed.manicure.id,
            "frequency": "MONTHLY",
            "preferredTime": "10:00",
        },
        headers=dashboard_headers,
    )
    assert response.status_code == 422


def test_waitlist_flow(client, seed, dashboard_headers):
    ids = []
    for name in ("A", "B", "C"):
        response = client.post(
            "/waitlist",
            json={"clientName": name, "clientPhone": "4085550000"},
            headers=dashboard_headers,
        )
        assert response.status_code == 201
        ids.append(response.json()["id"])

    seated = client.patch(f"/waitlist/{ids[1]}", json={"status": "SEATED"}, headers=dashboard_headers)
    assert seated.json()["status"] == "SEATED"
    assert seated.json()["position"] is None

    board = client.get("/waitlist", params={"status": "WAITING"}, headers=dashboard_headers).json()
    assert [(e["clientName"], e["position"]) for e in board["entries"]] == [("A", 1), ("C", 2)]
    assert board["entries"][1]["estimatedWaitDisplay"] == "15-30 min"
    assert board["stats"]["totalWaiting"] == 2

    again = client.patch(f"/waitlist/{ids[1]}", json={"status": "LEFT"}, headers=dashboard_headers)
    assert again.status_code == 409

    noted = client.patch(f"/waitlist/{ids[0]}", json={"notes": "Booth 2"}, headers=dashboard_headers)
    assert noted.json()["notes"] == "Booth 2"


def test_waitlist_requires_identity(client, seed, dashboard_headers):
    response = client.post("/waitlist", json={"partySize": 2}, headers=dashboard_headers)
    assert response.status_code == 422


def test_kiosk_flow(client, seed, dashboard_headers):
    created = client.post(
        "/appointments",
        json={
            "clientId": seed.dana.id,
            "serviceId": seed.manicure.id,
            "technicianId": seed.anna.id,
            "startTime": "2026-06-01T14:00:00",
        },
        headers=dashboard_headers,
    ).json()

    lookup = client.get(f"/kiosk/{seed.salon.id}/lookup", params={"phone": "4085551234"}).json()
    assert lookup["client"]["name"] == "Dana Lee"
    assert [a["id"] for a in lookup["appointments"]] == [created["id"]]
    assert lookup["canWalkIn"] is False

    for _ in range(2):
        checked_in = client.post(
            f"/kiosk/{seed.salon.id}/check-in", json={"appointmentId": created["id"]}
        )
        assert checked_in.status_code == 200
        assert checked_in.json()["status"] == "CONFIRMED"

    walk_in = client.post(
        f"/kiosk/{seed.salon.id}/walk-in",
        json={"clientName": "Gia", "clientPhone": "415-555-0123"},
    )
    assert walk_in.status_code == 201
    assert walk_in.json()["position"] == 1
    assert walk_in.json()["estimatedWaitDisplay"] == "Ready now"


def test_kiosk_unknown_phone(client, seed):
    lookup = client.get(f"/kiosk/{seed.salon.id}/lookup", params={"phone": "4155550000"}).json()
    assert lookup == {"client": None, "appointments": [], "canWalkIn": True}
