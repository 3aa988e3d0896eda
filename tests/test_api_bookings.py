from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from nailbook.availability import weekday_index
from nailbook.db import Base, get_db
from nailbook.main import create_app
from nailbook.services import create_user

DAY = "2099-01-01"
WEEKDAY = weekday_index(date.fromisoformat(DAY))


def make_client(tmp_path):
    db_path = tmp_path / "test_nailbook.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    testing_session_local = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)

    app = create_app()

    def override_get_db():
        db = testing_session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.session_local = testing_session_local
    return TestClient(app)


def _login(client, email: str, password: str) -> dict[str, str]:
    res = client.post("/api/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['token']}"}


def _admin_headers(client) -> dict[str, str]:
    with client.app.state.session_local() as db:
        create_user(db, "Isabela", "admin@isa.com", "(11) 99999-9999", "admin123", role="ADMIN")
    return _login(client, "admin@isa.com", "admin123")


def _register(client, email: str = "cliente@teste.com") -> tuple[str, dict[str, str]]:
    res = client.post(
        "/api/auth/register",
        json={"name": "Maria Silva", "email": email, "phone": "(11) 88888-8888", "password": "cliente123"},
    )
    assert res.status_code == 201
    body = res.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}


def _create_service(client, headers, duration: int = 60, name: str = "Manicure Completa", **extra) -> dict:
    payload = {
        "name": name,
        "description": "Cutilagem, lixamento e esmaltação",
        "price": 35.0,
        "duration": duration,
        "category": "MANICURE",
    }
    payload.update(extra)
    res = client.post("/api/services", headers=headers, json=payload)
    assert res.status_code == 201
    return res.json()


def _open_day(client, headers, start: str = "09:00", end: str = "18:00", weekday: int = WEEKDAY):
    res = client.post(
        "/api/bookings/working-hours",
        headers=headers,
        json={"weekday": weekday, "startTime": start, "endTime": end},
    )
    assert res.status_code == 201
    return res.json()


def _slots(client, day: str = DAY, service_id: str | None = None) -> dict[str, bool]:
    params = {"serviceId": service_id} if service_id else None
    res = client.get(f"/api/bookings/availability/{day}", params=params)
    assert res.status_code == 200
    return {row["time"]: row["available"] for row in res.json()}


def test_long_booking_blocks_its_whole_span(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=90, name="Teste Longo")
    _open_day(client, admin)

    created = client.post(
        "/api/bookings",
        headers=admin,
        json={"serviceId": service["id"], "date": DAY, "time": "10:00"},
    )
    assert created.status_code == 201
    assert created.json()["status"] == "CONFIRMED"
    assert created.json()["createdBy"] == "ADMIN"

    slots = _slots(client, service_id=service["id"])
    assert slots["10:00"] is False
    assert slots["10:30"] is False
    assert slots["11:00"] is False
    assert slots["11:30"] is True

    occupancy_only = _slots(client)
    assert occupancy_only["09:30"] is True
    assert occupancy_only["10:00"] is False
    assert occupancy_only["11:00"] is False
    assert occupancy_only["11:30"] is True


def test_special_day_overrides_weekly_hours(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    _open_day(client, admin, "09:00", "17:00")

    res = client.post(
        "/api/bookings/special-days",
        headers=admin,
        json={"date": DAY, "startTime": "14:00", "endTime": "15:00"},
    )
    assert res.status_code == 201
    special_id = res.json()["id"]

    assert list(_slots(client).keys()) == ["14:00", "14:30"]

    removed = client.delete(f"/api/bookings/special-days/{special_id}", headers=admin)
    assert removed.status_code == 204
    assert len(_slots(client)) == 16


def test_day_without_hours_has_no_slots(tmp_path):
    client = make_client(tmp_path)
    assert _slots(client) == {}


def test_short_window_cannot_fit_long_service(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=90)
    _open_day(client, admin, "09:00", "10:00")
    assert _slots(client, service_id=service["id"]) == {"09:00": False, "09:30": False}


def test_unknown_service_falls_back_to_occupancy_only(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    _open_day(client, admin, "09:00", "10:00")
    assert _slots(client, service_id="missing") == {"09:00": True, "09:30": True}


def test_malformed_availability_date_is_rejected(tmp_path):
    client = make_client(tmp_path)
    assert client.get("/api/bookings/availability/2099-13-01").status_code == 400
    assert client.get("/api/bookings/availability/tomorrow").status_code == 400


def test_client_booking_must_fit_open_and_free_span(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=60)
    _open_day(client, admin, "09:00", "12:00")
    _, maria = _register(client)
    _, ana = _register(client, "ana@teste.com")

    first = client.post(
        "/api/bookings",
        headers=maria,
        json={"serviceId": service["id"], "date": DAY, "time": "10:00", "notes": "Esmalte rosa"},
    )
    assert first.status_code == 201
    body = first.json()
    assert body["status"] == "PENDING"
    assert body["createdBy"] == "CLIENT"
    assert body["serviceName"] == "Manicure Completa"
    assert body["clientName"] == "Maria Silva"
    assert body["notes"] == "Esmalte rosa"

    same_time = client.post("/api/bookings", headers=ana, json={"serviceId": service["id"], "date": DAY, "time": "10:00"})
    assert same_time.status_code == 400
    assert same_time.json()["detail"] == "Time slot already taken"

    overlapping = client.post("/api/bookings", headers=ana, json={"serviceId": service["id"], "date": DAY, "time": "09:30"})
    assert overlapping.status_code == 400
    assert overlapping.json()["detail"] == "Time slot unavailable"

    past_closing = client.post("/api/bookings", headers=ana, json={"serviceId": service["id"], "date": DAY, "time": "11:30"})
    assert past_closing.status_code == 400

    fits = client.post("/api/bookings", headers=ana, json={"serviceId": service["id"], "date": DAY, "time": "11:00"})
    assert fits.status_code == 201


def test_admin_may_book_outside_published_hours(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin)

    res = client.post(
        "/api/bookings",
        headers=admin,
        json={"serviceId": service["id"], "date": DAY, "time": "20:00", "status": "PENDING"},
    )
    assert res.status_code == 201
    assert res.json()["status"] == "PENDING"


def test_booking_requires_active_existing_service(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    _open_day(client, admin)
    _, maria = _register(client)
    inactive = _create_service(client, admin, isActive=False)

    missing = client.post("/api/bookings", headers=maria, json={"serviceId": "nope", "date": DAY, "time": "10:00"})
    assert missing.status_code == 404

    res = client.post("/api/bookings", headers=maria, json={"serviceId": inactive["id"], "date": DAY, "time": "10:00"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Service is not available"

    unauthenticated = client.post("/api/bookings", json={"serviceId": inactive["id"], "date": DAY, "time": "10:00"})
    assert unauthenticated.status_code == 401


def test_booking_payload_is_validated(tmp_path):
    client = make_client(tmp_path)
    _, maria = _register(client)
    res = client.post("/api/bookings", headers=maria, json={"serviceId": "x", "date": "01/01/2099", "time": "10:00"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid data"


def test_cancel_frees_slot_and_only_once(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=30)
    _open_day(client, admin, "09:00", "10:00")
    _, maria = _register(client)
    _, ana = _register(client, "ana@teste.com")

    booking = client.post("/api/bookings", headers=maria, json={"serviceId": service["id"], "date": DAY, "time": "09:00"}).json()
    assert _slots(client)["09:00"] is False

    forbidden = client.delete(f"/api/bookings/{booking['id']}", headers=ana)
    assert forbidden.status_code == 403

    cancelled = client.delete(f"/api/bookings/{booking['id']}", headers=maria)
    assert cancelled.status_code == 204
    assert _slots(client)["09:00"] is True

    again = client.delete(f"/api/bookings/{booking['id']}", headers=maria)
    assert again.status_code == 400

    missing = client.delete("/api/bookings/does-not-exist", headers=maria)
    assert missing.status_code == 404


def test_completed_booking_no_longer_occupies_time(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=60)
    _open_day(client, admin, "09:00", "11:00")
    booking = client.post("/api/bookings", headers=admin, json={"serviceId": service["id"], "date": DAY, "time": "09:00"}).json()
    assert _slots(client)["09:30"] is False

    done = client.patch(f"/api/bookings/{booking['id']}/status", headers=admin, json={"status": "COMPLETED"})
    assert done.status_code == 200
    assert done.json()["status"] == "COMPLETED"
    assert all(_slots(client).values())


def test_clients_only_see_their_own_bookings(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=30)
    _open_day(client, admin)
    maria_id, maria = _register(client)
    _, ana = _register(client, "ana@teste.com")

    mine = client.post("/api/bookings", headers=maria, json={"serviceId": service["id"], "date": DAY, "time": "09:00"}).json()
    client.post("/api/bookings", headers=ana, json={"serviceId": service["id"], "date": DAY, "time": "10:00"})

    listed = client.get("/api/bookings", headers=maria)
    assert listed.status_code == 200
    assert [row["id"] for row in listed.json()] == [mine["id"]]

    all_rows = client.get("/api/bookings", headers=admin)
    assert [row["time"] for row in all_rows.json()] == ["09:00", "10:00"]

    filtered = client.get("/api/bookings", headers=admin, params={"clientId": maria_id})
    assert [row["id"] for row in filtered.json()] == [mine["id"]]

    by_date = client.get("/api/bookings", headers=admin, params={"date": "2099-01-02"})
    assert by_date.json() == []

    detail = client.get(f"/api/bookings/{mine['id']}", headers=ana)
    assert detail.status_code == 403
    own_detail = client.get(f"/api/bookings/{mine['id']}", headers=maria)
    assert own_detail.status_code == 200
    assert own_detail.json()["clientId"] == maria_id


def test_admin_updates_notes_and_sees_dashboard(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=30)
    _, maria = _register(client)

    booking = client.post("/api/bookings", headers=admin, json={"serviceId": service["id"], "date": DAY, "time": "09:00"}).json()

    notes = client.patch(f"/api/bookings/{booking['id']}/notes", headers=admin, json={"notes": "Cliente atrasou"})
    assert notes.status_code == 200
    assert notes.json()["notes"] == "Cliente atrasou"

    denied = client.patch(f"/api/bookings/{booking['id']}/status", headers=maria, json={"status": "COMPLETED"})
    assert denied.status_code == 403

    bad_status = client.patch(f"/api/bookings/{booking['id']}/status", headers=admin, json={"status": "DONE"})
    assert bad_status.status_code == 400

    client.patch(f"/api/bookings/{booking['id']}/status", headers=admin, json={"status": "COMPLETED"})
    stats = client.get("/api/bookings/stats/dashboard", headers=admin)
    assert stats.status_code == 200
    body = stats.json()
    assert body["totalBookings"] == 1
    assert body["pendingBookings"] == 0
    assert body["completedBookings"] == 1
    assert body["totalRevenue"] == 35.0

    missing = client.patch("/api/bookings/missing/notes", headers=admin, json={"notes": "x"})
    assert missing.status_code == 404


def test_working_hours_crud_and_validation(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    _, maria = _register(client)

    assert client.get("/api/bookings/working-hours").status_code == 401
    assert client.get("/api/bookings/working-hours", headers=maria).status_code == 403

    inverted = client.post(
        "/api/bookings/working-hours",
        headers=admin,
        json={"weekday": 1, "startTime": "12:00", "endTime": "09:00"},
    )
    assert inverted.status_code == 400

    out_of_range = client.post(
        "/api/bookings/working-hours",
        headers=admin,
        json={"weekday": 7, "startTime": "09:00", "endTime": "12:00"},
    )
    assert out_of_range.status_code == 400

    afternoon = _open_day(client, admin, "13:00", "18:00", weekday=1)
    morning = _open_day(client, admin, "09:00", "12:00", weekday=1)
    listed = client.get("/api/bookings/working-hours", headers=admin).json()
    assert [row["id"] for row in listed] == [morning["id"], afternoon["id"]]

    updated = client.put(
        f"/api/bookings/working-hours/{afternoon['id']}",
        headers=admin,
        json={"weekday": 2, "startTime": "14:00", "endTime": "19:00"},
    )
    assert updated.status_code == 200
    assert updated.json()["weekday"] == 2
    assert updated.json()["startTime"] == "14:00"

    assert client.delete(f"/api/bookings/working-hours/{morning['id']}", headers=admin).status_code == 204
    assert client.delete(f"/api/bookings/working-hours/{morning['id']}", headers=admin).status_code == 404


def test_special_days_crud(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)

    created = client.post(
        "/api/bookings/special-days",
        headers=admin,
        json={"date": "2099-12-24", "startTime": "09:00", "endTime": "13:00"},
    )
    assert created.status_code == 201
    special_id = created.json()["id"]

    updated = client.put(
        f"/api/bookings/special-days/{special_id}",
        headers=admin,
        json={"date": "2099-12-24", "startTime": "10:00", "endTime": "12:00"},
    )
    assert updated.status_code == 200
    assert list(_slots(client, "2099-12-24").keys()) == ["10:00", "10:30", "11:00", "11:30"]

    listed = client.get("/api/bookings/special-days", headers=admin)
    assert [row["date"] for row in listed.json()] == ["2099-12-24"]

    missing = client.put(
        "/api/bookings/special-days/999",
        headers=admin,
        json={"date": "2099-12-24", "startTime": "10:00", "endTime": "12:00"},
    )
    assert missing.status_code == 404


def test_reactivating_booking_cannot_double_book_slot(tmp_path):
    client = make_client(tmp_path)
    admin = _admin_headers(client)
    service = _create_service(client, admin, duration=30)
    _open_day(client, admin, "09:00", "12:00")
    _, maria = _register(client)

    first = client.post("/api/bookings", headers=admin, json={"serviceId": service["id"], "date": DAY, "time": "10:00"}).json()
    assert client.delete(f"/api/bookings/{first['id']}", headers=admin).status_code == 204

    second = client.post("/api/bookings", headers=maria, json={"serviceId": service["id"], "date": DAY, "time": "10:00"})
    assert second.status_code == 201

    revived = client.patch(f"/api/bookings/{first['id']}/status", headers=admin, json={"status": "CONFIRMED"})
    assert revived.status_code == 400
    assert revived.json()["detail"] == "Time slot already taken"

    active = client.get("/api/bookings", headers=admin, params={"date": DAY, "status": "PENDING"}).json()
    confirmed = client.get("/api/bookings", headers=admin, params={"date": DAY, "status": "CONFIRMED"}).json()
    assert [row["id"] for row in active + confirmed] == [second.json()["id"]]

    confirm_second = client.patch(
        f"/api/bookings/{second.json()['id']}/status", headers=admin, json={"status": "CONFIRMED"}
    )
    assert confirm_second.status_code == 200
