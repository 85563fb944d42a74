# tests/test_routes.py
import pytest
from sqlalchemy import select

from healthcare_portal.db.models import OtpModel
from tests._helpers import PASSWORD, auth_headers

SCHEDULE = {"date": "2024-06-01", "start_time": "09:00:00", "end_time": "10:00:00"}


async def _open_schedule(client, doctor):
    response = await client.post(
        "/doctor-schedules", json={"doctor_id": doctor.id, **SCHEDULE}, headers=auth_headers(doctor)
    )
    assert response.status_code == 201
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_protected_route_without_token(client, users):
    response = await client.get("/appointments/my-appointments")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Not authenticated"}


async def test_garbage_token_is_unauthenticated(client, users):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_signup_signin_and_me(client, users):
    payload = {
        "email": "new.patient@example.com",
        "password": PASSWORD,
        "first_name": "New",
        "last_name": "Patient",
        "role": "PATIENT",
    }
    response = await client.post("/auth/signup", json=payload)
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "PATIENT"

    again = await client.post("/auth/signup", json=payload)
    assert again.status_code == 409

    signin = await client.post(
        "/auth/signin", json={"email": "new.patient@example.com", "password": PASSWORD}
    )
    assert signin.status_code == 200
    tokens = signin.json()

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "new.patient@example.com"

    refreshed = await client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200


@pytest.mark.parametrize("role", ["ADMIN", "DOCTOR"])
async def test_public_signup_is_patients_only(client, users, role):
    response = await client.post(
        "/auth/signup",
        json={
            "email": "staff@example.com",
            "password": PASSWORD,
            "first_name": "Staff",
            "last_name": "Member",
            "role": role,
        },
    )
    assert response.status_code == 400

    signin = await client.post("/auth/signin", json={"email": "staff@example.com", "password": PASSWORD})
    assert signin.status_code == 401


async def test_admin_creates_doctor_accounts(client, users):
    response = await client.post(
        "/auth/admin/create-user",
        json={
            "email": "new.doctor@example.com",
            "password": PASSWORD,
            "first_name": "New",
            "last_name": "Doctor",
            "role": "DOCTOR",
            "doctor_profile": {"license_number": "LIC-9", "department_id": users["department"].id},
        },
        headers=auth_headers(users["admin"]),
    )
    assert response.status_code == 201
    assert response.json()["doctor_profile"]["department_name"] == "Cardiology"


async def test_signin_with_wrong_password(client, users):
    response = await client.post(
        "/auth/signin", json={"email": "patient@example.com", "password": "Wrong123!"}
    )
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_schedule_conflict_is_409(client, users):
    await _open_schedule(client, users["doctor"])
    response = await client.post(
        "/doctor-schedules",
        json={"doctor_id": users["doctor"].id, "date": "2024-06-01", "start_time": "09:30:00", "end_time": "10:30:00"},
        headers=auth_headers(users["doctor"]),
    )
    assert response.status_code == 409


async def test_schedule_with_reversed_window_is_422(client, users):
    response = await client.post(
        "/doctor-schedules",
        json={"doctor_id": users["doctor"].id, "date": "2024-06-01", "start_time": "10:00:00", "end_time": "09:00:00"},
        headers=auth_headers(users["doctor"]),
    )
    assert response.status_code == 422


async def test_doctor_cannot_delete_any_schedule(client, users):
    schedule = await _open_schedule(client, users["doctor"])
    response = await client.delete(f"/doctor-schedules/{schedule['id']}", headers=auth_headers(users["doctor"]))
    assert response.status_code == 403

    response = await client.delete(
        f"/doctor-schedules/my-schedules/{schedule['id']}", headers=auth_headers(users["doctor"])
    )
    assert response.status_code == 200


async def test_missing_appointment_is_404(client, users):
    response = await client.get("/appointments/999", headers=auth_headers(users["admin"]))
    assert response.status_code == 404
    assert response.json()["message"] == "Appointment not found with id: 999"


async def test_booking_flow_over_http(client, users):
    patient, doctor = users["patient"], users["doctor"]
    schedule = await _open_schedule(client, doctor)
    booking = {
        "doctor_id": doctor.id,
        "schedule_id": schedule["id"],
        "appointment_date": "2024-06-01",
        "appointment_time": "09:00:00",
        "reason": "Chest pain",
    }

    created = await client.post("/appointments", json=booking, headers=auth_headers(patient))
    assert created.status_code == 201
    body = created.json()
    assert body["patient_id"] == patient.id
    assert body["status"] == "PENDING"
    assert body["department_name"] == "Cardiology"

    available = await client.get("/doctor-schedules/available?date=2024-06-01", headers=auth_headers(patient))
    assert available.json() == []

    taken = await client.post("/appointments", json=booking, headers=auth_headers(users["other_patient"]))
    assert taken.status_code == 409

    skipped = await client.put(
        f"/appointments/{body['id']}/status?status=COMPLETED", headers=auth_headers(doctor)
    )
    assert skipped.status_code == 400

    cancelled = await client.put(f"/appointments/{body['id']}/cancel", headers=auth_headers(patient))
    assert cancelled.json()["status"] == "CANCELLED"

    available = await client.get("/doctor-schedules/available?date=2024-06-01", headers=auth_headers(patient))
    assert [s["id"] for s in available.json()] == [schedule["id"]]
    assert available.json()[0]["booked_times"] == []


async def test_patient_cannot_read_someone_elses_appointment(client, users):
    schedule = await _open_schedule(client, users["doctor"])
    created = await client.post(
        "/appointments",
        json={
            "doctor_id": users["doctor"].id,
            "schedule_id": schedule["id"],
            "appointment_date": "2024-06-01",
            "appointment_time": "09:00:00",
        },
        headers=auth_headers(users["patient"]),
    )
    response = await client.get(
        f"/appointments/{created.json()['id']}", headers=auth_headers(users["other_patient"])
    )
    assert response.status_code == 403


async def test_departments_are_public(client, users):
    response = await client.get("/departments")
    assert response.status_code == 200
    assert [d["name"] for d in response.json()] == ["Cardiology"]

    doctors = await client.get(f"/departments/{users['department'].id}/doctors")
    assert {d["email"] for d in doctors.json()} == {"doctor@example.com", "doctor2@example.com"}


async def test_signup_otp_endpoints(client, session_factory):
    for _ in range(3):
        response = await client.post("/auth/send-signup-otp", json={"email": "a@x.com"})
        assert response.status_code == 200

    limited = await client.post("/auth/send-signup-otp", json={"email": "a@x.com"})
    assert limited.status_code == 429
    assert limited.json()["success"] is False

    async with session_factory() as session:
        code = (await session.execute(select(OtpModel.code).where(OtpModel.email == "a@x.com"))).scalar_one()

    wrong = "".join(str((int(c) + 1) % 10) for c in code)
    response = await client.post("/auth/verify-signup-otp", json={"email": "a@x.com", "otp": wrong})
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid or expired OTP"}

    # Arabic-Indic digits are rejected by validation
    response = await client.post("/auth/verify-signup-otp", json={"email": "a@x.com", "otp": "١٢٣٤٥٦"})
    assert response.status_code == 422
    response = await client.post(
        "/auth/reset-password",
        json={"email": "a@x.com", "otp": "١٢٣٤٥٦", "new_password": "Changed456?"},
    )
    assert response.status_code == 422

    response = await client.post("/auth/verify-signup-otp", json={"email": "a@x.com", "otp": code})
    assert response.json()["success"] is True


async def test_password_reset_flow(client, users, session_factory):
    response = await client.post("/auth/forgot-password", json={"email": "patient@example.com"})
    assert response.status_code == 200

    async with session_factory() as session:
        code = (
            await session.execute(select(OtpModel.code).where(OtpModel.email == "patient@example.com"))
        ).scalar_one()

    response = await client.post(
        "/auth/reset-password",
        json={"email": "patient@example.com", "otp": code, "new_password": "Changed456?"},
    )
    assert response.status_code == 200

    signin = await client.post(
        "/auth/signin", json={"email": "patient@example.com", "password": "Changed456?"}
    )
    assert signin.status_code == 200


async def test_forgot_password_for_unknown_email(client, users):
    response = await client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 404
