"""Claiming jobs and the claimed -> in_progress -> completed lifecycle"""

from datetime import datetime, timedelta

from scoopdash.config import ARRIVAL_WINDOW_MINUTES
from scoopdash.domain.jobs.repository import JobRepository
from scoopdash.models import Notification, Service

from .conftest import DEFAULT_NOW, auth_headers


def _claim(client, job, employee):
    return client.post(f"/employee/jobs/{job.id}/claim", headers=auth_headers(employee.user))


def test_claim_assigns_job(client, db_session, make_employee, make_customer, make_job):
    employee = make_employee()
    customer = make_customer()
    job = make_job(customer)

    response = _claim(client, job, employee)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["job"]["status"] == "claimed"
    assert body["active_job_count"] == 1

    db_session.expire_all()
    job = db_session.get(Service, job.id)
    assert job.employee_id == employee.id
    assert job.claimed_at == DEFAULT_NOW
    assert job.arrival_deadline == DEFAULT_NOW + timedelta(minutes=ARRIVAL_WINDOW_MINUTES)
    assert (
        db_session.query(Notification)
        .filter(Notification.user_id == customer.user_id, Notification.type == "service_claimed")
        .count()
        == 1
    )


def test_second_claim_conflicts(client, make_employee, make_customer, make_job):
    first = make_employee()
    second = make_employee()
    job = make_job(make_customer())

    assert _claim(client, job, first).status_code == 200
    response = _claim(client, job, second)

    assert response.status_code == 409


def test_conditional_update_has_single_winner(db_session, make_employee, make_customer, make_job):
    first = make_employee()
    second = make_employee()
    job = make_job(make_customer())
    deadline = DEFAULT_NOW + timedelta(hours=2)

    won = JobRepository.claim_job(db_session, job.id, first.id, DEFAULT_NOW, deadline, False)
    lost = JobRepository.claim_job(db_session, job.id, second.id, DEFAULT_NOW, deadline, False)

    assert won is True
    assert lost is False
    db_session.expire_all()
    assert db_session.get(Service, job.id).employee_id == first.id


def test_conditional_update_enforces_single_active_job(db_session, make_employee, make_customer, make_job):
    employee = make_employee(rating=3.0)
    customer = make_customer()
    make_job(customer, employee_id=employee.id, status="claimed")
    job = make_job(customer)
    deadline = DEFAULT_NOW + timedelta(hours=2)

    assert not JobRepository.claim_job(db_session, job.id, employee.id, DEFAULT_NOW, deadline, True)
    assert JobRepository.claim_job(db_session, job.id, employee.id, DEFAULT_NOW, deadline, False)


def test_low_rated_employee_limited_to_one_job(client, make_employee, make_customer, make_job):
    employee = make_employee(rating=4.4)
    customer = make_customer()
    first = make_job(customer)
    second = make_job(customer)

    assert _claim(client, first, employee).status_code == 200
    response = _claim(client, second, employee)

    assert response.status_code == 400
    assert "Finish your current job" in response.json()["detail"]


def test_high_rated_employee_can_queue(client, make_employee, make_customer, make_job):
    employee = make_employee(rating=4.5)
    customer = make_customer()
    first = make_job(customer)
    second = make_job(customer)

    assert _claim(client, first, employee).status_code == 200
    response = _claim(client, second, employee)

    assert response.status_code == 200
    assert response.json()["active_job_count"] == 2
    assert response.json()["can_queue_more"] is True


def test_claim_outside_operating_hours(client, clock, make_employee, make_customer, make_job):
    clock.now = datetime(2025, 6, 10, 20, 0, 0)
    employee = make_employee()
    job = make_job(make_customer())

    assert _claim(client, job, employee).status_code == 400


def test_claim_missing_job(client, make_employee):
    employee = make_employee()
    response = client.post("/employee/jobs/9999/claim", headers=auth_headers(employee.user))
    assert response.status_code == 404


def test_claim_locked_job(client, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer(), is_locked=True)
    assert _claim(client, job, employee).status_code == 400


def test_claim_outside_service_area(client, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer(zip_code="10001", latitude=40.7506, longitude=-73.9972))

    response = _claim(client, job, employee)

    assert response.status_code == 400
    assert "outside your service areas" in response.json()["detail"]


def test_claim_job_without_zip(client, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer(zip_code=None))
    assert _claim(client, job, employee).status_code == 400


def test_full_lifecycle(client, db_session, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer())
    headers = auth_headers(employee.user)

    assert _claim(client, job, employee).status_code == 200

    active = client.get("/employee/jobs/active", headers=headers).json()
    assert [j["id"] for j in active] == [job.id]

    response = client.post(f"/employee/jobs/{job.id}/start", headers=headers)
    assert response.status_code == 200
    assert response.json()["job"]["status"] == "in_progress"

    response = client.post(
        f"/employee/jobs/{job.id}/complete", json={"notes": "Gate was open"}, headers=headers
    )
    assert response.status_code == 200
    body = response.json()["job"]
    assert body["status"] == "completed"
    assert body["notes"] == "Gate was open"

    assert client.get("/employee/jobs/active", headers=headers).json() == []


def test_start_requires_claimed_status(client, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer(), employee_id=employee.id, status="completed")

    response = client.post(f"/employee/jobs/{job.id}/start", headers=auth_headers(employee.user))

    assert response.status_code == 400


def test_release_returns_job_to_board(client, db_session, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer())
    headers = auth_headers(employee.user)
    _claim(client, job, employee)

    response = client.post(f"/employee/jobs/{job.id}/release", headers=headers)

    assert response.status_code == 200
    db_session.expire_all()
    job = db_session.get(Service, job.id)
    assert job.status == "scheduled"
    assert job.employee_id is None
    assert job.arrival_deadline is None


def test_lifecycle_actions_require_assignment(client, make_employee, make_customer, make_job):
    owner = make_employee()
    intruder = make_employee()
    job = make_job(make_customer(), employee_id=owner.id, status="claimed")
    headers = auth_headers(intruder.user)

    for action in ("start", "release", "complete"):
        response = client.post(f"/employee/jobs/{job.id}/{action}", headers=headers)
        assert response.status_code == 403
