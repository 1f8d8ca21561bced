"""Customer service history, ratings and notifications"""

import pytest

from scoopdash.config import QUEUE_RATING_THRESHOLD
from scoopdash.models import Employee, Service

from .conftest import TODAY_9AM, auth_headers


def test_service_history(client, make_employee, make_customer, make_job):
    employee = make_employee()
    customer = make_customer()
    done = make_job(customer, employee_id=employee.id, status="completed")
    make_job(customer)
    make_job(make_customer())

    headers = auth_headers(customer.user)
    assert len(client.get("/customer/services", headers=headers).json()) == 2

    completed = client.get("/customer/services", params={"status": "completed"}, headers=headers).json()
    assert [s["id"] for s in completed] == [done.id]
    assert completed[0]["employee_name"] == employee.user.full_name


def test_rating_updates_employee_average(client, db_session, make_employee, make_customer, make_job):
    employee = make_employee(rating=0)
    customer = make_customer()
    first = make_job(customer, employee_id=employee.id, status="completed")
    second = make_job(customer, employee_id=employee.id, status="completed")
    headers = auth_headers(customer.user)

    response = client.post(f"/customer/services/{first.id}/rating", json={"rating": 5}, headers=headers)
    assert response.status_code == 200
    assert response.json()["employee_average_rating"] == 5.0

    response = client.post(
        f"/customer/services/{second.id}/rating",
        json={"rating": 4, "feedback": "Missed a spot"},
        headers=headers,
    )
    assert response.json()["employee_average_rating"] == 4.5

    db_session.expire_all()
    assert db_session.get(Employee, employee.id).average_rating == 4.5


def test_rating_unlocks_job_queueing(client, make_employee, make_customer, make_job):
    employee = make_employee(rating=4.0)
    customer = make_customer()
    done = make_job(customer, employee_id=employee.id, status="completed")
    make_job(customer, employee_id=employee.id, status="claimed")
    open_job = make_job(customer)

    client.post(f"/customer/services/{done.id}/rating", json={"rating": 5}, headers=auth_headers(customer.user))

    response = client.post(f"/employee/jobs/{open_job.id}/claim", headers=auth_headers(employee.user))
    assert response.status_code == 200


def test_only_completed_services_can_be_rated(client, make_employee, make_customer, make_job):
    employee = make_employee()
    customer = make_customer()
    job = make_job(customer, employee_id=employee.id, status="claimed")

    response = client.post(f"/customer/services/{job.id}/rating", json={"rating": 5}, headers=auth_headers(customer.user))

    assert response.status_code == 400


def test_cannot_rate_someone_elses_service(client, make_employee, make_customer, make_job):
    employee = make_employee()
    job = make_job(make_customer(), employee_id=employee.id, status="completed")
    other = make_customer()

    response = client.post(f"/customer/services/{job.id}/rating", json={"rating": 1}, headers=auth_headers(other.user))

    assert response.status_code == 404


def test_rating_must_be_one_to_five(client, make_employee, make_customer, make_job):
    employee = make_employee()
    customer = make_customer()
    job = make_job(customer, employee_id=employee.id, status="completed")

    response = client.post(f"/customer/services/{job.id}/rating", json={"rating": 6}, headers=auth_headers(customer.user))

    assert response.status_code == 422


def test_notifications_listing_and_read(client, make_employee, make_customer, make_job):
    employee = make_employee()
    customer = make_customer()
    job = make_job(customer)
    client.post(f"/employee/jobs/{job.id}/claim", headers=auth_headers(employee.user))
    headers = auth_headers(customer.user)

    notifications = client.get("/notifications", headers=headers).json()
    assert [n["type"] for n in notifications] == ["service_claimed"]
    assert notifications[0]["data"] == {"service_id": job.id}

    response = client.post(f"/notifications/{notifications[0]['id']}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert client.get("/notifications", params={"unread_only": True}, headers=headers).json() == []


def test_cannot_read_other_users_notification(client, make_employee, make_customer, make_job):
    employee = make_employee()
    customer = make_customer()
    job = make_job(customer)
    client.post(f"/employee/jobs/{job.id}/claim", headers=auth_headers(employee.user))
    notification_id = client.get("/notifications", headers=auth_headers(customer.user)).json()[0]["id"]

    response = client.post(f"/notifications/{notification_id}/read", headers=auth_headers(employee.user))

    assert response.status_code == 404


def test_near_threshold_average_is_not_rounded_up(client, db_session, make_employee, make_customer, make_job):
    employee = make_employee(rating=0)
    customer = make_customer()
    # 99 fives and 99 fours already rated, the 199th rating brings the mean to 895/199
    db_session.add_all(
        Service(
            customer_id=customer.id,
            employee_id=employee.id,
            status="completed",
            scheduled_date=TODAY_9AM,
            rating=rating,
        )
        for rating in [5] * 99 + [4] * 99
    )
    db_session.commit()
    last = make_job(customer, employee_id=employee.id, status="completed")

    response = client.post(f"/customer/services/{last.id}/rating", json={"rating": 4}, headers=auth_headers(customer.user))

    assert response.json()["employee_average_rating"] == 4.5
    db_session.expire_all()
    stored = db_session.get(Employee, employee.id).average_rating
    assert stored == pytest.approx(895 / 199)
    assert stored < QUEUE_RATING_THRESHOLD

    make_job(customer, employee_id=employee.id, status="claimed")
    open_job = make_job(customer)
    response = client.post(f"/employee/jobs/{open_job.id}/claim", headers=auth_headers(employee.user))
    assert response.status_code == 400
