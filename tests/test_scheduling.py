"""Admin scheduling and customer booking of services"""

from datetime import date, datetime

from scoopdash.models import Notification, Service
from scoopdash.routes.schedules import service_dates

from .conftest import auth_headers

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def test_service_dates_on_weekday():
    assert service_dates(date(2025, 6, 9), date(2025, 6, 22), "Tuesday") == [
        date(2025, 6, 10),
        date(2025, 6, 17),
    ]
    assert service_dates(date(2025, 6, 11), date(2025, 6, 13), "monday") == []


def test_admin_schedules_locked_job(client, db_session, make_user, make_employee, make_customer):
    admin = make_user("admin")
    employee = make_employee()
    customer = make_customer()

    response = client.post(
        "/admin/services",
        json={"customer_id": customer.id, "scheduled_date": "2025-06-10T09:00:00", "potential_earnings": 22.5},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "scheduled"
    assert body["is_locked"] is True
    assert body["potential_earnings"] == 22.5
    assert body["service_type"] == "one_time"

    board = client.get("/employee/jobs/available", headers=auth_headers(employee.user)).json()
    assert board["jobs"] == []

    client.post("/cron/unlock-jobs", headers=CRON_HEADERS)
    board = client.get("/employee/jobs/available", headers=auth_headers(employee.user)).json()
    assert [j["id"] for j in board["jobs"]] == [body["id"]]
    assert board["jobs"][0]["potential_earnings"] == 22.5

    notifications = db_session.query(Notification).filter(Notification.user_id == customer.user_id).all()
    assert [n.type for n in notifications] == ["service_scheduled"]


def test_admin_schedule_converts_offset_to_utc(client, make_user, make_customer):
    admin = make_user("admin")
    customer = make_customer()

    body = client.post(
        "/admin/services",
        json={"customer_id": customer.id, "scheduled_date": "2025-06-10T09:00:00-06:00"},
        headers=auth_headers(admin),
    ).json()

    assert body["scheduled_date"] == "2025-06-10T15:00:00"
    assert body["potential_earnings"] == 20.0


def test_admin_schedule_errors(client, make_user, make_employee, make_customer):
    admin = make_user("admin")
    payload = {"customer_id": 999, "scheduled_date": "2025-06-10T09:00:00"}
    assert client.post("/admin/services", json=payload, headers=auth_headers(admin)).status_code == 404

    no_address = make_customer(zip_code=None)
    payload["customer_id"] = no_address.id
    assert client.post("/admin/services", json=payload, headers=auth_headers(admin)).status_code == 400

    employee = make_employee()
    assert client.post("/admin/services", json=payload, headers=auth_headers(employee.user)).status_code == 403


def test_schedule_range_from_service_days(client, db_session, make_user, make_customer):
    admin = make_user("admin")
    tuesday = make_customer(service_day="Tuesday")
    friday = make_customer(service_day="Friday")
    make_customer()
    payload = {"start_date": "2025-06-09", "end_date": "2025-06-22"}

    response = client.post("/admin/services/schedule", json=payload, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["created"] == 4
    assert response.json()["skipped"] == 0
    tuesday_dates = [
        s.scheduled_date
        for s in db_session.query(Service).filter(Service.customer_id == tuesday.id).order_by(Service.scheduled_date)
    ]
    assert tuesday_dates == [datetime(2025, 6, 10, 7, 0), datetime(2025, 6, 17, 7, 0)]
    friday_services = db_session.query(Service).filter(Service.customer_id == friday.id).all()
    assert all(s.is_locked and s.service_type == "weekly" for s in friday_services)

    again = client.post("/admin/services/schedule", json=payload, headers=auth_headers(admin)).json()
    assert again == {"created": 0, "skipped": 4, "service_ids": []}


def test_schedule_range_validation(client, make_user):
    admin = make_user("admin")
    headers = auth_headers(admin)

    backwards = {"start_date": "2025-06-20", "end_date": "2025-06-10"}
    assert client.post("/admin/services/schedule", json=backwards, headers=headers).status_code == 422

    too_long = {"start_date": "2025-06-01", "end_date": "2025-08-01"}
    assert client.post("/admin/services/schedule", json=too_long, headers=headers).status_code == 422


def test_customer_books_one_time_visit(client, make_customer):
    customer = make_customer()
    headers = auth_headers(customer.user)

    response = client.post("/customer/services", json={"service_date": "2025-06-12", "notes": "Side gate"}, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["service_type"] == "one_time"
    assert body["scheduled_date"] == "2025-06-12T07:00:00"
    assert body["notes"] == "Side gate"
    assert client.get("/customer/services", headers=headers).json()[0]["id"] == body["id"]

    again = client.post("/customer/services", json={"service_date": "2025-06-12"}, headers=headers)
    assert again.status_code == 409


def test_customer_cannot_book_in_the_past(client, make_customer):
    customer = make_customer()
    response = client.post("/customer/services", json={"service_date": "2025-06-09"}, headers=auth_headers(customer.user))
    assert response.status_code == 400


def test_booking_uses_business_timezone(client, make_customer, monkeypatch):
    monkeypatch.setattr("scoopdash.services.job_automation.BUSINESS_TIMEZONE", "America/Denver")
    customer = make_customer()

    body = client.post(
        "/customer/services", json={"service_date": "2025-06-12"}, headers=auth_headers(customer.user)
    ).json()

    # 07:00 MDT
    assert body["scheduled_date"] == "2025-06-12T13:00:00"


def test_only_customers_book(client, make_employee):
    employee = make_employee()
    response = client.post("/customer/services", json={"service_date": "2025-06-12"}, headers=auth_headers(employee.user))
    assert response.status_code == 403
