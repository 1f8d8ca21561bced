"""Employee profile and service area management"""

from .conftest import auth_headers


def test_get_service_areas(client, make_employee):
    employee = make_employee(areas=(("80202", 10), ("80205", 5)))

    body = client.get("/employee/service-areas", headers=auth_headers(employee.user)).json()

    assert [(a["zip_code"], a["travel_distance"]) for a in body["service_areas"]] == [
        ("80202", 10),
        ("80205", 5),
    ]
    assert body["max_travel_distance"] == 50


def test_replace_service_areas(client, make_employee):
    employee = make_employee()
    headers = auth_headers(employee.user)

    response = client.put(
        "/employee/service-areas",
        json={"service_areas": [{"zip_code": "80203-1234", "travel_distance": 15}, {"zip_code": "80210"}]},
        headers=headers,
    )

    assert response.status_code == 200
    areas = response.json()["service_areas"]
    assert [(a["zip_code"], a["travel_distance"]) for a in areas] == [("80203", 15), ("80210", 10)]

    body = client.get("/employee/service-areas", headers=headers).json()
    assert [a["zip_code"] for a in body["service_areas"]] == ["80203", "80210"]


def test_clear_service_areas(client, make_employee):
    employee = make_employee()
    response = client.put(
        "/employee/service-areas", json={"service_areas": []}, headers=auth_headers(employee.user)
    )
    assert response.status_code == 200
    assert response.json()["service_areas"] == []


def test_rejects_malformed_zip(client, make_employee):
    employee = make_employee()
    response = client.put(
        "/employee/service-areas",
        json={"service_areas": [{"zip_code": "12ab5"}]},
        headers=auth_headers(employee.user),
    )
    assert response.status_code == 400


def test_rejects_unknown_zip(client, make_employee):
    employee = make_employee()
    response = client.put(
        "/employee/service-areas",
        json={"service_areas": [{"zip_code": "00000"}]},
        headers=auth_headers(employee.user),
    )
    assert response.status_code == 400


def test_rejects_travel_distance_out_of_range(client, make_employee):
    employee = make_employee()
    response = client.put(
        "/employee/service-areas",
        json={"service_areas": [{"zip_code": "80202", "travel_distance": 75}]},
        headers=auth_headers(employee.user),
    )
    assert response.status_code == 400
    assert "Travel distance" in response.json()["detail"]


def test_rejects_duplicate_zips(client, make_employee):
    employee = make_employee()
    response = client.put(
        "/employee/service-areas",
        json={"service_areas": [{"zip_code": "80202"}, {"zip_code": "80202-0001"}]},
        headers=auth_headers(employee.user),
    )
    assert response.status_code == 400


def test_profile_round_trip(client, make_employee):
    employee = make_employee()
    headers = auth_headers(employee.user)

    response = client.put(
        "/employee/profile",
        json={
            "phone": "(303) 555-0100",
            "cash_app_username": "scooperjoe",
            "stripe_connect_account_id": "acct_1AbC",
        },
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["phone"] == "+13035550100"
    assert body["cash_app_username"] == "$scooperjoe"
    assert body["stripe_connect_account_id"] == "acct_1AbC"
    assert client.get("/employee/profile", headers=headers).json()["email"] == employee.user.email


def test_profile_rejects_bad_stripe_account(client, make_employee):
    employee = make_employee()
    response = client.put(
        "/employee/profile",
        json={"stripe_connect_account_id": "cus_123"},
        headers=auth_headers(employee.user),
    )
    assert response.status_code == 422
