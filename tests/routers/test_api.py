"""HTTP-level tests: authentication, error mapping and the main flows."""
from __future__ import annotations


def test_login_sets_cookie_and_returns_token(client, owner_user, password) -> None:
    response = client.post("/api/auth/login", json={"username": "owner", "password": password})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["user"]["username"] == "owner"
    assert body["token"]
    assert "access_token" in response.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["user_id"] == owner_user.id


def test_bad_login_is_401_with_error_body(client, owner_user) -> None:
    response = client.post("/api/auth/login", json={"username": "owner", "password": "nope"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid username or password"}


def test_logout_clears_cookie(client, owner_user, password) -> None:
    client.post("/api/auth/login", json={"username": "owner", "password": password})
    client.post("/api/auth/logout")
    client.cookies.clear()

    assert client.get("/api/auth/me").status_code == 401


def test_me_requires_login(client) -> None:
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Login required"}


def test_garbage_token_is_ignored(client) -> None:
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_list_reads_without_session_are_empty(client) -> None:
    response = client.get("/api/carriers")

    assert response.status_code == 200
    body = response.json()
    assert body["carriers"] == []
    assert body["pagination"]["total"] == 0


def test_account_creation_requires_super_admin(client, actor, auth_headers) -> None:
    response = client.post(
        "/api/accounts",
        json={
            "title": "Ops",
            "slug": "ops",
            "initial_balance": "0",
            "currency": "ZAR",
            "currency_symbol": "R",
        },
        headers=auth_headers(actor),
    )
    assert response.status_code == 403
    assert response.json()["success"] is False


def test_statement_flow(client, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    created = client.post(
        "/api/accounts",
        json={
            "title": "Main",
            "slug": "main",
            "initial_balance": "1000",
            "currency": "ZAR",
            "currency_symbol": "R",
        },
        headers=headers,
    )
    assert created.status_code == 201
    account_id = created.json()["account"]["id"]

    for kind, amount, day in (("credit", "500", "2024-01-02"), ("debit", "200", "2024-01-05")):
        posted = client.post(
            "/api/transactions",
            json={
                "account_id": account_id,
                "type": kind,
                "amount": amount,
                "details": f"{kind} entry",
                "transaction_date": day,
            },
            headers=headers,
        )
        assert posted.status_code == 201

    statement = client.post(
        "/api/print-statement",
        json={"account_slug": "main", "filters": {"start_date": "2024-01-03"}},
        headers=headers,
    ).json()

    assert statement["success"] is True
    assert statement["opening_balance"] == "1500.00"
    assert [line["calculated_balance"] for line in statement["transactions"]] == ["1300.00"]
    assert statement["account"]["current_balance"] == "1300.00"

    listing = client.get("/api/accounts", headers=headers)
    assert listing.headers["cache-control"] == "private, max-age=10"
    assert listing.json()["accounts"][0]["slug"] == "main"

    page = client.get("/accounting/main/statement", headers=headers)
    assert page.status_code == 200
    assert "Opening balance" in page.text


def test_transaction_validation_error_is_400(client, admin, auth_headers) -> None:
    response = client.post(
        "/api/transactions",
        json={"account_id": 1, "type": "credit", "amount": "0", "details": "x"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Amount must be greater than zero"}


def test_schema_errors_use_the_error_envelope(client, actor, auth_headers) -> None:
    response = client.post("/api/invoices/1/payments", json={}, headers=auth_headers(actor))
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "amount" in response.json()["error"]


def test_invoice_payment_flow(client, actor, auth_headers) -> None:
    headers = auth_headers(actor)
    invoice = client.post(
        "/api/invoices",
        json={"sender_company_name": "Fleet Co", "client_company_name": "acme", "subtotal": "1000"},
        headers=headers,
    ).json()["invoice"]

    rejected = client.post(
        f"/api/invoices/{invoice['id']}/payments", json={"amount": "1200"}, headers=headers
    )
    assert rejected.status_code == 400
    assert rejected.json()["error"] == "Payment amount exceeds remaining balance of R1,000.00"

    paid = client.post(
        f"/api/invoices/{invoice['id']}/payments", json={"amount": "400"}, headers=headers
    )
    assert paid.status_code == 201
    body = paid.json()
    assert body["invoice"]["payment_status"] == "partial"
    assert body["invoice"]["remaining_balance"] == "600.00"
    receipt = body["receipt"]

    balance = client.get("/api/companies/ACME/balance", headers=headers).json()["balance"]
    assert balance["due_balance"] == "600.00"

    printed = client.get(f"/receipts/{receipt['id']}/print", headers=headers)
    assert printed.status_code == 200
    assert receipt["receipt_number"] in printed.text

    receipts = client.get(f"/api/invoices/{invoice['id']}/receipts", headers=headers).json()
    assert [item["id"] for item in receipts["receipts"]] == [receipt["id"]]


def test_missing_invoice_is_404(client, actor, auth_headers) -> None:
    response = client.get("/api/invoices/999", headers=auth_headers(actor))
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Invoice not found"}


def test_foreign_invoice_is_403(client, actor, other_actor, auth_headers) -> None:
    invoice = client.post(
        "/api/invoices",
        json={"sender_company_name": "Fleet Co", "client_company_name": "acme", "subtotal": "10"},
        headers=auth_headers(actor),
    ).json()["invoice"]

    response = client.get(f"/api/invoices/{invoice['id']}", headers=auth_headers(other_actor))
    assert response.status_code == 403


def test_duplicate_truck_is_409(client, actor, auth_headers) -> None:
    headers = auth_headers(actor)
    assert client.post("/api/trucks", json={"name": "t1"}, headers=headers).status_code == 201
    response = client.post("/api/trucks", json={"name": "T1"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["success"] is False


def test_trip_fuel_expense_shows_on_truck(client, actor, auth_headers) -> None:
    headers = auth_headers(actor)
    truck = client.post("/api/trucks", json={"name": "t1"}, headers=headers).json()["truck"]
    carrier = client.post(
        "/api/carriers", json={"type": "trip", "truck_id": truck["id"]}, headers=headers
    ).json()["carrier"]

    created = client.post(
        f"/api/carriers/{carrier['id']}/expenses",
        json={"category": "fuel", "liters": "50", "price_per_liter": "20"},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["expense"]["amount"] == "1000.00"

    refreshed = client.get(f"/api/carriers/{carrier['id']}", headers=headers).json()["carrier"]
    assert refreshed["total_expense"] == "1000.00"

    listing = client.get(f"/api/trucks/{truck['id']}/expenses", headers=headers).json()
    assert listing["pagination"]["total"] == 1
    assert listing["expenses"][0]["is_mirror"] is True
    assert listing["summary"]["by_category"]["fuel"] == "1000.00"


def test_users_endpoint_is_admin_only(client, actor, admin, auth_headers) -> None:
    assert client.get("/api/users", headers=auth_headers(actor)).status_code == 403

    created = client.post(
        "/api/users",
        json={"username": "Clerk", "password": "pw"},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    assert created.json()["user"]["username"] == "clerk"
    assert "password_hash" not in created.json()["user"]


def test_statement_with_malformed_date_is_400(client, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    client.post(
        "/api/accounts",
        json={
            "title": "Main",
            "slug": "main",
            "initial_balance": "0",
            "currency": "ZAR",
            "currency_symbol": "R",
        },
        headers=headers,
    )

    response = client.post(
        "/api/print-statement",
        json={"account_slug": "main", "filters": {"start_date": "2024-01-03garbage"}},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid start_date: '2024-01-03garbage'"}


def test_oversized_amount_is_400_not_500(client, admin, auth_headers) -> None:
    response = client.post(
        "/api/transactions",
        json={"account_id": 1, "type": "credit", "amount": "1e30", "details": "x"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "amount is too large"}


def test_company_registry_flow(client, actor, admin, auth_headers) -> None:
    headers = auth_headers(actor)
    created = client.post("/api/companies", json={"name": "acme"}, headers=headers)
    assert created.status_code == 201
    company = created.json()["company"]
    assert company["company_name"] == "ACME"
    assert company["credit_balance"] == "0.00"

    duplicate = client.post("/api/companies", json={"name": "ACME"}, headers=headers)
    assert duplicate.status_code == 409

    carrier = client.post("/api/carriers", json={"type": "trip"}, headers=headers).json()["carrier"]
    client.post(
        f"/api/carriers/{carrier['id']}/cars",
        json={"stock_no": "S1", "name": "Hilux", "chassis": "CH", "company_name": "acme"},
        headers=headers,
    )

    renamed = client.patch(
        f"/api/companies/{company['id']}", json={"name": "Acme Group"}, headers=headers
    )
    assert renamed.json()["company"]["company_name"] == "ACME GROUP"
    cars = client.get(f"/api/carriers/{carrier['id']}/cars", headers=headers).json()["cars"]
    assert cars[0]["company_name"] == "ACME GROUP"

    blocked = client.delete(f"/api/companies/{company['id']}", headers=headers)
    assert blocked.status_code == 409
    assert "assigned in one or more trips" in blocked.json()["error"]

    refused = client.post(
        "/api/companies/ACME GROUP/credit/adjust", json={"delta": "50"}, headers=headers
    )
    assert refused.status_code == 403

    adjusted = client.post(
        "/api/companies/ACME GROUP/credit/adjust",
        json={"delta": "50"},
        headers=auth_headers(admin),
    )
    assert adjusted.json()["balance"]["credit_balance"] == "50.00"

    due = client.post(
        "/api/companies/ACME GROUP/due/adjust",
        json={"delta": "-5"},
        headers=auth_headers(admin),
    )
    assert due.json()["balance"]["due_balance"] == "0.00"


def test_bulk_cars_and_trip_date_sync(client, actor, auth_headers) -> None:
    headers = auth_headers(actor)
    carrier = client.post(
        "/api/carriers", json={"type": "trip", "date": "2024-06-01"}, headers=headers
    ).json()["carrier"]

    bulk = client.post(
        f"/api/carriers/{carrier['id']}/cars/bulk",
        json={
            "cars": [
                {"stock_no": "B1", "name": "Golf", "chassis": "CH1", "company_name": "acme", "date": "2024-01-01"},
                {"stock_no": "B2", "name": "Golf", "company_name": "acme"},
            ]
        },
        headers=headers,
    )
    assert bulk.status_code == 201
    assert bulk.json()["message"] == "1 car(s) added successfully"
    assert [car["stock_no"] for car in bulk.json()["cars"]] == ["B1"]

    synced = client.post(f"/api/carriers/{carrier['id']}/sync-cars-date", headers=headers)
    assert synced.status_code == 200
    assert synced.json()["cars_updated"] == 1
    assert synced.json()["message"] == "Updated 1 cars with trip date"
    assert synced.json()["trip_date"].startswith("2024-06-01")

    cars = client.get(f"/api/carriers/{carrier['id']}/cars", headers=headers).json()["cars"]
    assert cars[0]["date"].startswith("2024-06-01")


def test_dashboard_and_diesel_report(client, actor, admin, auth_headers) -> None:
    headers = auth_headers(actor)
    truck = client.post("/api/trucks", json={"name": "t1"}, headers=headers).json()["truck"]
    carrier = client.post(
        "/api/carriers", json={"type": "trip", "truck_id": truck["id"]}, headers=headers
    ).json()["carrier"]
    client.post(
        f"/api/carriers/{carrier['id']}/cars",
        json={"stock_no": "S1", "name": "Hilux", "chassis": "CH", "amount": "300", "company_name": "acme"},
        headers=headers,
    )
    client.post(
        f"/api/carriers/{carrier['id']}/expenses",
        json={"category": "fuel", "liters": "40", "price_per_liter": "20"},
        headers=headers,
    )

    dashboard = client.get("/api/dashboard", headers=headers).json()
    assert dashboard["stats"] == {
        "total_trips": 1,
        "active_trips": 1,
        "inactive_trips": 0,
        "total_cars": 1,
        "total_amount": "300.00",
    }
    assert dashboard["carriers"][0]["car_count"] == 1
    assert dashboard["carriers"][0]["total_amount"] == "300.00"
    assert dashboard["total_accounts"] == 0

    report = client.get("/api/diesel-expenses", headers=headers).json()
    assert report["overall"]["total_amount"] == "800.00"
    assert report["overall"]["expense_count"] == 1
    row = report["by_truck"][0]
    assert row["truck"]["name"] == "t1"
    assert row["avg_price_per_liter"] == "20.00"
    assert row["expenses"][0]["is_mirror"] is True

    assert client.get("/api/dashboard", headers=auth_headers(admin)).json()["stats"]["total_trips"] == 1


def test_reports_without_session_are_empty(client) -> None:
    dashboard = client.get("/api/dashboard").json()
    assert dashboard["stats"]["total_trips"] == 0
    assert dashboard["carriers"] == []

    report = client.get("/api/diesel-expenses").json()
    assert report["by_truck"] == []
    assert report["overall"]["expense_count"] == 0
