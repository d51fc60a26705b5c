from datetime import date


def _create_contract(client, headers, owner, occupant, prop, **overrides):
    payload = {
        "number": "C-100",
        "property_id": prop.id,
        "owner_contact_id": owner.id,
        "tenant_contact_id": occupant.id,
        "start_date": "2024-01-01",
        "end_date": "2024-03-31",
        "rent_amount": "1500000",
        "payment_day": 5,
        "late_fee_type": "percent",
        "late_fee_value": "5",
    }
    payload.update(overrides)
    return client.post("/api/contracts", json=payload, headers=headers)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["database"] == "ok"


def test_requests_need_a_tenant_token(client, app):
    from flask_jwt_extended import create_access_token

    assert client.get("/api/invoices").status_code == 401
    token = create_access_token(identity="nobody")
    resp = client.get("/api/invoices", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403

    token = create_access_token(identity="nobody", additional_claims={"tenant_id": "acme"})
    resp = client.get("/api/invoices", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_contract_lifecycle_over_http(client, auth_headers, owner, occupant, prop):
    resp = _create_contract(client, auth_headers, owner, occupant, prop)
    assert resp.status_code == 201, resp.get_json()
    contract = resp.get_json()
    assert contract["status"] == "draft"
    assert contract["rent_amount"] == "1500000.00"

    resp = client.post(f"/api/contracts/{contract['id']}/activate", headers=auth_headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["contract"]["status"] == "active"
    assert [i["due_date"] for i in body["invoices"]] == ["2024-01-05", "2024-02-05", "2024-03-05"]

    resp = client.post(f"/api/contracts/{contract['id']}/activate", headers=auth_headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "contract_already_active"


def test_overlapping_contract_returns_409(client, auth_headers, owner, occupant, prop):
    assert _create_contract(client, auth_headers, owner, occupant, prop, status="signed").status_code == 201
    resp = _create_contract(client, auth_headers, owner, occupant, prop, number="C-101")
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "overlapping_contract"


def test_invalid_contract_returns_400(client, auth_headers, owner, occupant, prop):
    resp = _create_contract(client, auth_headers, owner, occupant, prop, payment_day=31)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"

    resp = _create_contract(client, auth_headers, owner, occupant, prop, start_date="01/02/2024")
    assert resp.status_code == 400


def test_payments_over_http(client, auth_headers, owner, occupant, prop):
    contract_id = _create_contract(client, auth_headers, owner, occupant, prop).get_json()["id"]
    invoice = client.post(f"/api/contracts/{contract_id}/activate", headers=auth_headers).get_json()["invoices"][0]

    resp = client.post("/api/payments", json={"invoice_id": invoice["id"], "amount": "900000"}, headers=auth_headers)
    assert resp.status_code == 201
    assert resp.get_json()["invoice"]["status"] == "partial"

    resp = client.post("/api/payments", json={"invoice_id": invoice["id"], "amount": "600000.01"}, headers=auth_headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "overpayment"

    resp = client.post("/api/payments", json={"invoice_id": invoice["id"], "amount": "600000", "method": "cash"}, headers=auth_headers)
    payment = resp.get_json()["payment"]
    assert resp.get_json()["invoice"]["status"] == "paid"

    resp = client.delete(f"/api/payments/{payment['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["invoice"]["amount_paid"] == "900000.00"
    assert resp.get_json()["invoice"]["status"] == "partial"


def test_invoice_status_and_late_fee_endpoints(client, auth_headers, owner, occupant, prop, clock):
    contract_id = _create_contract(client, auth_headers, owner, occupant, prop).get_json()["id"]
    invoice = client.post(f"/api/contracts/{contract_id}/activate", headers=auth_headers).get_json()["invoices"][0]

    resp = client.get(f"/api/invoices/{invoice['id']}/status?as_of=2024-01-10", headers=auth_headers)
    assert resp.get_json()["status"] == "overdue"
    assert resp.get_json()["persisted"] is False

    clock.set(date(2024, 1, 10))
    resp = client.post(f"/api/invoices/{invoice['id']}/late-fee", headers=auth_headers)
    assert resp.get_json()["applied"] is True
    assert resp.get_json()["invoice"]["late_fee"] == "75000.00"

    resp = client.post(f"/api/invoices/{invoice['id']}/late-fee", headers=auth_headers)
    assert resp.get_json()["applied"] is False

    resp = client.post(f"/api/invoices/{invoice['id']}/recalc", headers=auth_headers)
    assert resp.get_json()["totals"]["total"] == "1575000.00"


def test_manual_invoice_over_http(client, auth_headers, owner, occupant, prop):
    contract_id = _create_contract(client, auth_headers, owner, occupant, prop).get_json()["id"]
    resp = client.post("/api/invoices", json={
        "contract_id": contract_id,
        "issue_date": "2024-01-01",
        "due_date": "2024-01-20",
        "charges": [{"description": "Deposit", "amount": "3000000"}],
    }, headers=auth_headers)
    assert resp.status_code == 201
    invoice = resp.get_json()
    assert invoice["status"] == "draft"
    assert invoice["charges"][0]["kind"] == "other"

    resp = client.post(f"/api/invoices/{invoice['id']}/charges", json={"description": "Cleaning", "amount": "50000"}, headers=auth_headers)
    assert resp.status_code == 201
    assert resp.get_json()["total_amount"] == "3050000.00"

    resp = client.post(f"/api/invoices/{invoice['id']}/issue", headers=auth_headers)
    assert resp.get_json()["status"] == "issued"

    listed = client.get("/api/invoices?status=issued", headers=auth_headers).get_json()
    assert listed["total"] == 1


def test_tenants_cannot_see_each_other(client, app, auth_headers, other_tenant, owner, occupant, prop):
    from flask_jwt_extended import create_access_token

    contract_id = _create_contract(client, auth_headers, owner, occupant, prop).get_json()["id"]
    token = create_access_token(identity="intruder", additional_claims={"tenant_id": other_tenant.id})
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get(f"/api/contracts/{contract_id}", headers=headers).status_code == 404
    assert client.post(f"/api/contracts/{contract_id}/activate", headers=headers).status_code == 404
    assert client.get("/api/contracts", headers=headers).get_json()["total"] == 0


def test_contacts_properties_and_policies(client, auth_headers, owner, occupant, prop):
    resp = client.post("/api/contacts", json={"full_name": "Gina Guarantor", "roles": ["guarantor"]}, headers=auth_headers)
    assert resp.status_code == 201
    assert resp.get_json()["roles"] == ["guarantor"]
    assert client.post("/api/contacts", json={"full_name": "X", "roles": ["boss"]}, headers=auth_headers).status_code == 400

    resp = client.post("/api/properties", json={"code": "APT-102", "name": "Apartment 102", "list_rent": "1200000"}, headers=auth_headers)
    assert resp.status_code == 201
    assert resp.get_json()["status"] == "available"
    assert client.post("/api/properties", json={"code": "APT-102", "name": "Dup"}, headers=auth_headers).status_code == 409

    contract_id = _create_contract(client, auth_headers, owner, occupant, prop).get_json()["id"]
    insurer = client.post("/api/insurers", json={"name": "SafeRent", "policy_type": "collective"}, headers=auth_headers).get_json()
    resp = client.post("/api/policies", json={
        "policy_number": "POL-1",
        "insurer_id": insurer["id"],
        "contract_id": contract_id,
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
    }, headers=auth_headers)
    assert resp.status_code == 201
    contract = client.get(f"/api/contracts/{contract_id}", headers=auth_headers).get_json()
    assert contract["policy_id"] == resp.get_json()["id"]

    assert client.delete(f"/api/contacts/{owner.id}", headers=auth_headers).status_code == 400


def test_dashboard_stats(client, auth_headers, owner, occupant, prop):
    contract_id = _create_contract(client, auth_headers, owner, occupant, prop).get_json()["id"]
    invoice = client.post(f"/api/contracts/{contract_id}/activate", headers=auth_headers).get_json()["invoices"][0]
    client.post("/api/payments", json={"invoice_id": invoice["id"], "amount": "750000"}, headers=auth_headers)

    stats = client.get("/api/dashboard/stats", headers=auth_headers).get_json()
    assert stats["issued"] == "1500000.00"
    assert stats["collected"] == "750000.00"
    assert stats["recovery"] == "16.7"
    assert stats["active_contracts"] == 1

    activity = client.get("/api/dashboard/activity", headers=auth_headers).get_json()["activity"]
    assert {"contract.activated", "payment.recorded"} <= {entry["action"] for entry in activity}


def test_invalid_invoice_amounts_return_400(client, auth_headers, owner, occupant, prop):
    contract = _create_contract(client, auth_headers, owner, occupant, prop).get_json()
    invoices = client.post(f"/api/contracts/{contract['id']}/activate", headers=auth_headers).get_json()["invoices"]
    url = f"/api/invoices/{invoices[0]['id']}"

    for field in ("tax", "other_charges"):
        resp = client.patch(url, json={field: "abc"}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"

    resp = client.patch(url, json={"tax": "250.50"}, headers=auth_headers)
    assert resp.status_code == 200
    assert client.get(url, headers=auth_headers).get_json()["total_amount"] == "1500250.50"


def test_active_contract_status_cannot_go_back(client, auth_headers, owner, occupant, prop):
    contract = _create_contract(client, auth_headers, owner, occupant, prop).get_json()
    client.post(f"/api/contracts/{contract['id']}/activate", headers=auth_headers)
    url = f"/api/contracts/{contract['id']}"

    resp = client.patch(url, json={"status": "draft"}, headers=auth_headers)
    assert resp.status_code == 400
    assert client.get(url, headers=auth_headers).get_json()["status"] == "active"

    resp = client.patch(url, json={"status": "closed"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "closed"
