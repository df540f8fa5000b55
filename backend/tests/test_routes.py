"""HTTP adapter: status codes and error payloads through the Flask test client."""


def _create_order(client, customer_id, **extra):
    body = {
        "customer_id": customer_id,
        "order_date": "2026-01-10",
        "delivery_date": "2026-01-15",
    }
    body.update(extra)
    return client.post("/api/orders", json=body)


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"


def test_order_flow(client, db_session, customer, employee):
    resp = _create_order(client, customer.id, reference_no="ORD-100", records=[
        {"quantity": 10, "wash_type": "regular", "process_types": ["wash", "iron"], "unit_price": "5.00"},
    ])
    assert resp.status_code == 201
    order = resp.get_json()["order"]
    assert order["amount"] == "50.00"
    record_id = order["records"][0]["id"]

    resp = client.post(f"/api/records/{record_id}/assignments", json={
        "order_id": order["id"], "employee_id": employee.id, "quantity": 10,
    })
    assert resp.status_code == 201

    resp = client.post(f"/api/records/{record_id}/assignments", json={
        "order_id": order["id"], "employee_id": employee.id, "quantity": 1,
    })
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "over_assignment"


def test_unknown_order_is_404(client, db_session):
    resp = client.get("/api/orders/999")
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "not_found"


def test_validation_error_is_400(client, db_session, customer):
    resp = _create_order(client, customer.id, delivery_date="2026-01-01")
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "validation_error"


def test_bad_second_record_creates_nothing(client, db_session, customer):
    resp = _create_order(client, customer.id, records=[
        {"quantity": 2, "wash_type": "regular", "process_types": ["wash"]},
        {"quantity": 0, "wash_type": "regular", "process_types": ["wash"]},
    ])

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "validation_error"
    assert client.get("/api/orders").get_json()["orders"] == []


def test_non_numeric_customer_id_is_400(client, db_session):
    resp = _create_order(client, "abc")

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "validation_error"


def test_invalid_transition_is_409(client, db_session, customer):
    order_id = _create_order(client, customer.id).get_json()["order"]["id"]

    resp = client.post(f"/api/orders/{order_id}/status", json={"status": "Delivered"})

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "invalid_transition"
    assert body["details"]["from"] == "Pending"


def test_price_and_pricing_history(client, db_session, order, priced_record):
    resp = client.post(f"/api/records/{priced_record.id}/price", json={"unit_price": "7.50", "actor": "desk"})
    assert resp.status_code == 200
    assert resp.get_json()["record"]["total_price"] == "75.00"

    resp = client.get(f"/api/billing/orders/{order.id}/pricing")
    assert resp.status_code == 200
    assert resp.get_json()["current"]["amount"] == "75.00"


def test_invoice_flow(client, db_session, customer, order, priced_record):
    resp = client.post("/api/billing/invoices", json={
        "customer_id": customer.id,
        "order_ids": [order.id],
        "tax_rate": "0.0800",
        "issue_date": "2026-01-20",
    })
    assert resp.status_code == 201
    invoice = resp.get_json()["invoice"]
    assert invoice["subtotal"] == "50.00"
    assert invoice["tax_amount"] == "4.00"
    assert invoice["total"] == "54.00"
    assert len(invoice["records"]) == 1

    resp = client.post("/api/billing/invoices", json={"customer_id": customer.id, "order_ids": [order.id]})
    assert resp.status_code == 422
    assert resp.get_json()["code"] == "no_billable_records"

    resp = client.post(f"/api/billing/invoices/{invoice['id']}/pay", json={"payment_method": "card"})
    assert resp.status_code == 200
    assert resp.get_json()["invoice"]["status"] == "paid"

    resp = client.post(f"/api/billing/invoices/{invoice['id']}/pay", json={})
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "already_paid"
