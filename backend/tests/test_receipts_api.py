import base64
from datetime import date

from app.extensions import db
from app.models import InventoryLot


def _receipt(**overrides):
    body = {
        "customer": {"name": "Acme Ltd", "address": "1 Dock Road", "email": "buyer@acme.test", "phone": "555-0100"},
        "items": [{"part_number": "P-100", "qty": 8, "unit_price": 10}],
        "tax_rate": 10,
    }
    body.update(overrides)
    return body


def test_receipt_deducts_fifo_and_returns_pdf(client, app, employee_headers, make_lot):
    jan = make_lot(batch="JAN", mfg_date=date(2024, 1, 1), qty=5)
    feb = make_lot(batch="FEB", mfg_date=date(2024, 2, 1), qty=10)

    r = client.post("/api/receipt", json=_receipt(), headers=employee_headers)
    assert r.status_code == 201, r.get_json()
    body = r.get_json()

    assert body["receipt_number"].startswith("RCP-")
    assert body["totals"] == {"subtotal": 80.0, "tax_rate": 10.0, "tax_amount": 8.0, "grand_total": 88.0}
    assert body["receipt"]["items"][0]["description"] == "Widget"
    assert [d["batch"] for d in body["deductions"]["P-100"]] == ["JAN", "FEB"]
    assert base64.b64decode(body["pdf_base64"]).startswith(b"%PDF")

    with app.app_context():
        assert db.session.get(InventoryLot, jan).qty == 0
        assert db.session.get(InventoryLot, feb).qty == 7


def test_receipt_pdf_download(client, employee_headers, make_lot):
    make_lot(qty=2)
    r = client.post("/api/receipt?format=pdf", json=_receipt(items=[{"part_number": "P-100", "qty": 1}]), headers=employee_headers)
    assert r.status_code == 200
    assert r.mimetype == "application/pdf"
    assert r.data.startswith(b"%PDF")


def test_insufficient_stock_is_reported_and_nothing_changes(client, app, employee_headers, make_lot):
    a = make_lot(part_number="A", batch="1", qty=5)
    b = make_lot(part_number="B", batch="1", qty=15)

    r = client.post(
        "/api/receipt",
        json=_receipt(items=[{"part_number": "A", "qty": 2}, {"part_number": "B", "qty": 20}]),
        headers=employee_headers,
    )
    assert r.status_code == 409
    body = r.get_json()
    assert body["error"] == "insufficient_stock"
    assert (body["part_number"], body["available"], body["requested"]) == ("B", 15, 20)

    with app.app_context():
        assert db.session.get(InventoryLot, a).qty == 5
        assert db.session.get(InventoryLot, b).qty == 15


def test_receipt_validation(client, employee_headers):
    cases = [
        (_receipt(customer={"address": "x"}), "Customer name is required"),
        (_receipt(customer={"name": "x"}), "Customer address is required"),
        (_receipt(customer={"name": "x", "address": "y", "email": "bad"}), "Invalid email format"),
        (_receipt(items=[]), "At least one item is required"),
        (_receipt(items=[{"qty": 1}]), "Part number is required"),
        (_receipt(items=[{"part_number": "P-100", "qty": 0}]), "Quantity must be a positive integer"),
        (_receipt(items=[{"part_number": "P-100", "qty": "two"}]), "Quantity must be a positive integer"),
    ]
    for body, message in cases:
        r = client.post("/api/receipt", json=body, headers=employee_headers)
        assert r.status_code == 400, body
        assert r.get_json()["message"] == message

    r = client.post("/api/receipt", json=_receipt(tax_rate=101), headers=employee_headers)
    assert r.status_code == 400
    assert r.get_json()["field"] == "tax_rate"

    r = client.post(
        "/api/receipt",
        json=_receipt(items=[{"part_number": "P-100", "qty": 1, "unit_price": -1}]),
        headers=employee_headers,
    )
    assert r.status_code == 400


def test_receipt_requires_login(client):
    assert client.post("/api/receipt", json=_receipt()).status_code == 401


def test_malformed_quantity_strings_are_validation_errors(client, employee_headers, make_lot):
    make_lot(qty=5)
    for raw in ("--5", "²", "5.0.0", "٣"):
        r = client.post("/api/receipt", json=_receipt(items=[{"part_number": "P-100", "qty": raw}]), headers=employee_headers)
        assert r.status_code == 400, raw
        assert r.get_json()["message"] == "Quantity must be a positive integer"


def test_render_failure_keeps_stock(client, app, employee_headers, make_lot, monkeypatch):
    lot_id = make_lot(qty=5)

    def broken(*args, **kwargs):
        raise RuntimeError("renderer down")

    monkeypatch.setattr("app.segments.segment_receipts.render_receipt_pdf", broken)
    r = client.post("/api/receipt", json=_receipt(items=[{"part_number": "P-100", "qty": 3}]), headers=employee_headers)
    assert r.status_code == 500
    assert r.get_json()["error"] == "internal"

    with app.app_context():
        assert db.session.get(InventoryLot, lot_id).qty == 5


def test_rejected_receipts_leave_no_part_locks_behind(client, employee_headers):
    from app.services.fulfillment import part_locks

    before = len(part_locks)
    for i in range(20):
        r = client.post(
            "/api/receipt",
            json=_receipt(items=[{"part_number": f"MISSING-{i}", "qty": 1}]),
            headers=employee_headers,
        )
        assert r.status_code == 409
    assert len(part_locks) == before
