from __future__ import annotations

import base64
import io
from decimal import Decimal
from typing import List

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import current_user

from app.auth import login_required
from app.errors import ValidationError
from app.services.fulfillment import LineRequest, fulfill
from app.utils.receipt_pdf import render_receipt_pdf
from app.utils.receipts import Customer, build_receipt
from app.utils.validation import as_decimal, as_int, json_body, optional_email, optional_str, require_str

receipts_bp = Blueprint("receipts_bp", __name__, url_prefix="/api")


def _customer(data: dict) -> Customer:
    raw = data.get("customer")
    if not isinstance(raw, dict):
        raise ValidationError("Customer details are required", field="customer")
    return Customer(
        name=require_str(raw, "name", "Customer name is required"),
        address=require_str(raw, "address", "Customer address is required"),
        email=optional_email(raw),
        phone=optional_str(raw, "phone"),
    )


def _line_requests(data: dict) -> List[LineRequest]:
    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required", field="items")

    out: List[LineRequest] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", field="items")
        part = require_str(item, "part_number", "Part number is required")
        try:
            qty = as_int(item.get("qty"), "qty", minimum=1)
        except ValidationError:
            raise ValidationError("Quantity must be a positive integer", field="qty")
        price = item.get("unit_price")
        unit_price = None if price in (None, "") else as_decimal(price, "unit_price", minimum=Decimal("0"))
        out.append(LineRequest(part_number=part, qty=qty, unit_price=unit_price))
    return out


def _tax_rate(data: dict) -> Decimal:
    raw = data.get("tax_rate")
    if raw in (None, ""):
        return Decimal("0")
    return as_decimal(raw, "tax_rate", minimum=Decimal("0"), maximum=Decimal("100"))


@receipts_bp.post("/receipt")
@login_required
def generate_receipt():
    data = json_body()
    customer = _customer(data)
    requests_ = _line_requests(data)
    tax_rate = _tax_rate(data)
    cfg = current_app.config

    def render(result):
        # Runs before the deduction commits, so if rendering fails no stock is taken.
        receipt = build_receipt(customer, result.lines, tax_rate)
        pdf = render_receipt_pdf(
            receipt,
            company_name=cfg.get("COMPANY_NAME", ""),
            company_address=cfg.get("COMPANY_ADDRESS", ""),
        )
        return receipt, pdf

    result = fulfill(requests_, before_commit=render)
    receipt, pdf_bytes = result.finalized
    current_app.logger.info(
        "User %s generated receipt %s: %s lines, grand total %s",
        current_user.username, receipt.receipt_number, len(receipt.lines), receipt.totals.grand_total,
    )

    if (request.args.get("format") or "").lower() == "pdf":
        return send_file(
            io.BytesIO(pdf_bytes),
            mimetype="application/pdf",
            as_attachment=True,
            download_name=f"receipt_{receipt.receipt_number}.pdf",
        )

    payload = receipt.to_dict()
    return jsonify({
        "ok": True,
        "receipt": payload,
        "receipt_number": receipt.receipt_number,
        "totals": receipt.totals.to_dict(),
        "deductions": {
            part: [d.to_dict() for d in rows] for part, rows in result.deductions.items()
        },
        "pdf_base64": base64.b64encode(pdf_bytes).decode("ascii"),
    }), 201
