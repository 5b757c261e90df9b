from __future__ import annotations

import io
import os
from datetime import date

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import current_user

from app.auth import login_required, role_required
from app.errors import ValidationError
from app.extensions import db
from app.models.user import ROLE_MANAGER
from app.services import lots as store
from app.services.csv_import import export_lots_csv, import_lots_csv
from app.utils.dates import date_range, parse_date_string
from app.utils.receipt_pdf import render_inventory_pdf
from app.utils.validation import as_decimal, as_int, json_body, optional_str, query_int, require_str

inventory_bp = Blueprint("inventory_bp", __name__, url_prefix="/api")

ALLOWED_UPLOAD_EXTENSIONS = (".csv",)


def _date_field(data: dict, name: str) -> date:
    raw = data.get(name)
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"{name} is required", field=name)
    return parse_date_string(raw, field=name)


def _lot_values(data: dict, *, partial: bool) -> dict:
    """Validate a lot payload. With partial=True only the keys present are checked."""
    values: dict = {}

    def wanted(name: str) -> bool:
        return not partial or name in data

    for name in ("part_number", "batch"):
        if wanted(name):
            values[name] = require_str(data, name)
    for name in ("customer_part_number", "description", "uom"):
        if wanted(name):
            values[name] = optional_str(data, name) or ""
    if partial and "uom" in values and not values["uom"]:
        raise ValidationError("uom must not be empty", field="uom")
    if wanted("mfg_date"):
        values["mfg_date"] = _date_field(data, "mfg_date")
    if wanted("exp_date"):
        values["exp_date"] = _date_field(data, "exp_date")
    if wanted("qty"):
        values["qty"] = as_int(data.get("qty"), "qty", minimum=0)
    if wanted("weight"):
        values["weight"] = as_decimal(data.get("weight", 0), "weight", minimum=0)
    return values


def _filters_from_args() -> store.LotFilters:
    args = request.args
    return store.LotFilters(
        part_number=(args.get("part_number") or "").strip(),
        customer_part_number=(args.get("customer_part_number") or "").strip(),
        batch=(args.get("batch") or "").strip(),
        search=(args.get("search") or "").strip(),
        mfg_range=date_range(args.get("mfg_start"), args.get("mfg_end"), field="mfg_date"),
        exp_range=date_range(args.get("exp_start"), args.get("exp_end"), field="exp_date"),
        page=query_int("page", 1),
        limit=query_int("limit", store.DEFAULT_PAGE_SIZE),
    )


@inventory_bp.get("/inventory")
@login_required
def list_inventory():
    page = store.query_lots(_filters_from_args())
    return jsonify(page.to_dict()), 200


@inventory_bp.get("/inventory/<int:lot_id>")
@login_required
def get_inventory_item(lot_id: int):
    return jsonify(store.get_lot(lot_id).to_dict()), 200


@inventory_bp.post("/inventory")
@login_required
def create_inventory_item():
    values = _lot_values(json_body(), partial=False)
    lot = store.create_lot(values)
    db.session.commit()
    current_app.logger.info("User %s created lot %s (%s/%s)", current_user.username, lot.id, lot.batch, lot.part_number)
    return jsonify({"message": "Inventory item created successfully", "item": lot.to_dict()}), 201


@inventory_bp.put("/inventory/<int:lot_id>")
@login_required
def update_inventory_item(lot_id: int):
    lot = store.get_lot(lot_id)
    values = _lot_values(json_body(), partial=True)
    if not values:
        raise ValidationError("No updatable fields provided")
    store.update_lot(lot, values)
    db.session.commit()
    current_app.logger.info("User %s updated lot %s", current_user.username, lot.id)
    return jsonify({"message": "Inventory item updated successfully", "item": lot.to_dict()}), 200


@inventory_bp.delete("/inventory/<int:lot_id>")
@login_required
def delete_inventory_item(lot_id: int):
    lot = store.delete_lot(lot_id)
    db.session.commit()
    current_app.logger.info("User %s deleted lot %s (%s/%s)", current_user.username, lot_id, lot.batch, lot.part_number)
    return jsonify({"message": "Inventory item deleted successfully"}), 200


@inventory_bp.get("/inventory/export")
@login_required
def export_inventory():
    fmt = (request.args.get("format") or "csv").strip().lower()
    if fmt not in ("csv", "pdf"):
        raise ValidationError("format must be csv or pdf", field="format")
    lots = store.filtered_lots(_filters_from_args())

    if fmt == "pdf":
        body = render_inventory_pdf(lots)
        return send_file(io.BytesIO(body), mimetype="application/pdf", as_attachment=True, download_name="inventory-export.pdf")
    body = export_lots_csv(lots).encode("utf-8")
    return send_file(io.BytesIO(body), mimetype="text/csv", as_attachment=True, download_name="inventory-export.csv")


@inventory_bp.post("/inventory/refresh-metrics")
@role_required(ROLE_MANAGER)
def refresh_inventory_metrics():
    n = store.refresh_metrics()
    db.session.commit()
    current_app.logger.info("Manager %s refreshed metrics for %s lots", current_user.username, n)
    return jsonify({"ok": True, "updated": n}), 200


@inventory_bp.post("/upload-csv")
@login_required
def upload_csv():
    f = request.files.get("file")
    if not f or not f.filename:
        raise ValidationError("No file uploaded", field="file")
    ext = os.path.splitext(f.filename)[1].lower()
    if ext not in ALLOWED_UPLOAD_EXTENSIONS and f.mimetype != "text/csv":
        raise ValidationError("Only CSV files are allowed", field="file")

    try:
        text = f.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("CSV file must be UTF-8 encoded", field="file")

    result = import_lots_csv(text)
    return jsonify(result.to_dict()), 200


@inventory_bp.get("/unique-parts")
@login_required
def unique_parts():
    return jsonify(store.unique_parts()), 200


@inventory_bp.get("/inventory-summary")
@login_required
def inventory_summary():
    return jsonify(store.inventory_summary()), 200
