from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from flask import current_app

from app.errors import ApiError, ValidationError
from app.extensions import db
from app.services.lots import upsert_lot
from app.utils.dates import ageing_days, days_to_expiry, format_date, parse_date_string

# Canonical field -> accepted header spellings (compared case-insensitively).
HEADER_ALIASES: Dict[str, tuple] = {
    "part_number": ("jwl part", "part number", "part_number", "part"),
    "customer_part_number": ("customer part", "customer part number", "customer_part_number"),
    "description": ("description",),
    "uom": ("uom", "unit"),
    "batch": ("batch", "batch code"),
    "mfg_date": ("mfg date", "mfg_date", "manufacturing date"),
    "exp_date": ("exp date", "exp_date", "expiry date"),
    "qty": ("qty", "quantity"),
    "weight": ("weight (kg)", "weight", "weight_kg"),
}
REQUIRED_FIELDS = ("part_number", "batch", "mfg_date", "exp_date", "qty")

EXPORT_HEADERS = (
    "JWL Part", "Customer Part", "Description", "UOM", "Batch",
    "MFG Date", "EXP Date", "QTY", "Weight (Kg)", "Ageing Days", "Days to Expiry",
)


@dataclass(frozen=True)
class CsvLotRow:
    part_number: str
    customer_part_number: str
    description: str
    uom: str
    batch: str
    mfg_date: date
    exp_date: date
    qty: int
    weight: Decimal

    def to_values(self) -> dict:
        return {
            "part_number": self.part_number,
            "customer_part_number": self.customer_part_number,
            "description": self.description,
            "uom": self.uom,
            "batch": self.batch,
            "mfg_date": self.mfg_date,
            "exp_date": self.exp_date,
            "qty": self.qty,
            "weight": self.weight,
        }


@dataclass
class RowError:
    line: int
    error: str

    def to_dict(self) -> dict:
        return {"line": self.line, "error": self.error}


@dataclass
class ImportResult:
    total_rows: int = 0
    created: int = 0
    updated: int = 0
    errors: List[RowError] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.updated

    def to_dict(self) -> dict:
        return {
            "message": "CSV file processed successfully",
            "inserted_count": self.processed,
            "created": self.created,
            "updated": self.updated,
            "total_rows": self.total_rows,
            "skipped": [e.to_dict() for e in self.errors],
        }


def _norm(header: str) -> str:
    return (header or "").replace("\ufeff", "").strip().lower()


def map_headers(fieldnames: Iterable[str]) -> Dict[str, str]:
    """Map canonical field names to the header actually present in the file."""
    present = {_norm(h): h for h in (fieldnames or []) if h is not None}
    mapping: Dict[str, str] = {}
    for canonical, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            if alias in present:
                mapping[canonical] = present[alias]
                break
    missing = [f for f in REQUIRED_FIELDS if f not in mapping]
    if missing:
        raise ValidationError(f"CSV is missing required columns: {', '.join(missing)}", field="file")
    return mapping


def _text(raw: dict, mapping: Dict[str, str], name: str) -> str:
    header = mapping.get(name)
    if not header:
        return ""
    return (raw.get(header) or "").strip()


def parse_row(raw: dict, mapping: Dict[str, str]) -> CsvLotRow:
    part = _text(raw, mapping, "part_number")
    batch = _text(raw, mapping, "batch")
    if not part:
        raise ValidationError("Part number is required", field="part_number")
    if not batch:
        raise ValidationError("Batch is required", field="batch")

    mfg = parse_date_string(_text(raw, mapping, "mfg_date"), field="mfg_date")
    exp = parse_date_string(_text(raw, mapping, "exp_date"), field="exp_date")
    if exp < mfg:
        raise ValidationError("Expiry date must not be before manufacturing date", field="exp_date")

    qty_raw = _text(raw, mapping, "qty")
    try:
        qty = int(qty_raw)
    except ValueError:
        raise ValidationError(f"Invalid quantity: {qty_raw!r}", field="qty")
    if qty < 0:
        raise ValidationError("Quantity must be a non-negative integer", field="qty")

    weight_raw = _text(raw, mapping, "weight") or "0"
    try:
        weight = Decimal(weight_raw)
    except InvalidOperation:
        raise ValidationError(f"Invalid weight: {weight_raw!r}", field="weight")
    if not weight.is_finite() or weight < 0:
        raise ValidationError("Weight must be a non-negative number", field="weight")

    return CsvLotRow(
        part_number=part,
        customer_part_number=_text(raw, mapping, "customer_part_number"),
        description=_text(raw, mapping, "description"),
        uom=_text(raw, mapping, "uom"),
        batch=batch,
        mfg_date=mfg,
        exp_date=exp,
        qty=qty,
        weight=weight,
    )


def import_lots_csv(text: str, as_of: Optional[date] = None) -> ImportResult:
    """Parse CSV text and upsert every valid row keyed by (batch, part number).

    Invalid rows are skipped and reported; the valid ones are committed together.
    """
    reader = csv.DictReader(io.StringIO(text))
    mapping = map_headers(reader.fieldnames or [])

    result = ImportResult()
    rows: Dict[tuple, CsvLotRow] = {}
    # Header is line 1.
    for line_no, raw in enumerate(reader, start=2):
        if not any((v or "").strip() for v in raw.values() if isinstance(v, str)):
            continue
        result.total_rows += 1
        try:
            row = parse_row(raw, mapping)
        except ApiError as e:
            current_app.logger.warning("Skipping CSV line %s: %s", line_no, e.message)
            result.errors.append(RowError(line=line_no, error=e.message))
            continue
        # Last occurrence of a key wins, same as sequential upserts.
        rows[(row.batch, row.part_number)] = row

    if not rows:
        raise ValidationError("No valid data found in CSV file", field="file", details={"skipped": [e.to_dict() for e in result.errors]})

    try:
        for row in rows.values():
            _, created = upsert_lot(row.to_values(), as_of)
            if created:
                result.created += 1
            else:
                result.updated += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "CSV upload completed. rows=%s created=%s updated=%s skipped=%s",
        result.total_rows, result.created, result.updated, len(result.errors),
    )
    return result


def export_lots_csv(lots, as_of: Optional[date] = None) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL)
    writer.writerow(EXPORT_HEADERS)
    for lot in lots:
        writer.writerow([
            lot.part_number,
            lot.customer_part_number or "",
            lot.description or "",
            lot.uom or "",
            lot.batch,
            format_date(lot.mfg_date),
            format_date(lot.exp_date),
            int(lot.qty or 0),
            f"{Decimal(lot.weight or 0):.3f}",
            ageing_days(lot.mfg_date, as_of),
            days_to_expiry(lot.exp_date, as_of),
        ])
    return buf.getvalue()
