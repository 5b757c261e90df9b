"""Persistence operations over inventory lots.

Functions here stage changes on ``db.session``; callers own the commit so a
sequence of store calls can share one transaction.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_

from app.errors import Conflict, NotFound, ValidationError
from app.extensions import db
from app.models import InventoryLot

LOT_FIELDS = (
    "part_number",
    "customer_part_number",
    "description",
    "uom",
    "batch",
    "mfg_date",
    "exp_date",
    "qty",
    "weight",
)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@dataclass
class LotFilters:
    part_number: str = ""
    customer_part_number: str = ""
    batch: str = ""
    search: str = ""
    mfg_range: Optional[Tuple[date, date]] = None
    exp_range: Optional[Tuple[date, date]] = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE


@dataclass
class LotPage:
    items: List[InventoryLot]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    def to_dict(self) -> dict:
        return {
            "data": [x.to_dict() for x in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


def get_lot(lot_id: int) -> InventoryLot:
    lot = db.session.get(InventoryLot, int(lot_id))
    if not lot:
        raise NotFound("Inventory item not found")
    return lot


def find_lot_by_key(batch: str, part_number: str) -> Optional[InventoryLot]:
    return InventoryLot.query.filter_by(batch=batch, part_number=part_number).first()


def find_lots_by_part(part_number: str, *, for_update: bool = False) -> List[InventoryLot]:
    """Lots for a part, oldest manufacture first; ties by insertion order."""
    q = (
        InventoryLot.query
        .filter(InventoryLot.part_number == part_number)
        .order_by(InventoryLot.mfg_date.asc(), InventoryLot.id.asc())
    )
    if for_update:
        q = q.with_for_update()
    return q.all()


def update_lot_quantity(lot: InventoryLot, new_qty: int) -> InventoryLot:
    if new_qty < 0:
        raise ValidationError(f"Quantity for lot {lot.id} cannot go negative", field="qty")
    lot.qty = int(new_qty)
    db.session.add(lot)
    return lot


def _validate_lot_values(values: Dict[str, Any]) -> None:
    if "qty" in values and int(values["qty"]) < 0:
        raise ValidationError("Quantity must be a non-negative integer", field="qty")
    if "weight" in values and values["weight"] < 0:
        raise ValidationError("Weight must be a non-negative number", field="weight")
    mfg = values.get("mfg_date")
    exp = values.get("exp_date")
    if mfg and exp and exp < mfg:
        raise ValidationError("Expiry date must not be before manufacturing date", field="exp_date")


def create_lot(values: Dict[str, Any], as_of: Optional[date] = None) -> InventoryLot:
    _validate_lot_values(values)
    if find_lot_by_key(values["batch"], values["part_number"]):
        raise Conflict(
            "Inventory item with this batch and part number already exists",
            details={"batch": values["batch"], "part_number": values["part_number"]},
        )
    lot = InventoryLot(**{k: values[k] for k in LOT_FIELDS if k in values})
    lot.refresh_metrics(as_of)
    db.session.add(lot)
    return lot


def update_lot(lot: InventoryLot, values: Dict[str, Any], as_of: Optional[date] = None) -> InventoryLot:
    merged = {k: getattr(lot, k) for k in ("mfg_date", "exp_date")}
    merged.update(values)
    _validate_lot_values(merged)

    new_batch = values.get("batch", lot.batch)
    new_part = values.get("part_number", lot.part_number)
    if (new_batch, new_part) != (lot.batch, lot.part_number):
        other = find_lot_by_key(new_batch, new_part)
        if other and other.id != lot.id:
            raise Conflict(
                "Inventory item with this batch and part number already exists",
                details={"batch": new_batch, "part_number": new_part},
            )

    dates_changed = any(
        k in values and values[k] != getattr(lot, k) for k in ("mfg_date", "exp_date")
    )
    for k in LOT_FIELDS:
        if k in values:
            setattr(lot, k, values[k])
    if dates_changed or lot.ageing_days is None or lot.days_to_expiry is None:
        lot.refresh_metrics(as_of)
    db.session.add(lot)
    return lot


def upsert_lot(values: Dict[str, Any], as_of: Optional[date] = None) -> Tuple[InventoryLot, bool]:
    """Insert or overwrite the lot keyed by (batch, part_number). Returns (lot, created)."""
    _validate_lot_values(values)
    lot = find_lot_by_key(values["batch"], values["part_number"])
    created = lot is None
    if created:
        lot = InventoryLot()
    for k in LOT_FIELDS:
        if k in values:
            setattr(lot, k, values[k])
    lot.refresh_metrics(as_of)
    db.session.add(lot)
    return lot, created


def delete_lot(lot_id: int) -> InventoryLot:
    lot = get_lot(lot_id)
    db.session.delete(lot)
    return lot


def _filtered_query(filters: LotFilters):
    q = InventoryLot.query

    if filters.part_number:
        q = q.filter(InventoryLot.part_number.ilike(f"%{filters.part_number}%"))
    if filters.customer_part_number:
        q = q.filter(InventoryLot.customer_part_number.ilike(f"%{filters.customer_part_number}%"))
    if filters.batch:
        q = q.filter(InventoryLot.batch.ilike(f"%{filters.batch}%"))
    if filters.mfg_range:
        q = q.filter(InventoryLot.mfg_date.between(*filters.mfg_range))
    if filters.exp_range:
        q = q.filter(InventoryLot.exp_date.between(*filters.exp_range))
    if filters.search:
        like = f"%{filters.search}%"
        q = q.filter(or_(
            InventoryLot.description.ilike(like),
            InventoryLot.batch.ilike(like),
            InventoryLot.part_number.ilike(like),
            InventoryLot.customer_part_number.ilike(like),
        ))
    return q


def query_lots(filters: LotFilters) -> LotPage:
    q = _filtered_query(filters)

    page = max(1, int(filters.page or 1))
    limit = max(1, min(MAX_PAGE_SIZE, int(filters.limit or DEFAULT_PAGE_SIZE)))

    total = q.count()
    items = (
        q.order_by(InventoryLot.created_at.desc(), InventoryLot.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return LotPage(items=items, total=int(total), page=page, limit=limit)


def filtered_lots(filters: LotFilters) -> List[InventoryLot]:
    """Every lot matching `filters` (pagination ignored), grouped by part then FIFO order."""
    return (
        _filtered_query(filters)
        .order_by(InventoryLot.part_number.asc(), InventoryLot.mfg_date.asc(), InventoryLot.id.asc())
        .all()
    )


def unique_parts() -> Dict[str, List[str]]:
    parts = db.session.query(InventoryLot.part_number).distinct().order_by(InventoryLot.part_number.asc()).all()
    customer_parts = (
        db.session.query(InventoryLot.customer_part_number)
        .distinct()
        .order_by(InventoryLot.customer_part_number.asc())
        .all()
    )
    return {
        "part_numbers": [p for (p,) in parts],
        "customer_part_numbers": [c for (c,) in customer_parts if c],
    }


def inventory_summary() -> List[dict]:
    available = func.sum(InventoryLot.qty)
    rows = (
        db.session.query(InventoryLot.part_number, InventoryLot.description, available.label("available_qty"))
        .group_by(InventoryLot.part_number, InventoryLot.description)
        .having(available > 0)
        .order_by(InventoryLot.part_number.asc())
        .all()
    )
    return [
        {"part_number": part, "description": desc or "", "available_qty": int(qty or 0)}
        for part, desc, qty in rows
    ]


def metric_rows() -> Iterable[Tuple[int, Optional[int], Optional[int]]]:
    return db.session.query(InventoryLot.qty, InventoryLot.ageing_days, InventoryLot.days_to_expiry).all()


def total_stock() -> int:
    return int(db.session.query(func.coalesce(func.sum(InventoryLot.qty), 0)).scalar() or 0)


def lot_count() -> int:
    return int(db.session.query(func.count(InventoryLot.id)).scalar() or 0)


def refresh_metrics(as_of: Optional[date] = None) -> int:
    """Recompute stored ageing/expiry projections for every lot. Returns rows touched."""
    n = 0
    for lot in InventoryLot.query.all():
        lot.refresh_metrics(as_of)
        n += 1
    return n
