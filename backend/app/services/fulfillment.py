"""FIFO stock deduction for receipt requests.

A request is fulfilled all-or-nothing: every line is deducted inside one
database transaction and any failure rolls the whole request back.

Concurrent requests for the same part are serialised two ways: lot rows are
read ``FOR UPDATE`` (effective on PostgreSQL) and, within one process, a
per-part lock is held from the first read until commit/rollback. The lock is
what protects SQLite, which ignores ``FOR UPDATE``.
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from flask import current_app

from app.errors import InsufficientStock, ValidationError
from app.extensions import db
from app.services.lots import find_lots_by_part, update_lot_quantity
from app.utils.receipts import ReceiptLine, to_decimal


@dataclass(frozen=True)
class LineRequest:
    part_number: str
    qty: int
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class Deduction:
    lot_id: int
    batch: str
    qty_before: int
    qty_deducted: int

    @property
    def qty_after(self) -> int:
        return self.qty_before - self.qty_deducted

    def to_dict(self) -> dict:
        return {
            "lot_id": self.lot_id,
            "batch": self.batch,
            "qty_before": self.qty_before,
            "qty_deducted": self.qty_deducted,
            "qty_after": self.qty_after,
        }


@dataclass
class FulfillmentResult:
    lines: List[ReceiptLine] = field(default_factory=list)
    deductions: Dict[str, List[Deduction]] = field(default_factory=OrderedDict)
    finalized: Any = None


class PartLocks:
    """Process-local mutex per part number.

    An entry lives only while some request holds or waits on it, so the map
    is bounded by in-flight requests rather than by every part ever asked for.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._refs: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, part_number: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(part_number)
            if lock is None:
                lock = threading.Lock()
                self._locks[part_number] = lock
            self._refs[part_number] = self._refs.get(part_number, 0) + 1
            return lock

    def _checkin(self, part_number: str) -> None:
        with self._guard:
            left = self._refs[part_number] - 1
            if left:
                self._refs[part_number] = left
            else:
                del self._refs[part_number]
                del self._locks[part_number]

    @contextmanager
    def hold(self, part_numbers: Sequence[str]) -> Iterator[None]:
        # Sorted acquisition keeps two multi-part requests from deadlocking.
        with ExitStack() as stack:
            for part in sorted(set(part_numbers)):
                lock = self._checkout(part)
                stack.callback(self._checkin, part)
                stack.enter_context(lock)
            yield


part_locks = PartLocks()


def plan_fifo(lots, requested: int) -> List[Deduction]:
    """Walk lots oldest-first taking stock until `requested` is covered.

    `lots` must already be in FIFO order. The caller checks availability.
    """
    remaining = int(requested)
    plan: List[Deduction] = []
    for lot in lots:
        if remaining <= 0:
            break
        have = int(lot.qty or 0)
        take = min(remaining, have)
        if take <= 0:
            continue
        plan.append(Deduction(lot_id=int(lot.id), batch=lot.batch, qty_before=have, qty_deducted=take))
        remaining -= take
    return plan


def _fulfill_line(req: LineRequest) -> tuple[ReceiptLine, List[Deduction]]:
    lots = find_lots_by_part(req.part_number, for_update=True)
    available = sum(int(x.qty or 0) for x in lots)
    if req.qty > available:
        raise InsufficientStock(req.part_number, available, req.qty)

    plan = plan_fifo(lots, req.qty)
    by_id = {int(x.id): x for x in lots}
    for d in plan:
        update_lot_quantity(by_id[d.lot_id], d.qty_after)
    # Flush so a later line for the same part sees this deduction.
    db.session.flush()

    line = ReceiptLine(
        part_number=req.part_number,
        description=(lots[0].description or "") if lots else "",
        qty=int(req.qty),
        unit_price=to_decimal(req.unit_price),
    )
    return line, plan


def fulfill(
    requests: Sequence[LineRequest],
    before_commit: Optional[Callable[[FulfillmentResult], Any]] = None,
) -> FulfillmentResult:
    """Deduct stock for every requested line, FIFO by manufacturing date.

    Raises InsufficientStock for the first line that cannot be covered; in
    that case no lot is changed by this call.

    `before_commit` runs after every line is deducted but before the commit,
    with the part locks still held. Its return value is kept on
    ``result.finalized``; if it raises, the deductions are rolled back.
    """
    if not requests:
        raise ValidationError("At least one item is required", field="items")
    for r in requests:
        if int(r.qty) <= 0:
            raise ValidationError("Quantity must be a positive integer", field="items.qty")

    result = FulfillmentResult()
    with part_locks.hold([r.part_number for r in requests]):
        # Start from a clean transaction so reads happen after the lock is held.
        db.session.rollback()
        try:
            for r in requests:
                line, plan = _fulfill_line(r)
                result.lines.append(line)
                result.deductions.setdefault(r.part_number, []).extend(plan)
            if before_commit is not None:
                result.finalized = before_commit(result)
            db.session.commit()
        except InsufficientStock as e:
            db.session.rollback()
            current_app.logger.info(
                "Fulfilment rejected: part=%s available=%s requested=%s",
                e.part_number, e.available, e.requested,
            )
            raise
        except Exception:
            db.session.rollback()
            raise
    return result
