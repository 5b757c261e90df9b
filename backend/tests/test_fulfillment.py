import threading
import time
from datetime import date
from decimal import Decimal

import pytest

from app.errors import InsufficientStock, ValidationError
from app.extensions import db
from app.models import InventoryLot
from app.services.fulfillment import LineRequest, PartLocks, fulfill, plan_fifo


def _qty(lot_id):
    return db.session.get(InventoryLot, lot_id).qty


def test_fifo_takes_oldest_lot_first(ctx, make_lot):
    newer = make_lot(batch="FEB", mfg_date=date(2024, 2, 1), qty=10)
    older = make_lot(batch="JAN", mfg_date=date(2024, 1, 1), qty=5)

    result = fulfill([LineRequest("P-100", 8, Decimal("2.50"))])

    assert _qty(older) == 0
    assert _qty(newer) == 7
    plan = result.deductions["P-100"]
    assert [(d.batch, d.qty_deducted, d.qty_after) for d in plan] == [("JAN", 5, 0), ("FEB", 3, 7)]


def test_drained_lot_is_kept(ctx, make_lot):
    lot_id = make_lot(qty=4)
    fulfill([LineRequest("P-100", 4)])
    lot = db.session.get(InventoryLot, lot_id)
    assert lot is not None
    assert lot.qty == 0


def test_insufficient_stock_leaves_lots_untouched(ctx, make_lot):
    a = make_lot(batch="A", mfg_date=date(2024, 1, 1), qty=5)
    b = make_lot(batch="B", mfg_date=date(2024, 2, 1), qty=10)

    with pytest.raises(InsufficientStock) as exc:
        fulfill([LineRequest("P-100", 20)])

    assert exc.value.available == 15
    assert exc.value.requested == 20
    assert exc.value.part_number == "P-100"
    assert (_qty(a), _qty(b)) == (5, 10)


def test_unknown_part_has_nothing_available(ctx):
    with pytest.raises(InsufficientStock) as exc:
        fulfill([LineRequest("NOPE", 1)])
    assert exc.value.available == 0


def test_failure_on_a_later_line_rolls_back_earlier_lines(ctx, make_lot):
    ok = make_lot(part_number="OK-1", batch="X", qty=10)
    short = make_lot(part_number="SHORT-1", batch="Y", qty=1)

    with pytest.raises(InsufficientStock):
        fulfill([LineRequest("OK-1", 6), LineRequest("SHORT-1", 2)])

    assert _qty(ok) == 10
    assert _qty(short) == 1


def test_same_mfg_date_breaks_ties_by_insertion(ctx, make_lot):
    first = make_lot(batch="FIRST", mfg_date=date(2024, 1, 1), qty=3)
    second = make_lot(batch="SECOND", mfg_date=date(2024, 1, 1), qty=3)

    fulfill([LineRequest("P-100", 4)])

    assert _qty(first) == 0
    assert _qty(second) == 2


def test_repeated_part_sees_earlier_deduction(ctx, make_lot):
    make_lot(qty=5)
    with pytest.raises(InsufficientStock) as exc:
        fulfill([LineRequest("P-100", 3), LineRequest("P-100", 3)])
    assert exc.value.available == 2


def test_lines_carry_first_lot_description_and_caller_price(ctx, make_lot):
    make_lot(batch="OLD", mfg_date=date(2023, 1, 1), qty=2, description="Old stock")
    make_lot(batch="NEW", mfg_date=date(2024, 1, 1), qty=2, description="New stock")

    result = fulfill([LineRequest("P-100", 3)])

    line = result.lines[0]
    assert line.description == "Old stock"
    assert line.unit_price == Decimal("0")
    assert line.qty == 3


@pytest.mark.parametrize("requests", [[], [LineRequest("P-100", 0)], [LineRequest("P-100", -1)]])
def test_invalid_requests_are_rejected(ctx, requests):
    with pytest.raises(ValidationError):
        fulfill(requests)


def test_plan_fifo_skips_empty_lots():
    class Lot:
        def __init__(self, id, batch, qty):
            self.id, self.batch, self.qty = id, batch, qty

    plan = plan_fifo([Lot(1, "A", 0), Lot(2, "B", 4), Lot(3, "C", 9)], 6)
    assert [(d.lot_id, d.qty_deducted) for d in plan] == [(2, 4), (3, 2)]


def test_concurrent_requests_never_oversell(app, make_lot):
    lot_id = make_lot(qty=5)
    barrier = threading.Barrier(2)
    outcomes = []

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                fulfill([LineRequest("P-100", 5)])
                outcomes.append("ok")
            except InsufficientStock:
                outcomes.append("insufficient")
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["insufficient", "ok"]
    with app.app_context():
        assert db.session.get(InventoryLot, lot_id).qty == 0


def test_part_locks_are_released_after_use():
    locks = PartLocks()
    with locks.hold(["B", "A", "B"]):
        assert len(locks) == 2
    assert len(locks) == 0

    with pytest.raises(RuntimeError):
        with locks.hold(["C"]):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_part_lock_survives_while_another_request_waits():
    locks = PartLocks()
    entered = threading.Event()
    release = threading.Event()
    sizes = []

    def first():
        with locks.hold(["P"]):
            entered.set()
            release.wait(5)

    def second():
        entered.wait(5)
        with locks.hold(["P"]):
            sizes.append(len(locks))

    t1 = threading.Thread(target=first)
    t2 = threading.Thread(target=second)
    t1.start()
    t2.start()
    deadline = time.monotonic() + 5
    while locks._refs.get("P", 0) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert len(locks) == 1
    release.set()
    t1.join(5)
    t2.join(5)

    assert sizes == [1]
    assert len(locks) == 0


def test_failing_before_commit_rolls_back(ctx, make_lot):
    lot_id = make_lot(qty=5)

    def explode(result):
        raise RuntimeError("render failed")

    with pytest.raises(RuntimeError):
        fulfill([LineRequest("P-100", 2)], before_commit=explode)
    assert _qty(lot_id) == 5

    result = fulfill([LineRequest("P-100", 2)], before_commit=lambda r: len(r.lines))
    assert result.finalized == 1
    assert _qty(lot_id) == 3
