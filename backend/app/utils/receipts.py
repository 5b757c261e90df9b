from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Sequence


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # via str() so 0.1 stays 0.1 rather than its binary expansion
    return Decimal(str(value))


def _money(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01")))


@dataclass(frozen=True)
class Customer:
    name: str
    address: str
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "address": self.address, "email": self.email, "phone": self.phone}


@dataclass(frozen=True)
class ReceiptLine:
    part_number: str
    description: str
    qty: int
    unit_price: Decimal = Decimal("0")

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.qty) * to_decimal(self.unit_price)

    def to_dict(self) -> dict:
        return {
            "part_number": self.part_number,
            "description": self.description,
            "qty": int(self.qty),
            "unit_price": _money(to_decimal(self.unit_price)),
            "total_price": _money(self.line_total),
        }


@dataclass(frozen=True)
class ReceiptTotals:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": _money(self.subtotal),
            "tax_rate": float(self.tax_rate),
            "tax_amount": _money(self.tax_amount),
            "grand_total": _money(self.grand_total),
        }


def calculate_totals(lines: Sequence[ReceiptLine], tax_rate: Any = None) -> ReceiptTotals:
    """subtotal = sum(qty * unit_price); tax = subtotal * rate / 100; no rounding."""
    rate = to_decimal(tax_rate)
    subtotal = sum((ln.line_total for ln in lines), Decimal("0"))
    tax_amount = subtotal * rate / Decimal(100)
    return ReceiptTotals(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        grand_total=subtotal + tax_amount,
    )


def generate_receipt_number() -> str:
    return f"RCP-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class Receipt:
    receipt_number: str
    created_at: datetime
    customer: Customer
    lines: List[ReceiptLine]
    totals: ReceiptTotals

    def to_dict(self) -> dict:
        return {
            "receipt_number": self.receipt_number,
            "created_at": self.created_at.isoformat(),
            "customer": self.customer.to_dict(),
            "items": [ln.to_dict() for ln in self.lines],
            **self.totals.to_dict(),
        }


def build_receipt(customer: Customer, lines: Sequence[ReceiptLine], tax_rate: Any = None) -> Receipt:
    return Receipt(
        receipt_number=generate_receipt_number(),
        created_at=datetime.now(timezone.utc),
        customer=customer,
        lines=list(lines),
        totals=calculate_totals(lines, tax_rate),
    )
