from __future__ import annotations

from io import BytesIO
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from app.utils.dates import ageing_days, days_to_expiry, format_date
from app.utils.receipts import Receipt


def _truncate(text: str, max_len: int = 30) -> str:
    text = text or ""
    return text[:max_len] + ("..." if len(text) > max_len else "")


def render_receipt_pdf(receipt: Receipt, company_name: str = "", company_address: str = "") -> bytes:
    """Render a one-page A4 receipt. Amounts are formatted to 2 decimals here only."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    left = 50
    right = width - 50

    y = height - 60

    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(width / 2, y, company_name or "Inventory Management System")
    y -= 20
    if company_address:
        c.setFont("Helvetica", 10)
        c.drawCentredString(width / 2, y, company_address)
        y -= 24

    c.setFont("Helvetica-Bold", 14)
    c.drawCentredString(width / 2, y, "RECEIPT")
    y -= 28

    c.setFont("Helvetica", 10)
    c.drawString(left, y, f"Receipt No: {receipt.receipt_number}")
    c.drawRightString(right, y, f"Date: {format_date(receipt.created_at)}")
    y -= 26

    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y, "Customer Information:")
    y -= 16
    c.setFont("Helvetica", 10)
    cust = receipt.customer
    for label, value in (("Name", cust.name), ("Address", cust.address), ("Email", cust.email), ("Phone", cust.phone)):
        if value:
            c.drawString(left, y, f"{label}: {value}")
            y -= 15
    y -= 12

    cols = (left, left + 100, left + 300, left + 350, left + 430)
    c.setFont("Helvetica-Bold", 10)
    for x, title in zip(cols, ("Part Number", "Description", "Qty", "Unit Price", "Total")):
        c.drawString(x, y, title)
    y -= 6
    c.line(left, y, right, y)
    y -= 16

    c.setFont("Helvetica", 9)
    for ln in receipt.lines:
        if y < 120:
            c.showPage()
            y = height - 60
            c.setFont("Helvetica", 9)
        row = ln.to_dict()
        c.drawString(cols[0], y, _truncate(ln.part_number, 18))
        c.drawString(cols[1], y, _truncate(ln.description))
        c.drawString(cols[2], y, str(ln.qty))
        c.drawString(cols[3], y, f"{row['unit_price']:.2f}")
        c.drawString(cols[4], y, f"{row['total_price']:.2f}")
        y -= 20

    c.line(left, y + 10, right, y + 10)
    y -= 14

    totals = receipt.totals.to_dict()
    c.setFont("Helvetica", 10)
    c.drawString(cols[3], y, "Subtotal:")
    c.drawRightString(right, y, f"{totals['subtotal']:.2f}")
    y -= 15
    c.drawString(cols[3], y, f"Tax ({totals['tax_rate']:g}%):")
    c.drawRightString(right, y, f"{totals['tax_amount']:.2f}")
    y -= 18
    c.setFont("Helvetica-Bold", 12)
    c.drawString(cols[3], y, "Grand Total:")
    c.drawRightString(right, y, f"{totals['grand_total']:.2f}")

    c.setFont("Helvetica", 8)
    c.drawCentredString(width / 2, 50, "Thank you for your business!")

    c.showPage()
    c.save()
    return buf.getvalue()


def render_inventory_pdf(lots: Iterable, as_of: Optional[date] = None) -> bytes:
    """Inventory report: one row per lot with current ageing/expiry projections."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=landscape(A4))
    width, height = landscape(A4)

    def header(y: float) -> float:
        c.setFont("Helvetica-Bold", 9)
        for x, title in zip(cols, titles):
            c.drawString(x, y, title)
        c.line(30, y - 4, width - 30, y - 4)
        c.setFont("Helvetica", 8)
        return y - 16

    cols = (30, 120, 210, 400, 480, 550, 620, 680, 730)
    titles = ("Part", "Cust Part", "Description", "Batch", "MFG Date", "EXP Date", "QTY", "Age", "Days Left")

    y = height - 40
    c.setFont("Helvetica-Bold", 18)
    c.drawString(30, y, "Inventory Report")
    y -= 16
    c.setFont("Helvetica", 10)
    c.drawString(30, y, f"Generated: {datetime.now(timezone.utc).isoformat(timespec='seconds')}")
    y = header(y - 24)

    for lot in lots:
        if y < 40:
            c.showPage()
            y = header(height - 40)
        values = (
            _truncate(lot.part_number, 16),
            _truncate(lot.customer_part_number or "", 16),
            _truncate(lot.description or ""),
            _truncate(lot.batch, 14),
            format_date(lot.mfg_date),
            format_date(lot.exp_date),
            str(int(lot.qty or 0)),
            str(ageing_days(lot.mfg_date, as_of)),
            str(days_to_expiry(lot.exp_date, as_of)),
        )
        for x, v in zip(cols, values):
            c.drawString(x, y, v)
        y -= 14

    c.showPage()
    c.save()
    return buf.getvalue()
