from app.extensions import db
from app.utils.dates import ageing_bucket, expiry_risk, format_date, inventory_metrics, utcnow


class InventoryLot(db.Model):
    __tablename__ = "inventory_lots"
    __table_args__ = (
        db.UniqueConstraint("batch", "part_number", name="uq_inventory_lots_batch_part"),
        db.CheckConstraint("qty >= 0", name="ck_inventory_lots_qty_non_negative"),
        db.CheckConstraint("weight >= 0", name="ck_inventory_lots_weight_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)

    part_number = db.Column(db.String(100), nullable=False, index=True)
    customer_part_number = db.Column(db.String(100), nullable=False, default="")
    description = db.Column(db.Text, nullable=False, default="")
    uom = db.Column(db.String(20), nullable=False, default="")
    batch = db.Column(db.String(50), nullable=False, index=True)

    mfg_date = db.Column(db.Date, nullable=False, index=True)
    exp_date = db.Column(db.Date, nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False, default=0)
    weight = db.Column(db.Numeric(10, 3), nullable=False, default=0)

    # Point-in-time projections; see refresh_metrics().
    ageing_days = db.Column(db.Integer, nullable=True)
    days_to_expiry = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def refresh_metrics(self, as_of=None) -> None:
        m = inventory_metrics(self.mfg_date, self.exp_date, as_of)
        self.ageing_days = m.ageing_days
        self.days_to_expiry = m.days_to_expiry

    def to_dict(self) -> dict:
        age = self.ageing_days
        left = self.days_to_expiry
        return {
            "id": int(self.id) if self.id is not None else None,
            "part_number": self.part_number,
            "customer_part_number": self.customer_part_number or "",
            "description": self.description or "",
            "uom": self.uom or "",
            "batch": self.batch,
            "mfg_date": self.mfg_date.isoformat() if self.mfg_date else None,
            "exp_date": self.exp_date.isoformat() if self.exp_date else None,
            "mfg_date_display": format_date(self.mfg_date) if self.mfg_date else None,
            "exp_date_display": format_date(self.exp_date) if self.exp_date else None,
            "qty": int(self.qty or 0),
            "weight": float(self.weight or 0),
            "ageing_days": age,
            "days_to_expiry": left,
            "ageing_bucket": ageing_bucket(age) if age is not None else None,
            "expiry_risk": expiry_risk(left) if left is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
