from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from app.services import lots as store
from app.utils.dates import AGEING_BUCKETS, EXPIRY_RISKS, ageing_bucket, expiry_risk

MetricRow = Tuple[Optional[int], Optional[int], Optional[int]]


@dataclass
class DashboardKpis:
    total_stock: int = 0
    total_items: int = 0
    near_expiry_count: int = 0
    ageing_sum: int = 0
    ageing_counted: int = 0
    ageing_buckets: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in AGEING_BUCKETS})
    expiry_risk: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in EXPIRY_RISKS})

    @property
    def percent_near_expiry(self) -> float:
        if not self.total_items:
            return 0.0
        return self.near_expiry_count * 100 / self.total_items

    @property
    def average_ageing(self) -> float:
        if not self.ageing_counted:
            return 0.0
        return self.ageing_sum / self.ageing_counted

    def to_dict(self) -> dict:
        return {
            "total_stock": int(self.total_stock),
            "total_items": int(self.total_items),
            "percent_near_expiry": round(self.percent_near_expiry, 2),
            "average_ageing": round(self.average_ageing, 2),
            "ageing_buckets": dict(self.ageing_buckets),
            "expiry_risk": dict(self.expiry_risk),
        }


def summarize(rows: Iterable[MetricRow]) -> DashboardKpis:
    """Fold (qty, ageing_days, days_to_expiry) rows into dashboard KPIs.

    Lots missing a stored metric count toward totals but not toward that
    metric's buckets or average.
    """
    k = DashboardKpis()
    for qty, age, left in rows:
        k.total_items += 1
        k.total_stock += int(qty or 0)
        if age is not None:
            k.ageing_sum += int(age)
            k.ageing_counted += 1
            k.ageing_buckets[ageing_bucket(int(age))] += 1
        if left is not None:
            risk = expiry_risk(int(left))
            k.expiry_risk[risk] += 1
            if risk == "high":
                k.near_expiry_count += 1
    return k


def dashboard_kpis() -> DashboardKpis:
    return summarize(store.metric_rows())
