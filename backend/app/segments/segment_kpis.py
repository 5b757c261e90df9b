from __future__ import annotations

from flask import Blueprint, jsonify

from app.auth import login_required
from app.services.dashboard import dashboard_kpis

kpi_bp = Blueprint("kpi_bp", __name__, url_prefix="/api")


@kpi_bp.get("/dashboard-kpis")
@login_required
def get_dashboard_kpis():
    return jsonify(dashboard_kpis().to_dict()), 200
