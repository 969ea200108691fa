# lifton/routers/admin.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import ensure_is_admin
from ..engine.actors import Actor
from ..realtime import hub
from ..services.housekeeping import expire_stale
from ..services.pricing import load_snapshot, snapshot_to_public, upsert_competitor_price, upsert_pricing_rule

router = APIRouter(tags=["admin"])


@router.put("/api/admin/pricing/{service_type}")
def api_admin_upsert_pricing(
    service_type: str,
    payload: dict,
    background_tasks: BackgroundTasks,
    admin: Actor = Depends(ensure_is_admin),
    db: Session = Depends(get_db),
):
    """
    Тариф услуги: base_fare, per_km_rate, minimum_fare, surge_multiplier (>= 1), is_active.
    Недостающие поля берутся из текущего тарифа.
    """
    try:
        upsert_pricing_rule(db, service_type, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    background_tasks.add_task(hub.publish, "pricing_updated", {"service_type": service_type})
    return {"ok": True, **snapshot_to_public(load_snapshot(db))}


@router.put("/api/admin/competitors/{competitor}/{service_type}")
def api_admin_upsert_competitor(
    competitor: str,
    service_type: str,
    payload: dict,
    admin: Actor = Depends(ensure_is_admin),
    db: Session = Depends(get_db),
):
    try:
        row = upsert_competitor_price(db, competitor, service_type, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"ok": True, "id": row.id}


# ручной запуск уборки просроченных ставок и торгов
@router.post("/api/admin/housekeeping")
def api_admin_housekeeping(
    admin: Actor = Depends(ensure_is_admin),
    db: Session = Depends(get_db),
):
    return {"ok": True, "expired": expire_stale(db)}
