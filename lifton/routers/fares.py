# lifton/routers/fares.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..deps import get_current_actor, get_pricing_snapshot, payload_point
from ..engine.actors import Actor
from ..engine.fare import PricingSnapshot
from ..services.bookings import quote
from ..services.pricing import snapshot_to_public

router = APIRouter(tags=["fares"])


@router.get("/api/pricing")
def api_pricing(snapshot: PricingSnapshot = Depends(get_pricing_snapshot)):
    return {"ok": True, **snapshot_to_public(snapshot)}


@router.post("/api/fares/quote")
def api_quote(
    payload: dict,
    actor: Actor = Depends(get_current_actor),
    snapshot: PricingSnapshot = Depends(get_pricing_snapshot),
):
    """
    Оценка поездки: расстояние по координатам, цена, ETA, страховка,
    комиссия платформы и сравнение с конкурентами.
    """
    try:
        q = quote(
            snapshot,
            payload.get("service_type"),
            payload_point(payload, "pickup"),
            payload_point(payload, "drop"),
            rider_category=payload.get("rider_category") or "standard",
            insurance=bool(payload.get("insurance")),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"ok": True, "quote": q}
