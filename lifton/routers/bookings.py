# lifton/routers/bookings.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_actor, get_pricing_snapshot, payload_int, payload_point
from ..engine.actors import Actor
from ..engine.fare import PricingSnapshot
from ..realtime import hub
from ..services import bookings as booking_service
from ..services.notify import BOOKING_CREATED, BOOKING_STATUS_CHANGED, emit

router = APIRouter(tags=["bookings"])


def _status_event(b) -> dict:
    return {
        "booking_id": b.id,
        "status": b.status.value,
        "driver_id": b.driver_id,
        "final_fare": b.final_fare,
    }


@router.post("/api/bookings")
def api_create_booking(
    payload: dict,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    snapshot: PricingSnapshot = Depends(get_pricing_snapshot),
):
    """
    Создание заявки. Расстояние, оценка, страховка и комиссия считаются на
    сервере по координатам; присланные клиентом суммы игнорируются.
    offered_fare: цена пассажира (от 70% оценки до самой оценки), необязательна.
    """
    try:
        b = booking_service.create_booking(
            db, actor, snapshot,
            service_type=payload.get("service_type"),
            pickup_address=payload.get("pickup_address") or "",
            pickup=payload_point(payload, "pickup"),
            drop_address=payload.get("drop_address") or "",
            drop=payload_point(payload, "drop"),
            rider_category=payload.get("rider_category") or "standard",
            insurance_opt_in=bool(payload.get("insurance_opt_in")),
            payment_mode=payload.get("payment_mode") or "cash",
            offered_fare=payload_int(payload, "offered_fare"),
            notes=payload.get("notes"),
        )
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    emit(background_tasks, BOOKING_CREATED, {"booking_id": b.id, "service_type": b.service_type.value})
    return {"ok": True, "booking": b.to_dict()}


@router.get("/api/bookings")
def api_list_bookings(
    limit: int = Query(50, le=200),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    items = booking_service.list_bookings(db, actor, limit=limit)
    return {"ok": True, "items": [b.to_dict() for b in items]}


@router.get("/api/bookings/{booking_id}")
def api_get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        b = booking_service.get_booking(db, booking_id)
        booking_service.ensure_visible(b, actor)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return {"ok": True, "booking": b.to_dict()}


# Водитель берёт заявку по цене пассажира
@router.post("/api/bookings/{booking_id}/accept")
def api_driver_accept_estimate(
    booking_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        b = booking_service.accept_estimate(db, actor, booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    emit(background_tasks, BOOKING_STATUS_CHANGED, _status_event(b))
    return {"ok": True, "booking": b.to_dict()}


# Отмена пассажиром
@router.post("/api/bookings/{booking_id}/cancel")
def api_cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        b = booking_service.cancel_booking(db, actor, booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    emit(background_tasks, BOOKING_STATUS_CHANGED, _status_event(b))
    return {"ok": True, "id": b.id, "status": b.status.value}


@router.post("/api/bookings/{booking_id}/status")
def api_move_status(
    booking_id: int,
    payload: dict,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    raw = (payload.get("status") or "").lower().strip()
    try:
        b = booking_service.move_status(db, actor, booking_id, raw)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    emit(background_tasks, BOOKING_STATUS_CHANGED, _status_event(b))
    return {"ok": True, "id": b.id, "status": b.status.value}


# ---------- Real-time stream (SSE) ----------
@router.get("/api/stream")
def api_stream():
    async def gen():
        # первый «комментарий» держит канал открытым за прокси
        yield ": ok\n\n"
        async for msg in hub.subscribe():
            yield msg

    return StreamingResponse(gen(), media_type="text/event-stream")
