# lifton/routers/bargains.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_actor, payload_int
from ..engine.actors import Actor
from ..services import bargains as bargain_service
from ..services.notify import BARGAIN_ACCEPTED, BARGAIN_UPDATED, BOOKING_STATUS_CHANGED, emit

router = APIRouter(tags=["bargains"])


@router.get("/api/bookings/{booking_id}/bargain")
def api_get_bargain(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        thread = bargain_service.get_bargain(db, actor, booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return {"ok": True, "bargain": bargain_service.bargain_view(thread)}


# Предложение или встречная цена; restart=true открывает новый торг после отказа/истечения
@router.post("/api/bookings/{booking_id}/bargain")
def api_propose(
    booking_id: int,
    payload: dict,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    amount = payload_int(payload, "amount", required=True)
    try:
        thread = bargain_service.propose(db, actor, booking_id, amount, restart=bool(payload.get("restart")))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    view = bargain_service.bargain_view(thread)
    emit(background_tasks, BARGAIN_UPDATED, {"booking_id": booking_id, "status": view["status"]})
    return {"ok": True, "bargain": view}


@router.post("/api/bookings/{booking_id}/bargain/accept")
def api_accept_bargain(
    booking_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        thread, b = bargain_service.accept(db, actor, booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    emit(background_tasks, BARGAIN_ACCEPTED, {"booking_id": b.id, "final_fare": thread.final_fare})
    emit(background_tasks, BOOKING_STATUS_CHANGED, {"booking_id": b.id, "status": b.status.value})
    return {
        "ok": True,
        "bargain": bargain_service.bargain_view(thread),
        "booking": b.to_dict(),
    }


@router.post("/api/bookings/{booking_id}/bargain/reject")
def api_reject_bargain(
    booking_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        thread = bargain_service.reject(db, actor, booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    emit(background_tasks, BARGAIN_UPDATED, {"booking_id": booking_id, "status": "rejected"})
    return {"ok": True, "bargain": bargain_service.bargain_view(thread)}
