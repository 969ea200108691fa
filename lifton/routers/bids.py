# lifton/routers/bids.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_actor, payload_int
from ..engine.actors import Actor
from ..services import bids as bid_service
from ..services.notify import BID_ACCEPTED, BID_SUBMITTED, BOOKING_STATUS_CHANGED, emit

router = APIRouter(tags=["bids"])


# Водитель делает ставку
@router.post("/api/bookings/{booking_id}/bids")
def api_submit_bid(
    booking_id: int,
    payload: dict,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    amount = payload_int(payload, "amount", required=True)
    try:
        bid = bid_service.submit_bid(db, actor, booking_id, amount)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    emit(background_tasks, BID_SUBMITTED, {"booking_id": booking_id, "bid_id": bid.id})
    return {"ok": True, "bid": bid_service.bid_view(bid)}


# Живые ставки по заявке, дешёвые сверху; is_lowest считается при чтении
@router.get("/api/bookings/{booking_id}/bids")
def api_list_bids(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        items = bid_service.list_bids(db, actor, booking_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return {"ok": True, "items": items}


# Пассажир принимает ставку (назначение водителя)
@router.post("/api/bids/{bid_id}/accept")
def api_accept_bid(
    bid_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        b = bid_service.accept_bid(db, actor, bid_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    emit(background_tasks, BID_ACCEPTED, {"booking_id": b.id, "bid_id": bid_id, "driver_id": b.driver_id})
    emit(background_tasks, BOOKING_STATUS_CHANGED, {"booking_id": b.id, "status": b.status.value})
    return {"ok": True, "booking_id": b.id, "status": b.status.value, "final_fare": b.final_fare}
