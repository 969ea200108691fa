# lifton/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .db import get_db
from .engine.actors import Actor, Role
from .engine.fare import PricingSnapshot
from .services.pricing import load_snapshot
from .utils.security import decode_jwt


# ------------------ Кто вызывает ------------------

def get_current_actor(
    authorization: Optional[str] = Header(None),
) -> Actor:
    """
    Bearer-токен с sub (id пользователя) и role (rider/driver/admin).
    Роль берём из токена как есть.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Нужен токен авторизации",
        )

    data = decode_jwt(token.strip())
    if not data:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Токен недействителен")

    try:
        return Actor(id=int(data.get("sub")), role=Role(data.get("role")))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Токен без роли или id")


# ------------------ Admin guard ------------------

def ensure_is_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.is_admin:
        return actor
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Admin access required",
    )


# ------------------ Разбор полей запроса ------------------

def payload_int(payload: dict, key: str, required: bool = False) -> int | None:
    raw = payload.get(key)
    if raw in (None, ""):
        if required:
            raise HTTPException(status_code=400, detail=f"Поле {key} обязательно")
        return None
    if isinstance(raw, bool):
        raise HTTPException(status_code=400, detail=f"Поле {key}: ожидается целое число")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Поле {key}: ожидается целое число")
    if not value.is_integer():
        raise HTTPException(status_code=400, detail=f"Поле {key}: ожидается целое число")
    return int(value)


def payload_point(payload: dict, key: str) -> tuple[float, float]:
    p = payload.get(key) or {}
    if not isinstance(p, dict):
        raise HTTPException(status_code=400, detail=f"Поле {key}: ожидается объект с lat/lng")
    return p.get("lat"), p.get("lng")


# ------------------ Снимок тарифов ------------------

def get_pricing_snapshot(db: Session = Depends(get_db)) -> PricingSnapshot:
    # на каждый запрос свой снимок; движок его не кеширует и не меняет
    return load_snapshot(db)
