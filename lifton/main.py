# lifton/main.py
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import SessionLocal, create_tables, engine
from .engine.errors import LiftonError
from .routers import (
    admin as admin_router,
    bargains as bargains_router,
    bids as bids_router,
    bookings as bookings_router,
    fares as fares_router,
)
from .services.housekeeping import run_housekeeping

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Lifton Fares")

# --- CORS ---
allowed_origins = (
    [o.strip() for o in settings.ALLOWED_ORIGINS.split(",")]
    if settings.ALLOWED_ORIGINS
    else ["*"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Отказы движка: код и тело берутся из самой ошибки ---
@app.exception_handler(LiftonError)
async def lifton_error_handler(request: Request, exc: LiftonError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# --- Подключение роутеров ---
app.include_router(fares_router.router)
app.include_router(bookings_router.router)
app.include_router(bids_router.router)
app.include_router(bargains_router.router)
app.include_router(admin_router.router)

_housekeeping_stop = asyncio.Event()
_housekeeping_task = None


# --- Инициализация БД и фоновой уборки ---
@app.on_event("startup")
async def on_startup():
    global _housekeeping_task
    create_tables(engine)
    if settings.HOUSEKEEPING_ENABLED:
        _housekeeping_stop.clear()
        _housekeeping_task = asyncio.create_task(
            run_housekeeping(SessionLocal, settings.HOUSEKEEPING_INTERVAL_SEC, _housekeeping_stop)
        )


@app.on_event("shutdown")
async def on_shutdown():
    if _housekeeping_task is not None:
        _housekeeping_stop.set()
        await _housekeeping_task
