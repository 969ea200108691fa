from __future__ import annotations

import datetime as dt

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings
from .models.base import Base


def utcnow() -> dt.datetime:
    # в БД храним наивное UTC-время
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def make_engine(url: str) -> Engine:
    """
    Поддержка SQLite и PostgreSQL.

    Для SQLite каждая транзакция открывается через BEGIN IMMEDIATE: писатели
    выстраиваются в очередь на уровне БД, и условные UPDATE при принятии
    ставки/торга не упираются в "database is locked" посреди транзакции.
    """
    if url.startswith("sqlite"):
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
            future=True,
        )

        @event.listens_for(eng, "connect")
        def _sqlite_connect(dbapi_conn, _record):
            # транзакциями управляем сами (см. _sqlite_begin)
            dbapi_conn.isolation_level = None

        @event.listens_for(eng, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return eng

    return create_engine(url, pool_pre_ping=True, future=True)


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        bind=eng,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def create_tables(eng: Engine) -> None:
    # импорт моделей, чтобы create_all увидел все таблицы
    from .models import booking, bid, bargain, pricing  # noqa: F401

    Base.metadata.create_all(bind=eng)


# ---------- Engine / Session ----------
engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


# ---------- Dependency ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
