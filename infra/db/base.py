# infra/db/base.py
from __future__ import annotations
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from infra.path import database_url

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(db_url: str, *, echo: bool = False) -> Engine:
    connect_args = {}
    if db_url.startswith("sqlite"):
        # coordinator sessions run on worker threads and wait on each other's writes
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(db_url, echo=echo, future=True, connect_args=connect_args)


db_url = database_url()
logger.info("Using database at: %s", db_url)

engine = build_engine(db_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
