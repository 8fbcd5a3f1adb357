import math

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from maintenance_gate.core.config import settings


def build_engine(url: str):
    """create an engine for the configured database url"""
    if url in ("sqlite://", "sqlite:///:memory:"):
        #in-memory sqlite must share one connection across threads
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    #connect and statement timeouts follow the store read timeout
    timeout_ms = int(settings.MAINTENANCE_STORE_TIMEOUT_SECONDS * 1000)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=settings.MAINTENANCE_STORE_TIMEOUT_SECONDS,
        connect_args={
            "connect_timeout": max(1, math.ceil(settings.MAINTENANCE_STORE_TIMEOUT_SECONDS)),
            "options": f"-c statement_timeout={timeout_ms}",
        },
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
