# leafscan/database/db.py
import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from leafscan.core.config import Config

# Base for ORM models
Base = declarative_base()

_engine = None
_session_factory = None
_lock = threading.Lock()


def get_engine():
    """
    Engine is created on first use so importing models never opens a
    connection pool.
    """
    global _engine
    with _lock:
        if _engine is None:
            _engine = create_engine(
                Config.database_url(),
                pool_pre_ping=True,
                future=True,
            )
    return _engine


def get_session_factory():
    global _session_factory
    engine = get_engine()
    with _lock:
        if _session_factory is None:
            _session_factory = sessionmaker(
                bind=engine,
                autoflush=False,
                autocommit=False,
                future=True,
            )
    return _session_factory
