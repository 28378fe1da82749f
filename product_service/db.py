# product_service/db.py

"""
Database connection handle and session management for the Product Service.

A `Database` owns the SQLAlchemy engine, the session factory and the
"connected" status reported by the health check. One instance is created per
application and stored on `app.state`.
"""
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base class for your ORM models
Base = declarative_base()


def _engine_options(database_url: str, connect_timeout: int) -> dict:
    # pool_pre_ping=True helps maintain healthy connections in a pool
    options = {"pool_pre_ping": True}
    if database_url.startswith("postgresql"):
        options["connect_args"] = {"connect_timeout": connect_timeout}
    elif database_url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a thread pool
        options["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Every session must see the same in-memory database
            options["poolclass"] = StaticPool
    return options


class Database:
    """Connection handle passed to repositories and queried by health checks."""

    def __init__(self, database_url: str, connect_timeout: int = 10):
        self.url = database_url
        self.engine = create_engine(
            database_url, **_engine_options(database_url, connect_timeout)
        )
        # autoflush=False means changes aren't flushed to DB until commit or explicit flush.
        self.SessionLocal = sessionmaker(autoflush=False, bind=self.engine)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self):
        """
        Verify connectivity and ensure tables exist.
        Raises the driver's OperationalError if the database is unreachable.
        """
        try:
            Base.metadata.create_all(bind=self.engine)
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError:
            self._connected = False
            raise
        self._connected = True

    def ping(self) -> bool:
        """Run a trivial query and refresh the connected status."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            self._connected = True
        except SQLAlchemyError as e:
            logger.warning(f"Database ping failed: {e}")
            self._connected = False
        return self._connected

    def session(self):
        return self.SessionLocal()

    def dispose(self):
        self.engine.dispose()
        self._connected = False
