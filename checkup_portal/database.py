"""
Database engine initialisation and schema definition.
"""

import sys
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.exc import OperationalError

from checkup_portal.config import DB_URI, SQLITE_BUSY_TIMEOUT_SECONDS
from checkup_portal.errors import PersistenceError

metadata = MetaData()

identities = Table(
    "identities", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(150), nullable=False),
    Column("secret_hash", String(255), nullable=False),
    Column("role", String(16), nullable=False),
    Column("created_at", String(40), nullable=False),
    UniqueConstraint("username", "role", name="uq_identity_username_role"),
)

checkup_requests = Table(
    "checkup_requests", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", Integer, ForeignKey("identities.id"), nullable=False, index=True),
    Column("dentist_id", Integer, ForeignKey("identities.id"), nullable=False, index=True),
    Column("status", String(16), nullable=False),
    Column("created_at", String(40), nullable=False),
)

checkup_results = Table(
    "checkup_results", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # at most one result per request
    Column("request_id", Integer, ForeignKey("checkup_requests.id"), nullable=False, unique=True),
    Column("notes", Text, nullable=False),
    Column("created_at", String(40), nullable=False),
)

checkup_result_images = Table(
    "checkup_result_images", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("result_id", Integer, ForeignKey("checkup_results.id"), nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("ref", String(512), nullable=False),
    UniqueConstraint("result_id", "position", name="uq_result_image_position"),
)


def init_engine(db_uri: str = None, create: bool = True):
    """Create a SQLAlchemy engine, verify the connection and ensure the schema."""
    db_uri = db_uri or DB_URI
    connect_args = {}
    if db_uri.startswith("sqlite"):
        # Flask serves requests on worker threads that share the pool.
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
    engine = create_engine(db_uri, echo=False, future=True, connect_args=connect_args)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    if create:
        metadata.create_all(engine)
    print("[init] Connected to DB.")
    return engine


@contextmanager
def store_errors():
    """Report store outages as PersistenceError instead of leaking driver errors."""
    try:
        yield
    except OperationalError as e:
        print(f"[ERROR] Database operation failed: {e}", file=sys.stderr)
        raise PersistenceError("Storage unavailable, try again later") from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: datetime) -> str:
    return value.isoformat()


def from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)
