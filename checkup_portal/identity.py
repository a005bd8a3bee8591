"""
Identity store – patient and dentist accounts.

Patients and dentists live in disjoint username namespaces: the same
username may be registered once per role.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from checkup_portal.config import ROLES
from checkup_portal.database import identities, store_errors, to_db_time, from_db_time, utcnow
from checkup_portal.errors import DuplicateIdentity, InvalidCredentials, ValidationError
from checkup_portal.models import Identity

# Compared against when the username does not exist so both failure paths hash.
_DUMMY_HASH = generate_password_hash("checkup-portal-dummy-secret")


def _row_to_identity(row) -> Identity:
    return Identity(
        id=int(row["id"]),
        username=row["username"],
        role=row["role"],
        created_at=from_db_time(row["created_at"]),
    )


def _validate(username: str, secret: str, role: str) -> str:
    if not isinstance(username, str) or not isinstance(secret, str):
        raise ValidationError("username and password must be strings")
    username = username.strip()
    if not username:
        raise ValidationError("username is required")
    if not secret:
        raise ValidationError("password is required")
    if role not in ROLES:
        raise ValidationError(f"Unsupported role '{role}'")
    return username


def register(engine, username: str, secret: str, role: str) -> Identity:
    """Create a new identity, or raise DuplicateIdentity if (username, role) exists."""
    username = _validate(username, secret, role)
    now = utcnow()

    with store_errors():
        with engine.begin() as conn:
            existing = conn.execute(
                select(identities.c.id).where(
                    identities.c.username == username,
                    identities.c.role == role,
                )
            ).first()
            if existing:
                raise DuplicateIdentity(f"A {role} named '{username}' is already registered")
            try:
                res = conn.execute(
                    identities.insert().values(
                        username=username,
                        secret_hash=generate_password_hash(secret),
                        role=role,
                        created_at=to_db_time(now),
                    )
                )
            except IntegrityError as e:
                raise DuplicateIdentity(f"A {role} named '{username}' is already registered") from e

    return Identity(id=int(res.inserted_primary_key[0]), username=username, role=role, created_at=now)


def authenticate(engine, username: str, secret: str, role: str) -> Identity:
    """
    Resolve credentials to an identity.

    Unknown username, wrong secret and role mismatch all raise the same
    InvalidCredentials so callers cannot probe which usernames exist.
    """
    username = (username or "").strip()
    with store_errors():
        with engine.connect() as conn:
            row = conn.execute(
                select(identities).where(
                    identities.c.username == username,
                    identities.c.role == role,
                )
            ).mappings().first()

    if row is None:
        check_password_hash(_DUMMY_HASH, secret or "")
        raise InvalidCredentials()
    if not secret or not check_password_hash(row["secret_hash"], secret):
        raise InvalidCredentials()
    return _row_to_identity(row)


def get_identity(engine, identity_id) -> Optional[Identity]:
    """Look up an identity by id, or return None."""
    with store_errors():
        with engine.connect() as conn:
            row = conn.execute(
                select(identities).where(identities.c.id == identity_id)
            ).mappings().first()
    return _row_to_identity(row) if row else None
