"""
Public dentist directory.
"""

from typing import Dict, List

from sqlalchemy import select

from checkup_portal.config import ROLE_DENTIST
from checkup_portal.database import identities, store_errors


def list_dentists(engine) -> List[Dict]:
    """Return every dentist as {id, username}, in registration order. No auth required."""
    with store_errors():
        with engine.connect() as conn:
            rows = conn.execute(
                select(identities.c.id, identities.c.username)
                .where(identities.c.role == ROLE_DENTIST)
                .order_by(identities.c.id)
            ).mappings().all()
    return [{"id": int(r["id"]), "username": r["username"]} for r in rows]
