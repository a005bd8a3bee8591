"""
Request ledger – checkup requests and their pending → completed lifecycle.
"""

from typing import List, Optional

from sqlalchemy import select

from checkup_portal.config import ROLE_DENTIST, STATUS_COMPLETED, STATUS_PENDING
from checkup_portal.database import (
    checkup_requests,
    from_db_time,
    identities,
    store_errors,
    to_db_time,
    utcnow,
)
from checkup_portal.errors import AlreadyCompleted, NotFound, UnknownDentist
from checkup_portal.models import Caller, CheckupRequest
from checkup_portal.rbac import Operation, enforce


def _row_to_request(row, patient_username=None, dentist_username=None) -> CheckupRequest:
    return CheckupRequest(
        id=int(row["id"]),
        patient_id=int(row["patient_id"]),
        dentist_id=int(row["dentist_id"]),
        status=row["status"],
        created_at=from_db_time(row["created_at"]),
        patient_username=patient_username,
        dentist_username=dentist_username,
    )


def load_request(conn, request_id) -> Optional[CheckupRequest]:
    row = conn.execute(
        select(checkup_requests).where(checkup_requests.c.id == request_id)
    ).mappings().first()
    return _row_to_request(row) if row else None


def get_request(engine, request_id) -> Optional[CheckupRequest]:
    """Fetch a request by id without any access check."""
    with store_errors():
        with engine.connect() as conn:
            return load_request(conn, request_id)


def create_request(engine, caller: Caller, dentist_id) -> CheckupRequest:
    """
    Open a pending checkup request from the calling patient to a dentist.

    A patient may hold several pending requests to the same dentist.
    """
    enforce(caller, Operation.CREATE_REQUEST)

    if isinstance(dentist_id, str) and dentist_id.strip().isdecimal():
        dentist_id = int(dentist_id.strip())
    elif isinstance(dentist_id, bool) or not isinstance(dentist_id, int):
        raise UnknownDentist(f"Dentist '{dentist_id}' not found")

    now = utcnow()
    with store_errors():
        with engine.begin() as conn:
            dentist = conn.execute(
                select(identities.c.id).where(
                    identities.c.id == dentist_id,
                    identities.c.role == ROLE_DENTIST,
                )
            ).first()
            if dentist is None:
                raise UnknownDentist(f"Dentist '{dentist_id}' not found")

            res = conn.execute(
                checkup_requests.insert().values(
                    patient_id=caller.id,
                    dentist_id=dentist_id,
                    status=STATUS_PENDING,
                    created_at=to_db_time(now),
                )
            )

    return CheckupRequest(
        id=int(res.inserted_primary_key[0]),
        patient_id=caller.id,
        dentist_id=dentist_id,
        status=STATUS_PENDING,
        created_at=now,
    )


def list_for_dentist(engine, caller: Caller) -> List[CheckupRequest]:
    """Requests addressed to the calling dentist, newest first, with the patient's username."""
    enforce(caller, Operation.LIST_FOR_DENTIST)

    patient = identities.alias("patient")
    stmt = (
        select(checkup_requests, patient.c.username.label("patient_username"))
        .join(patient, patient.c.id == checkup_requests.c.patient_id)
        .where(checkup_requests.c.dentist_id == caller.id)
        .order_by(checkup_requests.c.id.desc())
    )
    with store_errors():
        with engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
    return [_row_to_request(r, patient_username=r["patient_username"]) for r in rows]


def list_for_patient(engine, caller: Caller) -> List[CheckupRequest]:
    """Requests opened by the calling patient, newest first, with the dentist's username."""
    enforce(caller, Operation.LIST_FOR_PATIENT)

    dentist = identities.alias("dentist")
    stmt = (
        select(checkup_requests, dentist.c.username.label("dentist_username"))
        .join(dentist, dentist.c.id == checkup_requests.c.dentist_id)
        .where(checkup_requests.c.patient_id == caller.id)
        .order_by(checkup_requests.c.id.desc())
    )
    with store_errors():
        with engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
    return [_row_to_request(r, dentist_username=r["dentist_username"]) for r in rows]


def mark_completed(conn, request_id, caller: Caller) -> CheckupRequest:
    """
    Flip a pending request to completed on an open transaction.

    Never commits: the caller's transaction also writes the result, so both
    persist or neither does. The UPDATE only matches while the row is still
    pending, which makes a concurrent second submission fail with
    AlreadyCompleted instead of overwriting.
    """
    enforce(caller, Operation.MARK_COMPLETED)

    request = load_request(conn, request_id)
    if request is None:
        raise NotFound(f"Checkup request {request_id} not found")
    enforce(caller, Operation.MARK_COMPLETED, owner_id=request.dentist_id)
    if request.status != STATUS_PENDING:
        raise AlreadyCompleted(f"Checkup request {request_id} is already completed")

    res = conn.execute(
        checkup_requests.update()
        .where(
            checkup_requests.c.id == request.id,
            checkup_requests.c.status == STATUS_PENDING,
        )
        .values(status=STATUS_COMPLETED)
    )
    if res.rowcount != 1:
        raise AlreadyCompleted(f"Checkup request {request_id} is already completed")

    request.status = STATUS_COMPLETED
    return request
