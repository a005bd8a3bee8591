"""
Result store – the dentist's notes and images closing out a checkup request.
"""

import sys
from typing import BinaryIO, List, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from checkup_portal.config import MAX_RESULT_IMAGES, STATUS_PENDING
from checkup_portal.database import (
    checkup_requests,
    checkup_result_images,
    checkup_results,
    from_db_time,
    identities,
    store_errors,
    to_db_time,
    utcnow,
)
from checkup_portal.errors import AlreadyCompleted, NotFound, ValidationError
from checkup_portal.ledger import get_request, mark_completed
from checkup_portal.models import Caller, CheckupResult
from checkup_portal.rbac import Operation, enforce

ImageUpload = Tuple[str, BinaryIO]


def _validate_submission(notes: str, images: Sequence[ImageUpload]) -> str:
    notes = (notes or "").strip()
    if not notes:
        raise ValidationError("notes are required")
    if not images:
        raise ValidationError("at least one image is required")
    if len(images) > MAX_RESULT_IMAGES:
        raise ValidationError(f"at most {MAX_RESULT_IMAGES} images are allowed")
    for name, _stream in images:
        if not name:
            raise ValidationError("every image needs a filename")
    return notes


def submit_result(engine, blob_store, request_id, caller: Caller, notes: str,
                  images: Sequence[ImageUpload]) -> CheckupResult:
    """
    Store a dentist's result for a pending request and complete the request.

    Images are written to the blob store first. The status flip and the
    result rows then commit in one transaction; if that transaction fails the
    written blobs are deleted again.
    """
    enforce(caller, Operation.SUBMIT_RESULT)

    request = get_request(engine, request_id)
    if request is None:
        raise NotFound(f"Checkup request {request_id} not found")
    enforce(caller, Operation.SUBMIT_RESULT, owner_id=request.dentist_id)
    if request.status != STATUS_PENDING:
        raise AlreadyCompleted(f"Checkup request {request_id} is already completed")

    notes = _validate_submission(notes, images)

    refs: List[str] = []
    try:
        for name, stream in images:
            refs.append(blob_store.put(name, stream))

        now = utcnow()
        with store_errors():
            with engine.begin() as conn:
                mark_completed(conn, request.id, caller)
                try:
                    res = conn.execute(
                        checkup_results.insert().values(
                            request_id=request.id,
                            notes=notes,
                            created_at=to_db_time(now),
                        )
                    )
                except IntegrityError as e:
                    raise AlreadyCompleted(
                        f"Checkup request {request_id} already has a result"
                    ) from e
                result_id = int(res.inserted_primary_key[0])
                conn.execute(
                    checkup_result_images.insert(),
                    [
                        {"result_id": result_id, "position": i, "ref": ref}
                        for i, ref in enumerate(refs)
                    ],
                )
    except Exception:
        for ref in refs:
            try:
                blob_store.delete(ref)
            except OSError as e:
                print(f"[WARN] Could not remove orphaned blob {ref}: {e}", file=sys.stderr)
        raise

    print(f"[result] Request {request.id} completed by dentist {caller.id} ({len(refs)} images)")
    return CheckupResult(
        id=result_id,
        request_id=request.id,
        notes=notes,
        images=refs,
        created_at=now,
    )


def _load_result(engine, request_id):
    patient = identities.alias("patient")
    dentist = identities.alias("dentist")
    stmt = (
        select(
            checkup_results,
            patient.c.username.label("patient_username"),
            dentist.c.username.label("dentist_username"),
        )
        .join(checkup_requests, checkup_requests.c.id == checkup_results.c.request_id)
        .join(patient, patient.c.id == checkup_requests.c.patient_id)
        .join(dentist, dentist.c.id == checkup_requests.c.dentist_id)
        .where(checkup_results.c.request_id == request_id)
    )
    with engine.connect() as conn:
        row = conn.execute(stmt).mappings().first()
        if row is None:
            return None, []
        images = conn.execute(
            select(checkup_result_images.c.ref)
            .where(checkup_result_images.c.result_id == row["id"])
            .order_by(checkup_result_images.c.position)
        ).scalars().all()
    return row, list(images)


def _fetch(engine, request_id, caller: Caller, operation: str, owner_field: str):
    enforce(caller, operation)

    request = get_request(engine, request_id)
    if request is None:
        raise NotFound(f"Checkup request {request_id} not found")
    enforce(caller, operation, owner_id=getattr(request, owner_field))

    with store_errors():
        row, images = _load_result(engine, request.id)
    if row is None:
        raise NotFound("No results yet")
    return row, images


def get_result(engine, request_id, caller: Caller) -> CheckupResult:
    """The result of one of the calling patient's requests, with the dentist's username."""
    row, images = _fetch(engine, request_id, caller, Operation.GET_RESULT, "patient_id")
    return CheckupResult(
        id=int(row["id"]),
        request_id=int(row["request_id"]),
        notes=row["notes"],
        images=images,
        created_at=from_db_time(row["created_at"]),
        dentist_username=row["dentist_username"],
    )


def get_result_for_dentist(engine, request_id, caller: Caller) -> CheckupResult:
    """The result the calling dentist submitted, with the patient's username."""
    row, images = _fetch(engine, request_id, caller, Operation.GET_RESULT_FOR_DENTIST, "dentist_id")
    return CheckupResult(
        id=int(row["id"]),
        request_id=int(row["request_id"]),
        notes=row["notes"],
        images=images,
        created_at=from_db_time(row["created_at"]),
        patient_username=row["patient_username"],
    )
