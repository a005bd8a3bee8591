"""
Unit tests for the result store – submission, retrieval and the
one-result-per-request guarantee.
"""

import io
import os
import threading

import pytest
from sqlalchemy import func, select

from checkup_portal import results as results_module
from checkup_portal.database import checkup_result_images, checkup_results
from checkup_portal.errors import (
    AlreadyCompleted,
    Forbidden,
    NotFound,
    NotOwner,
    ValidationError,
)
from checkup_portal.ledger import create_request, get_request, list_for_dentist
from checkup_portal.models import caller_for
from checkup_portal.results import get_result, get_result_for_dentist, submit_result


def _count_results(engine):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(checkup_results)).scalar_one()


def _stored_files(blob_store):
    return sorted(os.listdir(blob_store.root))


@pytest.fixture
def pending(engine, patient, dentist):
    return create_request(engine, caller_for(patient), dentist.id)


# ── Tests: end-to-end scenario ───────────────────────────────────────

def test_request_to_result_scenario(engine, blob_store, patient, dentist, make_image):
    req = create_request(engine, caller_for(patient), dentist.id)
    assert req.status == "pending"

    listed = list_for_dentist(engine, caller_for(dentist))
    assert [(r.id, r.patient_username, r.status) for r in listed] == [(req.id, "pat", "pending")]

    result = submit_result(engine, blob_store, req.id, caller_for(dentist), "ok", [make_image("a.png")])
    assert result.notes == "ok"
    assert len(result.images) == 1
    assert result.images[0].startswith("/uploads/")
    assert result.images[0].endswith("a.png")
    assert blob_store.exists(result.images[0])

    assert get_request(engine, req.id).status == "completed"
    assert _count_results(engine) == 1

    fetched = get_result(engine, req.id, caller_for(patient))
    assert fetched.notes == "ok"
    assert fetched.images == result.images
    assert fetched.dentist_username == "dent"
    out = fetched.to_dict()
    assert out["dentist"] == {"username": "dent"}
    assert out["images"] == result.images


def test_images_keep_submission_order(engine, blob_store, pending, dentist, patient, make_image):
    names = ["c.png", "a.png", "b.jpg"]
    submit_result(engine, blob_store, pending.id, caller_for(dentist), "ordered",
                  [make_image(n) for n in names])
    fetched = get_result(engine, pending.id, caller_for(patient))
    assert [os.path.basename(ref).split("-", 2)[2] for ref in fetched.images] == names


def test_notes_are_trimmed(engine, blob_store, pending, dentist, make_image):
    result = submit_result(engine, blob_store, pending.id, caller_for(dentist), "  fine \n", [make_image()])
    assert result.notes == "fine"


# ── Tests: at most one result ────────────────────────────────────────

def test_second_submission_already_completed(engine, blob_store, pending, dentist, make_image):
    submit_result(engine, blob_store, pending.id, caller_for(dentist), "first", [make_image()])
    files_after_first = _stored_files(blob_store)

    with pytest.raises(AlreadyCompleted):
        submit_result(engine, blob_store, pending.id, caller_for(dentist), "second", [make_image()])

    assert _count_results(engine) == 1
    assert _stored_files(blob_store) == files_after_first
    assert get_request(engine, pending.id).status == "completed"


def test_concurrent_submissions_single_winner(engine, blob_store, pending, dentist, patient, make_image):
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def submit(tag):
        image = make_image(f"{tag}.png")
        barrier.wait()
        try:
            submit_result(engine, blob_store, pending.id, caller_for(dentist), tag, [image])
            outcome = "ok"
        except AlreadyCompleted:
            outcome = "already_completed"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=submit, args=(t,)) for t in ("one", "two")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["already_completed", "ok"]
    assert _count_results(engine) == 1
    assert len(_stored_files(blob_store)) == 1
    winner = get_result(engine, pending.id, caller_for(patient))
    assert winner.notes in {"one", "two"}


# ── Tests: access control ────────────────────────────────────────────

def test_submit_requires_dentist(engine, blob_store, pending, patient, make_image):
    with pytest.raises(Forbidden):
        submit_result(engine, blob_store, pending.id, caller_for(patient), "x", [make_image()])


def test_submit_by_other_dentist_not_owner(engine, blob_store, pending, other_dentist, make_image):
    with pytest.raises(NotOwner):
        submit_result(engine, blob_store, pending.id, caller_for(other_dentist), "x", [make_image()])
    assert get_request(engine, pending.id).status == "pending"
    assert _stored_files(blob_store) == []


def test_submit_unknown_request(engine, blob_store, dentist, make_image):
    with pytest.raises(NotFound):
        submit_result(engine, blob_store, 9999, caller_for(dentist), "x", [make_image()])


def test_get_result_before_submission_not_found(engine, pending, patient):
    with pytest.raises(NotFound, match="No results yet"):
        get_result(engine, pending.id, caller_for(patient))


def test_get_result_isolation(engine, blob_store, pending, dentist, other_patient, make_image):
    submit_result(engine, blob_store, pending.id, caller_for(dentist), "ok", [make_image()])
    with pytest.raises(NotOwner):
        get_result(engine, pending.id, caller_for(other_patient))
    with pytest.raises(Forbidden):
        get_result(engine, pending.id, caller_for(dentist))


def test_get_result_unknown_request(engine, patient):
    with pytest.raises(NotFound):
        get_result(engine, 9999, caller_for(patient))


def test_get_result_for_dentist(engine, blob_store, pending, dentist, other_dentist, patient, make_image):
    with pytest.raises(NotFound):
        get_result_for_dentist(engine, pending.id, caller_for(dentist))

    submit_result(engine, blob_store, pending.id, caller_for(dentist), "ok", [make_image()])
    fetched = get_result_for_dentist(engine, pending.id, caller_for(dentist))
    assert fetched.patient_username == "pat"
    assert fetched.to_dict()["patient"] == {"username": "pat"}

    with pytest.raises(NotOwner):
        get_result_for_dentist(engine, pending.id, caller_for(other_dentist))
    with pytest.raises(Forbidden):
        get_result_for_dentist(engine, pending.id, caller_for(patient))


# ── Tests: validation ────────────────────────────────────────────────

@pytest.mark.parametrize("notes", ["", "   ", None])
def test_submit_requires_notes(engine, blob_store, pending, dentist, make_image, notes):
    with pytest.raises(ValidationError, match="notes"):
        submit_result(engine, blob_store, pending.id, caller_for(dentist), notes, [make_image()])
    assert get_request(engine, pending.id).status == "pending"


def test_submit_requires_an_image(engine, blob_store, pending, dentist):
    with pytest.raises(ValidationError, match="image"):
        submit_result(engine, blob_store, pending.id, caller_for(dentist), "ok", [])


def test_submit_caps_image_count(engine, blob_store, pending, dentist, make_image):
    images = [make_image(f"{i}.png") for i in range(11)]
    with pytest.raises(ValidationError, match="at most 10"):
        submit_result(engine, blob_store, pending.id, caller_for(dentist), "ok", images)
    assert _stored_files(blob_store) == []


# ── Tests: failure cleanup ───────────────────────────────────────────

def test_failed_transaction_removes_blobs(engine, blob_store, pending, dentist, make_image, monkeypatch):
    def failing_mark_completed(conn, request_id, caller):
        raise RuntimeError("disk full")

    monkeypatch.setattr(results_module, "mark_completed", failing_mark_completed)

    with pytest.raises(RuntimeError, match="disk full"):
        submit_result(engine, blob_store, pending.id, caller_for(dentist), "ok",
                      [make_image("a.png"), make_image("b.png")])

    assert _stored_files(blob_store) == []
    assert _count_results(engine) == 0
    with engine.connect() as conn:
        assert conn.execute(select(func.count()).select_from(checkup_result_images)).scalar_one() == 0
    assert get_request(engine, pending.id).status == "pending"


def test_stream_failure_mid_upload_removes_every_blob(engine, blob_store, pending, dentist, make_image):
    class DroppedUpload(io.RawIOBase):
        def __init__(self):
            self._sent = False

        def readable(self):
            return True

        def readinto(self, buf):
            if self._sent:
                raise OSError("client went away")
            self._sent = True
            buf[:4] = b"\x89PNG"
            return 4

    with pytest.raises(OSError, match="client went away"):
        submit_result(engine, blob_store, pending.id, caller_for(dentist), "ok",
                      [make_image("a.png"), ("b.png", DroppedUpload())])

    assert _stored_files(blob_store) == []
    assert _count_results(engine) == 0
    assert get_request(engine, pending.id).status == "pending"
