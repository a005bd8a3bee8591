"""
Shared fixtures: a throwaway SQLite database, blob directory and accounts.
"""

import io

import pytest

from checkup_portal.blobstore import LocalBlobStore
from checkup_portal.config import ROLE_DENTIST, ROLE_PATIENT
from checkup_portal.database import init_engine
from checkup_portal.identity import register


@pytest.fixture
def engine(tmp_path):
    eng = init_engine(f"sqlite:///{tmp_path / 'portal.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(root=str(tmp_path / "uploads"))


@pytest.fixture
def patient(engine):
    return register(engine, "pat", "pat-secret", ROLE_PATIENT)


@pytest.fixture
def other_patient(engine):
    return register(engine, "pat2", "pat2-secret", ROLE_PATIENT)


@pytest.fixture
def dentist(engine):
    return register(engine, "dent", "dent-secret", ROLE_DENTIST)


@pytest.fixture
def other_dentist(engine):
    return register(engine, "dent2", "dent2-secret", ROLE_DENTIST)


@pytest.fixture
def make_image():
    def _make(name="a.png", data=b"\x89PNG fake image bytes"):
        return (name, io.BytesIO(data))
    return _make
