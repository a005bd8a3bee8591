"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from checkup_portal.config import ROLE_DENTIST, ROLE_PATIENT


@dataclass(frozen=True)
class Identity:
    """A registered account. The secret hash never leaves the identity store."""
    id: int
    username: str
    role: str                  # "patient" or "dentist"
    created_at: datetime


# ── Authenticated callers ────────────────────────────────────────────
# A caller is either a Patient or a Dentist, never a bare role string.

@dataclass(frozen=True)
class Patient:
    id: int
    role: str = field(default=ROLE_PATIENT, init=False)


@dataclass(frozen=True)
class Dentist:
    id: int
    role: str = field(default=ROLE_DENTIST, init=False)


Caller = Union[Patient, Dentist]

# Access-control decision outcomes.
ALLOW = "allow"
FORBIDDEN = "forbidden"
NOT_OWNER = "not_owner"


def caller_for(identity: Identity) -> Caller:
    """Build the caller variant matching an identity's role."""
    if identity.role == ROLE_PATIENT:
        return Patient(identity.id)
    if identity.role == ROLE_DENTIST:
        return Dentist(identity.id)
    raise ValueError(f"Unknown role: {identity.role}")


@dataclass
class CheckupRequest:
    id: int
    patient_id: int
    dentist_id: int
    status: str                # "pending" or "completed"
    created_at: datetime
    patient_username: Optional[str] = None
    dentist_username: Optional[str] = None

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "status": self.status,
            "createdAt": self.created_at.isoformat(),
        }
        if self.patient_username is not None:
            out["patient"] = {"id": self.patient_id, "username": self.patient_username}
        if self.dentist_username is not None:
            out["dentist"] = {"id": self.dentist_id, "username": self.dentist_username}
        return out


@dataclass
class CheckupResult:
    id: int
    request_id: int
    notes: str
    images: List[str]
    created_at: datetime
    dentist_username: Optional[str] = None
    patient_username: Optional[str] = None

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "requestId": self.request_id,
            "notes": self.notes,
            "images": list(self.images),
            "createdAt": self.created_at.isoformat(),
        }
        if self.dentist_username is not None:
            out["dentist"] = {"username": self.dentist_username}
        if self.patient_username is not None:
            out["patient"] = {"username": self.patient_username}
        return out


@dataclass(frozen=True)
class Decision:
    """Outcome of an access-control evaluation."""
    outcome: str               # ALLOW, FORBIDDEN or NOT_OWNER
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.outcome == ALLOW
