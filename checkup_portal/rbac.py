"""
Role-Based Access Control – turning token claims into callers and gating operations.

Every ledger and result-store operation is checked here, so the role rules
and the ownership rules cannot drift apart between entry points.
"""

from typing import Any, Dict, Mapping, Optional

from checkup_portal.config import ROLE_DENTIST, ROLE_PATIENT
from checkup_portal.errors import Forbidden, NotOwner, Unauthenticated
from checkup_portal.models import ALLOW, FORBIDDEN, NOT_OWNER, Caller, Decision, Dentist, Patient


class Operation:
    CREATE_REQUEST = "create_request"
    LIST_FOR_DENTIST = "list_for_dentist"
    LIST_FOR_PATIENT = "list_for_patient"
    MARK_COMPLETED = "mark_completed"
    SUBMIT_RESULT = "submit_result"
    GET_RESULT = "get_result"
    GET_RESULT_FOR_DENTIST = "get_result_for_dentist"


# Caller variant each operation requires.
REQUIRED_ROLE: Dict[str, type] = {
    Operation.CREATE_REQUEST: Patient,
    Operation.LIST_FOR_DENTIST: Dentist,
    Operation.LIST_FOR_PATIENT: Patient,
    Operation.MARK_COMPLETED: Dentist,
    Operation.SUBMIT_RESULT: Dentist,
    Operation.GET_RESULT: Patient,
    Operation.GET_RESULT_FOR_DENTIST: Dentist,
}


def caller_from_claims(claims: Optional[Mapping[str, Any]]) -> Caller:
    """Map verified token claims {sub, role} onto a Patient or Dentist caller."""
    if not claims:
        raise Unauthenticated()

    role = str(claims.get("role", "")).strip().lower()
    try:
        identity_id = int(claims.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated("Token does not carry an identity")

    if role == ROLE_PATIENT:
        return Patient(identity_id)
    if role == ROLE_DENTIST:
        return Dentist(identity_id)
    raise Unauthenticated(f"Unsupported role '{claims.get('role')}' in token")


def evaluate(caller: Caller, operation: str, owner_id: Optional[int] = None) -> Decision:
    """
    Decide whether *caller* may perform *operation*.

    *owner_id* is the id of the party the target resource belongs to for the
    caller's role (request.patient_id for patients, request.dentist_id for
    dentists). Pass None for operations without a target resource.
    """
    required = REQUIRED_ROLE.get(operation)
    if required is None:
        raise ValueError(f"Unknown operation: {operation}")

    if not isinstance(caller, required):
        return Decision(
            FORBIDDEN,
            f"{operation} requires the {required.__name__.lower()} role",
        )
    if owner_id is not None and owner_id != caller.id:
        return Decision(NOT_OWNER, f"{operation} target belongs to another {caller.role}")
    return Decision(ALLOW)


def enforce(caller: Caller, operation: str, owner_id: Optional[int] = None) -> None:
    """Raise Forbidden or NotOwner unless evaluate() allows the operation."""
    decision = evaluate(caller, operation, owner_id)
    if decision.outcome == FORBIDDEN:
        raise Forbidden(decision.reason)
    if decision.outcome == NOT_OWNER:
        raise NotOwner(decision.reason)
