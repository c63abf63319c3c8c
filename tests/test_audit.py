# tests/test_audit.py

"""
Tests for the staff actor audit stamp.
"""

from core.audit import AUDIT_FIELD, with_audit
from core.auth_context import AuthContext
from models.enums import DataAccessMode


def _ctx(impersonating: bool) -> AuthContext:
    if impersonating:
        return AuthContext(
            principal_id="staff-1",
            effective_user_id="bob",
            is_staff_admin=True,
            is_impersonating=True,
            staff_user_id="staff-1",
            data_access=DataAccessMode.elevated,
        )
    return AuthContext(principal_id="bob", effective_user_id="bob")


def test_stamps_staff_actor_while_impersonating():
    data = with_audit({"content": "hi", "author_id": "bob"}, _ctx(True))
    assert data == {"content": "hi", "author_id": "bob", AUDIT_FIELD: "staff-1"}


def test_no_stamp_for_regular_users():
    data = with_audit({"content": "hi"}, _ctx(False))
    assert AUDIT_FIELD not in data


def test_caller_cannot_forge_the_stamp():
    data = with_audit({"content": "hi", AUDIT_FIELD: "someone"}, _ctx(False))
    assert AUDIT_FIELD not in data


def test_payload_is_not_mutated():
    payload = {"content": "hi"}
    with_audit(payload, _ctx(True))
    assert payload == {"content": "hi"}
