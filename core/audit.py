# core/audit.py

"""
Audit trail for staff impersonation.

When a staff admin is impersonating a user and performs a mutation, the real
actor is recorded on the mutated row as `staff_actor_id`. Every insert or
update reachable while impersonating must build its payload through
`with_audit`.
"""

AUDIT_FIELD = "staff_actor_id"


def with_audit(payload: dict, ctx) -> dict:
    """
    Usage:
        data = with_audit({"content": "...", "author_id": ctx.effective_user_id}, ctx)
        store.insert_post(data)
    """
    data = dict(payload)
    if ctx.is_impersonating and ctx.staff_user_id:
        data[AUDIT_FIELD] = ctx.staff_user_id
    else:
        # Callers never get to set the audit column themselves
        data.pop(AUDIT_FIELD, None)
    return data
