# Overview: Append-only audit log writer.

"""
Audit log invariants:

- Append-only. No updates/deletes of existing records.
- Written inside the same DB transaction as the action it records, so a rolled
  back action leaves no audit trace.
- No domain/business logic here.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import AuditLog


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def log_audit(
    *,
    action: str,
    details: dict | None = None,
    performed_by: int | None = None,
    approved_by: int | None = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        details=_jsonable(details) if details is not None else None,
        performed_by_user_id=performed_by,
        approved_by_user_id=approved_by,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry
