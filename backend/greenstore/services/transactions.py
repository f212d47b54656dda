# Overview: Transaction orchestration; runs units of work and step pipelines atomically.

"""
Transaction orchestrator.

A unit of work runs against db.session and is either committed as a whole or
rolled back as a whole:

- AppError raised by the work (business rejection, approval failure, not found)
  rolls back and propagates unchanged; the caller already knows the status.
- Any other exception (driver errors, connectivity, bugs) rolls back, is logged
  with full detail, and propagates as InfrastructureError, which never exposes
  its message to the client.

There is no retry. Business state may have changed between attempts, so the
decision to try again belongs to the caller.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

from flask import current_app, g

from ..extensions import db
from ..errors import AppError, InfrastructureError


T = TypeVar("T")
C = TypeVar("C")

Step = Callable[[C], None]


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(work: Callable[[], T], *, label: str = "unit of work") -> T:
    """Run work() and commit, or roll back everything it wrote."""
    try:
        result = work()
        db.session.commit()
        return result
    except AppError as exc:
        db.session.rollback()
        current_app.logger.info(
            "%s rejected: %s %s (request_id=%s)",
            label, exc.code, exc.message, g.get("request_id"),
        )
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(
            "%s failed (request_id=%s)", label, g.get("request_id")
        )
        raise InfrastructureError() from exc


def run_pipeline(steps: Iterable[Step], context: C, *, label: str = "pipeline") -> C:
    """
    Run steps in order against a shared context inside one transaction.

    Each step reads and writes through db.session and records its outputs on
    the context. A step rejects by raising; later steps never run and every
    earlier write is rolled back.
    """
    def _work():
        for step in steps:
            step(context)
        return context

    return run_in_transaction(_work, label=label)
