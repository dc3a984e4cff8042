"""
Append-only enforcement for the stock ledger at the ORM layer.

A session-level ``before_flush`` listener rejects any flush that would update
or delete a ``LedgerEntry``. The retention purge in ``crud.ledger`` uses a
Core ``DELETE`` statement, which does not pass through the unit of work, so it
remains the single sanctioned removal path.

    from stockledger.immutability import register_ledger_guard
    register_ledger_guard()  # once, at startup
"""
import logging

from sqlalchemy import event
from sqlalchemy.orm import Session

from stockledger.errors import ImmutableLedgerError
from stockledger.models import LedgerEntry

logger = logging.getLogger(__name__)


def _check_ledger_immutability(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, LedgerEntry):
            logger.error(f"Blocked delete of ledger entry {obj.id}")
            raise ImmutableLedgerError(obj.id, "deleted")

    for obj in session.dirty:
        if isinstance(obj, LedgerEntry) and session.is_modified(obj, include_collections=False):
            logger.error(f"Blocked update of ledger entry {obj.id}")
            raise ImmutableLedgerError(obj.id, "modified")


def register_ledger_guard():
    """Register the flush listener. Safe to call more than once."""
    if not event.contains(Session, "before_flush", _check_ledger_immutability):
        event.listen(Session, "before_flush", _check_ledger_immutability)
