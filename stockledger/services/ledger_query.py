"""
Ledger query service: validated, read-only access to the ledger, plus the
retention purge.
"""
from datetime import timedelta
from sqlalchemy.orm import Session
import logging
from typing import List, Tuple, Iterator, Optional

from stockledger.config import settings
from stockledger.models import LedgerEntry
from stockledger.crud.ledger import crud_ledger
from stockledger.errors import InvalidInput, NotFound
from stockledger.schemas.inventory import CONSUMING_OPERATIONS
from stockledger.schemas.ledger import LedgerFilter, SortOrder, RetentionResult
from stockledger.utils.dates import utcnow

logger = logging.getLogger(__name__)

def validate_filter(flt: LedgerFilter) -> Tuple[int, int]:
    """Check bounds and return the effective (limit, offset)."""
    if flt.date_from and flt.date_to and flt.date_from > flt.date_to:
        raise InvalidInput("date_from must be on or before date_to")

    limit = settings.LEDGER_QUERY_DEFAULT_LIMIT if flt.limit is None else flt.limit
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= settings.LEDGER_QUERY_MAX_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {settings.LEDGER_QUERY_MAX_LIMIT}")
    if isinstance(flt.offset, bool) or not isinstance(flt.offset, int) or flt.offset < 0:
        raise InvalidInput("offset must be a non-negative integer")
    if not isinstance(flt.order, SortOrder):
        raise InvalidInput("order must be 'asc' or 'desc'")
    return limit, flt.offset

def query(db: Session, flt: LedgerFilter) -> Tuple[List[LedgerEntry], int]:
    """Filtered page of entries and the total number of matches"""
    limit, offset = validate_filter(flt)
    return crud_ledger.query(db, flt, limit=limit, offset=offset)

def stream(db: Session, flt: LedgerFilter, *, decreases_only: bool = False) -> Iterator[LedgerEntry]:
    """All matching entries, oldest first, without pagination"""
    if flt.date_from and flt.date_to and flt.date_from > flt.date_to:
        raise InvalidInput("date_from must be on or before date_to")
    return crud_ledger.stream(db, flt, decreases_only=decreases_only)

def get_entry(db: Session, entry_id: int) -> LedgerEntry:
    entry = crud_ledger.get(db, entry_id)
    if not entry:
        raise NotFound("Ledger entry", entry_id)
    return entry

def entries_for_product_since(db: Session, product_id: int, since) -> List[LedgerEntry]:
    return crud_ledger.entries_for_product_since(db, product_id, since)

def recent_entries_for_product(db: Session, product_id: int, n: Optional[int] = None) -> List[LedgerEntry]:
    n = n or settings.CONSUMPTION_HISTORY_ENTRIES
    if n < 1:
        raise InvalidInput("n must be positive")
    return crud_ledger.recent_entries_for_product(db, product_id, n)

def recent_consumption(db: Session, product_id: int, n: Optional[int] = None) -> List[LedgerEntry]:
    """Consuming decreases (sale/damage/transfer out) among the product's last n entries"""
    return [
        entry for entry in recent_entries_for_product(db, product_id, n)
        if entry.operation_type in {op.value for op in CONSUMING_OPERATIONS}
        and entry.quantity_change < 0
    ]

def purge_older_than(db: Session, days_old: int) -> RetentionResult:
    """
    Remove entries strictly older than days_old days.
    Contract: days_old below LEDGER_RETENTION_MIN_DAYS is refused
    """
    if isinstance(days_old, bool) or not isinstance(days_old, int):
        raise InvalidInput("days_old must be an integer")
    if days_old < settings.LEDGER_RETENTION_MIN_DAYS:
        raise InvalidInput(
            f"Cannot delete ledger entries newer than {settings.LEDGER_RETENTION_MIN_DAYS} days"
        )

    cutoff = utcnow() - timedelta(days=days_old)
    deleted = crud_ledger.purge_older_than(db, cutoff)
    logger.warning(f"Ledger retention purge removed {deleted} entries older than {cutoff.isoformat()}")
    return RetentionResult(deleted_count=deleted, days_old=days_old, cutoff=cutoff)
