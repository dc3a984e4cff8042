"""
Ledger router: read access and the retention purge. There is no endpoint
that edits a ledger entry.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from stockledger.database import get_db
from stockledger import models
from stockledger.schemas.inventory import OperationType
from stockledger.schemas.ledger import LedgerFilter, LedgerPage, LedgerEntryResponse, RetentionResult, SortOrder
from stockledger.schemas.reports import LedgerSummary
from stockledger.security import get_current_user, require_manager
from stockledger.services import ledger_query, reports

router = APIRouter(prefix="/ledger", tags=["ledger"])

def ledger_filter(
    product_id: Optional[int] = None,
    user_id: Optional[int] = None,
    operation_type: Optional[OperationType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    order: SortOrder = SortOrder.DESC,
) -> LedgerFilter:
    return LedgerFilter(
        product_id=product_id,
        user_id=user_id,
        operation_type=operation_type,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
        order=order,
    )

@router.get("", response_model=LedgerPage)
def list_entries(
    flt: LedgerFilter = Depends(ledger_filter),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    entries, total = ledger_query.query(db, flt)
    limit, offset = ledger_query.validate_filter(flt)
    return LedgerPage(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
        filters=flt,
    )

@router.get("/summary", response_model=LedgerSummary)
def summarize_entries(
    flt: LedgerFilter = Depends(ledger_filter),
    top: int = Query(10, ge=1, le=100),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Totals grouped by operation type, day, product and user"""
    return reports.ledger_summary(db, flt, top=top)

@router.delete("/cleanup", response_model=RetentionResult)
def cleanup_entries(
    days_old: int = Query(...),
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    return ledger_query.purge_older_than(db, days_old)

@router.get("/{entry_id}", response_model=LedgerEntryResponse)
def get_entry(
    entry_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ledger_query.get_entry(db, entry_id)
