"""
Ledger schemas (append-only, read side).
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from stockledger.schemas.inventory import OperationType

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class LedgerFilter(BaseModel):
    """
    Bounds are checked by the query service so that direct callers and the
    HTTP layer get the same InvalidInput errors.
    """
    product_id: Optional[int] = None
    user_id: Optional[int] = None
    operation_type: Optional[OperationType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: Optional[int] = None
    offset: int = 0
    order: SortOrder = SortOrder.DESC

class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    user_id: int
    old_quantity: int
    new_quantity: int
    quantity_change: int
    reason: str
    operation_type: OperationType
    created_at: datetime

class LedgerPage(BaseModel):
    entries: List[LedgerEntryResponse]
    total: int
    limit: int
    offset: int
    filters: LedgerFilter

class RetentionResult(BaseModel):
    deleted_count: int
    days_old: int
    cutoff: datetime
