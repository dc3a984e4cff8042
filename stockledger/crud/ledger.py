"""
Ledger store (inventory_ledger).
Contract:
- Append-only: insert() here, no update paths
- append() does not commit; it joins the caller's transaction
- purge_older_than() is the only delete and goes through Core, bypassing
  the ORM immutability guard
"""
from sqlalchemy import select, insert, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from datetime import datetime
from typing import List, Optional, Tuple, Iterator, Iterable

from stockledger.models import LedgerEntry
from stockledger.crud.base import CRUDBase
from stockledger.errors import StorageFailure
from stockledger.schemas.ledger import LedgerFilter, SortOrder
from stockledger.utils.dates import start_of_day, end_of_day_exclusive

logger = logging.getLogger(__name__)

STREAM_BATCH_SIZE = 500

class CRUDLedger(CRUDBase[LedgerEntry]):
    def __init__(self):
        super().__init__(LedgerEntry)

    def append(
        self,
        db: Session,
        *,
        product_id: int,
        user_id: int,
        old_quantity: int,
        new_quantity: int,
        reason: str,
        operation_type: str,
    ) -> LedgerEntry:
        """Insert one ledger row inside the current transaction"""
        stmt = insert(LedgerEntry).values(
            product_id=product_id,
            user_id=user_id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            reason=reason,
            operation_type=operation_type,
        ).returning(LedgerEntry)
        return db.execute(stmt).scalar_one()

    def _conditions(self, flt: LedgerFilter, *, decreases_only: bool = False) -> list:
        conditions = []
        if flt.product_id is not None:
            conditions.append(LedgerEntry.product_id == flt.product_id)
        if flt.user_id is not None:
            conditions.append(LedgerEntry.user_id == flt.user_id)
        if flt.operation_type is not None:
            conditions.append(LedgerEntry.operation_type == flt.operation_type.value)
        # Inclusive dates: the whole of date_to is covered
        if flt.date_from is not None:
            conditions.append(LedgerEntry.created_at >= start_of_day(flt.date_from))
        if flt.date_to is not None:
            conditions.append(LedgerEntry.created_at < end_of_day_exclusive(flt.date_to))
        if decreases_only:
            conditions.append(LedgerEntry.new_quantity < LedgerEntry.old_quantity)
        return conditions

    @staticmethod
    def _ordering(order: SortOrder):
        if order == SortOrder.ASC:
            return LedgerEntry.created_at.asc(), LedgerEntry.id.asc()
        return LedgerEntry.created_at.desc(), LedgerEntry.id.desc()

    def query(self, db: Session, flt: LedgerFilter, *, limit: int, offset: int) -> Tuple[List[LedgerEntry], int]:
        """Page of matching entries and the total match count"""
        conditions = self._conditions(flt)
        try:
            count_stmt = select(func.count()).select_from(LedgerEntry).where(*conditions)
            total = db.execute(count_stmt).scalar_one()

            stmt = (
                select(LedgerEntry)
                .where(*conditions)
                .order_by(*self._ordering(flt.order))
                .offset(offset)
                .limit(limit)
            )
            entries = list(db.execute(stmt).scalars().all())
            return entries, total
        except SQLAlchemyError as e:
            logger.error(f"Error querying ledger: {e}")
            raise StorageFailure() from e

    def stream(self, db: Session, flt: LedgerFilter, *, decreases_only: bool = False) -> Iterator[LedgerEntry]:
        """
        Every matching entry, oldest first, fetched STREAM_BATCH_SIZE rows at
        a time. limit/offset on the filter are ignored.
        """
        stmt = (
            select(LedgerEntry)
            .where(*self._conditions(flt, decreases_only=decreases_only))
            .order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
            .execution_options(yield_per=STREAM_BATCH_SIZE)
        )
        try:
            yield from db.scalars(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error streaming ledger: {e}")
            raise StorageFailure() from e

    def entries_for_product_since(self, db: Session, product_id: int, since: datetime) -> List[LedgerEntry]:
        try:
            stmt = (
                select(LedgerEntry)
                .where(LedgerEntry.product_id == product_id, LedgerEntry.created_at >= since)
                .order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
            )
            return list(db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting ledger for product {product_id} since {since}: {e}")
            raise StorageFailure() from e

    def recent_entries_for_product(
        self,
        db: Session,
        product_id: int,
        n: int,
        *,
        operation_types: Optional[Iterable[str]] = None,
    ) -> List[LedgerEntry]:
        """Most recent n entries for a product, newest first"""
        try:
            stmt = select(LedgerEntry).where(LedgerEntry.product_id == product_id)
            if operation_types is not None:
                stmt = stmt.where(LedgerEntry.operation_type.in_([getattr(op, "value", op) for op in operation_types]))
            stmt = stmt.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()).limit(n)
            return list(db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting recent ledger for product {product_id}: {e}")
            raise StorageFailure() from e

    def purge_older_than(self, db: Session, cutoff: datetime) -> int:
        """Delete entries created strictly before cutoff and commit"""
        try:
            table = LedgerEntry.__table__
            result = db.execute(delete(table).where(table.c.created_at < cutoff))
            db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error purging ledger entries before {cutoff}: {e}")
            raise StorageFailure() from e

crud_ledger = CRUDLedger()
