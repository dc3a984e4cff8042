"""
Notification store. Notifications are a best-effort side effect of stock
changes; nothing here takes part in the mutation transaction.
"""
from sqlalchemy import select, update, func, case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from typing import List, Optional, Tuple, Dict

from stockledger.models import Notification
from stockledger.crud.base import CRUDBase
from stockledger.errors import StorageFailure, NotFound
from stockledger.schemas.inventory import NotificationType

logger = logging.getLogger(__name__)

STOCK_ALERT_TYPES = (NotificationType.LOW_STOCK.value, NotificationType.OUT_OF_STOCK.value)

class CRUDNotification(CRUDBase[Notification]):
    def __init__(self):
        super().__init__(Notification)

    def find_unread(self, db: Session, product_id: int, notification_type: NotificationType) -> Optional[Notification]:
        stmt = (
            select(Notification)
            .where(
                Notification.product_id == product_id,
                Notification.type == notification_type.value,
                Notification.is_read == False,
            )
            .limit(1)
        )
        return db.execute(stmt).scalar_one_or_none()

    def create_if_absent(self, db: Session, *, product_id: int, quantity: int, reorder_level: int) -> Optional[Notification]:
        """
        Create a low_stock / out_of_stock notification unless an unread one of
        the same type already exists for the product. Returns None when nothing
        was created.
        Contract: commits on its own; the unread (product_id, type) unique index
        settles concurrent callers, other SQLAlchemyErrors propagate
        """
        if quantity == 0:
            notification_type = NotificationType.OUT_OF_STOCK
            message = "Product is out of stock and needs immediate attention"
        else:
            notification_type = NotificationType.LOW_STOCK
            message = f"Product quantity ({quantity}) is below reorder level ({reorder_level})"

        if self.find_unread(db, product_id, notification_type):
            return None

        try:
            notification = self.add(db, obj_in={
                "product_id": product_id,
                "type": notification_type.value,
                "message": message,
            })
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Unread {notification_type.value} notification for product {product_id} already exists")
            return None
        return notification

    def list(
        self,
        db: Session,
        *,
        type: Optional[NotificationType] = None,
        unread_only: bool = False,
        product_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Notification], int]:
        conditions = []
        if type is not None:
            conditions.append(Notification.type == type.value)
        if unread_only:
            conditions.append(Notification.is_read == False)
        if product_id is not None:
            conditions.append(Notification.product_id == product_id)

        try:
            total = db.execute(
                select(func.count()).select_from(Notification).where(*conditions)
            ).scalar_one()
            stmt = (
                select(Notification)
                .where(*conditions)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .offset(skip)
                .limit(limit)
            )
            return list(db.execute(stmt).scalars().all()), total
        except SQLAlchemyError as e:
            logger.error(f"Error listing notifications: {e}")
            raise StorageFailure() from e

    def get_recent_stock_alerts(self, db: Session, *, limit: int = 20) -> List[Notification]:
        """Unread low_stock / out_of_stock notifications, newest first"""
        try:
            stmt = (
                select(Notification)
                .where(Notification.type.in_(STOCK_ALERT_TYPES), Notification.is_read == False)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit)
            )
            return list(db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting recent stock alerts: {e}")
            raise StorageFailure() from e

    def mark_read(self, db: Session, id: int) -> Notification:
        notification = self.get(db, id)
        if not notification:
            raise NotFound("Notification", id)
        try:
            notification.is_read = True
            db.commit()
            return notification
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error marking notification {id} as read: {e}")
            raise StorageFailure() from e

    def mark_all_read(self, db: Session, *, type: Optional[NotificationType] = None) -> int:
        try:
            stmt = update(Notification).where(Notification.is_read == False)
            if type is not None:
                stmt = stmt.where(Notification.type == type.value)
            result = db.execute(stmt.values(is_read=True).execution_options(synchronize_session=False))
            db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error marking notifications as read: {e}")
            raise StorageFailure() from e

    def get_stats_by_type(self, db: Session) -> Dict[str, Dict[str, int]]:
        """{type: {total, unread}} with every type present"""
        stats = {t.value: {"total": 0, "unread": 0} for t in NotificationType}
        try:
            stmt = (
                select(
                    Notification.type,
                    func.count().label("total"),
                    func.sum(case((Notification.is_read == False, 1), else_=0)).label("unread"),
                )
                .group_by(Notification.type)
                .order_by(Notification.type)
            )
            for row in db.execute(stmt):
                stats[row.type] = {"total": int(row.total), "unread": int(row.unread or 0)}
            return stats
        except SQLAlchemyError as e:
            logger.error(f"Error getting notification stats: {e}")
            raise StorageFailure() from e

crud_notification = CRUDNotification()
