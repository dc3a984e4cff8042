from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Dict, Optional

from stockledger.database import get_db
from stockledger import models
from stockledger.crud.notifications import crud_notification
from stockledger.schemas.inventory import (
    NotificationType, NotificationResponse, NotificationPage, NotificationTypeStats,
)
from stockledger.security import get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("", response_model=NotificationPage)
def list_notifications(
    type: Optional[NotificationType] = None,
    unread_only: bool = False,
    product_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    items, total = crud_notification.list(
        db, type=type, unread_only=unread_only, product_id=product_id, skip=skip, limit=limit
    )
    return NotificationPage(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        limit=limit,
        offset=skip,
    )

@router.get("/stats", response_model=Dict[str, NotificationTypeStats])
def notification_stats(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return crud_notification.get_stats_by_type(db)

@router.post("/read-all")
def mark_all_read(
    type: Optional[NotificationType] = None,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = crud_notification.mark_all_read(db, type=type)
    return {"updated": updated}

@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return crud_notification.mark_read(db, notification_id)
