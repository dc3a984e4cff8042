"""
Stock operations router. Every endpoint goes through the stock mutation
service, so each accepted change writes exactly one ledger entry per product.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.database import get_db
from stockledger import models
from stockledger.schemas.inventory import (
    StockAdjustRequest, StockBatchRequest, BulkAdjustRequest, TransferRequest,
    StockChangeResult, BatchResult, TransferResult,
)
from stockledger.security import get_current_user, require_manager
from stockledger.services import stock

router = APIRouter(prefix="/stock", tags=["stock"])

@router.post("/{product_id}/adjust", response_model=StockChangeResult)
def adjust_stock(
    product_id: int,
    request: StockAdjustRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Set the quantity of one product"""
    return stock.adjust_stock(
        db, product_id, request.new_quantity, current_user.id, request.reason, request.operation_type
    )

@router.post("/sale", response_model=BatchResult)
def process_sale(
    request: StockBatchRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return stock.process_sale(db, request.items, current_user.id, request.reference)

@router.post("/purchase", response_model=BatchResult)
def process_purchase(
    request: StockBatchRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return stock.process_purchase(db, request.items, current_user.id, request.reference)

@router.post("/transfer", response_model=TransferResult)
def transfer_stock(
    request: TransferRequest,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    return stock.transfer_stock(
        db, request.from_product_id, request.to_product_id, request.quantity, current_user.id, request.reason
    )

@router.post("/bulk-adjust", response_model=BatchResult)
def bulk_adjust(
    request: BulkAdjustRequest,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    return stock.bulk_adjust(db, request.adjustments, current_user.id)
