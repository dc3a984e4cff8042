"""
Reports router (manager only). Report generation is synchronous and bounded
by REPORT_TIMEOUT_SECONDS; an overrun surfaces as a 504 Timeout error.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from stockledger.database import get_db
from stockledger import models
from stockledger.schemas.inventory import OperationType, UserRole
from stockledger.schemas.reports import (
    ReportDescriptor,
    InventoryValuationOptions, SalesReportOptions, StockMovementOptions,
    UserActivityOptions, LowStockOptions, ExecutiveSummaryOptions,
    InventoryValuationReport, SalesPerformanceReport, StockMovementReport,
    UserActivityReport, LowStockAlertReport, ExecutiveSummaryReport,
)
from stockledger.security import require_manager
from stockledger.services import reports

router = APIRouter(prefix="/reports", tags=["reports"])

@router.get("", response_model=List[ReportDescriptor])
def list_reports(current_user: models.User = Depends(require_manager)):
    return reports.REPORT_CATALOGUE

@router.get("/inventory-valuation", response_model=InventoryValuationReport)
def inventory_valuation(
    include_zero_value: bool = False,
    group_by_category: bool = True,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    options = InventoryValuationOptions(
        include_zero_value=include_zero_value,
        group_by_category=group_by_category,
    )
    return reports.inventory_valuation(db, options)

@router.get("/sales-performance", response_model=SalesPerformanceReport)
def sales_performance(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_product_details: bool = True,
    limit: int = Query(20, ge=1, le=100),
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    options = SalesReportOptions(
        date_from=date_from,
        date_to=date_to,
        include_product_details=include_product_details,
        limit=limit,
    )
    return reports.sales_performance(db, options)

@router.get("/stock-movement", response_model=StockMovementReport)
def stock_movement(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    operation_type: Optional[OperationType] = None,
    include_details: bool = True,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    options = StockMovementOptions(
        date_from=date_from,
        date_to=date_to,
        operation_type=operation_type,
        include_details=include_details,
    )
    return reports.stock_movement(db, options)

@router.get("/user-activity", response_model=UserActivityReport)
def user_activity(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_details: bool = True,
    role_filter: Optional[UserRole] = None,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    options = UserActivityOptions(
        date_from=date_from,
        date_to=date_to,
        include_details=include_details,
        role_filter=role_filter,
    )
    return reports.user_activity(db, options)

@router.get("/low-stock-alerts", response_model=LowStockAlertReport)
def low_stock_alerts(
    include_predictions: bool = True,
    days_to_predict: int = Query(30, ge=1, le=365),
    urgency_threshold: float = Query(70, ge=0, le=100),
    category_filter: Optional[str] = None,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    options = LowStockOptions(
        include_predictions=include_predictions,
        days_to_predict=days_to_predict,
        urgency_threshold=urgency_threshold,
        category_filter=category_filter,
    )
    return reports.low_stock_alerts(db, options)

@router.get("/executive-summary", response_model=ExecutiveSummaryReport)
def executive_summary(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: models.User = Depends(require_manager),
    db: Session = Depends(get_db)
):
    return reports.executive_summary(db, ExecutiveSummaryOptions(date_from=date_from, date_to=date_to))
