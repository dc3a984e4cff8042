"""
Report option and result schemas.
Each report has its own explicit result model; every result starts with
report_type, generated_at and summary.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from enum import Enum

from stockledger.schemas.inventory import OperationType, UserRole

class ReportType(str, Enum):
    INVENTORY_VALUATION = "inventory_valuation"
    SALES_PERFORMANCE = "sales_performance"
    STOCK_MOVEMENT = "stock_movement"
    USER_ACTIVITY = "user_activity"
    LOW_STOCK_ALERT = "low_stock_alert"
    EXECUTIVE_SUMMARY = "executive_summary"

class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"

# ====================
# OPTIONS
# ====================

class DateRangeOptions(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None

class InventoryValuationOptions(BaseModel):
    include_zero_value: bool = False
    group_by_category: bool = True

class SalesReportOptions(DateRangeOptions):
    include_product_details: bool = True
    limit: int = Field(20, ge=1, le=100)

class StockMovementOptions(DateRangeOptions):
    operation_type: Optional[OperationType] = None
    include_details: bool = True

class UserActivityOptions(DateRangeOptions):
    include_details: bool = True
    role_filter: Optional[UserRole] = None

class LowStockOptions(BaseModel):
    include_predictions: bool = True
    days_to_predict: int = Field(30, ge=1, le=365)
    urgency_threshold: float = Field(70, ge=0, le=100)
    category_filter: Optional[str] = None

class ExecutiveSummaryOptions(DateRangeOptions):
    pass

# ====================
# SHARED SECTIONS
# ====================

class DateRange(BaseModel):
    date_from: date
    date_to: date

class TrendResult(BaseModel):
    recent_average: float
    previous_average: float
    trend_percentage: float
    trend_direction: TrendDirection

class Recommendation(BaseModel):
    priority: str
    type: str
    message: str
    action: str

# ====================
# INVENTORY VALUATION
# ====================

class ValuationItem(BaseModel):
    id: int
    sku: str
    name: str
    category: str
    quantity: int
    unit_price: float
    total_value: float
    reorder_level: int
    is_low_stock: bool
    is_out_of_stock: bool
    low_stock_value: float
    location: str
    supplier: str

class ValuationCategory(BaseModel):
    category: str
    total_items: int = 0
    total_quantity: int = 0
    total_value: float = 0.0
    low_stock_items: int = 0
    out_of_stock_items: int = 0

class InventoryValuationSummary(BaseModel):
    total_products: int
    total_inventory_value: float
    total_quantity: int
    low_stock_items: int
    out_of_stock_items: int
    low_stock_value: float
    average_unit_value: float

class ValuationPerformance(BaseModel):
    inventory_turnover_indicator: float
    stock_health_score: float

class InventoryValuationReport(BaseModel):
    report_type: ReportType = ReportType.INVENTORY_VALUATION
    generated_at: datetime
    summary: InventoryValuationSummary
    category_breakdown: List[ValuationCategory]
    detailed_items: List[ValuationItem]
    recommendations: List[Recommendation]
    performance_metrics: ValuationPerformance

# ====================
# SALES PERFORMANCE
# ====================

class DailySales(BaseModel):
    date: date
    total_quantity_sold: int
    total_sales_count: int
    unique_products: int
    unique_users: int

class ProductSales(BaseModel):
    product_id: int
    product_sku: str
    product_name: str
    total_quantity_sold: int
    total_sales_count: int
    last_sale_date: Optional[datetime]

class UserSales(BaseModel):
    user_id: int
    user_username: str
    total_quantity_sold: int
    total_sales_count: int
    unique_products: int

class SalesSummary(BaseModel):
    total_quantity_sold: int
    total_sales_transactions: int
    unique_products_sold: int
    unique_users_involved: int
    average_daily_sales: float
    peak_sales_day: Optional[DailySales]

class SalesAnalytics(BaseModel):
    sales_velocity: float
    product_diversity: int
    user_engagement: int

class SalesPerformanceReport(BaseModel):
    report_type: ReportType = ReportType.SALES_PERFORMANCE
    generated_at: datetime
    date_range: DateRange
    summary: SalesSummary
    top_selling_products: List[ProductSales]
    top_performing_users: List[UserSales]
    daily_breakdown: List[DailySales]
    trends: Optional[TrendResult]
    analytics: SalesAnalytics

# ====================
# STOCK MOVEMENT
# ====================

class OperationBreakdown(BaseModel):
    operation_type: OperationType
    total_movements: int
    total_increase: int
    total_decrease: int
    net_change: int
    unique_products: int
    unique_users: int

class ProductMovement(BaseModel):
    product_id: int
    product_sku: str
    product_name: str
    total_movements: int
    total_increase: int
    total_decrease: int
    net_change: int
    operation_types: List[OperationType]
    last_activity: Optional[datetime]

class UserMovement(BaseModel):
    user_id: int
    user_username: str
    total_movements: int
    total_increase: int
    total_decrease: int
    unique_products: int
    operation_types: List[OperationType]

class DailyMovement(BaseModel):
    date: date
    total_movements: int
    total_increase: int
    total_decrease: int
    net_change: int
    unique_products: int
    unique_users: int
    operation_types: List[OperationType]

class StockMovementSummary(BaseModel):
    total_movements: int
    total_stock_increase: int
    total_stock_decrease: int
    net_stock_change: int
    unique_products_affected: int
    unique_users_involved: int
    operation_types_used: int

class MovementEfficiency(BaseModel):
    movement_frequency: float
    stock_velocity: float
    operational_diversity: int

class StockMovementReport(BaseModel):
    report_type: ReportType = ReportType.STOCK_MOVEMENT
    generated_at: datetime
    date_range: DateRange
    operation_filter: str
    summary: StockMovementSummary
    operation_breakdown: List[OperationBreakdown]
    most_active_products: List[ProductMovement]
    most_active_users: List[UserMovement]
    daily_breakdown: List[DailyMovement]
    trends: Optional[TrendResult]
    insights: List[str]
    efficiency_metrics: MovementEfficiency

# ====================
# USER ACTIVITY
# ====================

class UserActivity(BaseModel):
    user_id: int
    username: str
    role: UserRole
    total_activities: int
    activities_by_type: Dict[str, int]
    unique_products_affected: int
    first_activity: Optional[datetime]
    last_activity: Optional[datetime]
    most_active_day: Optional[date]
    active_days: int
    average_daily_activities: float
    daily_breakdown: Optional[Dict[str, int]] = None

class DailyUserActivity(BaseModel):
    date: date
    total_activities: int
    active_users: int
    unique_products: int
    activities_by_type: Dict[str, int]

class RoleAnalysis(BaseModel):
    role: UserRole
    total_users: int = 0
    active_users: int = 0
    total_activities: int = 0
    average_activities: float = 0.0

class MostActiveUser(BaseModel):
    username: str
    activities: int

class PeakActivityDay(BaseModel):
    date: date
    total_activities: int

class UserActivitySummary(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    total_activities: int
    average_activities_per_user: float
    most_active_user: Optional[MostActiveUser]
    peak_activity_day: Optional[PeakActivityDay]

class ProductivityMetrics(BaseModel):
    activity_concentration: float
    user_engagement_rate: float
    consistency_score: float

class UserActivityReport(BaseModel):
    report_type: ReportType = ReportType.USER_ACTIVITY
    generated_at: datetime
    date_range: DateRange
    role_filter: str
    summary: UserActivitySummary
    user_rankings: List[UserActivity]
    daily_activity_breakdown: List[DailyUserActivity]
    role_analysis: List[RoleAnalysis]
    productivity_insights: List[str]
    productivity_metrics: ProductivityMetrics

# ====================
# LOW STOCK ALERTS
# ====================

class UrgencyItem(BaseModel):
    id: int
    sku: str
    name: str
    category: str
    quantity: int
    reorder_level: int
    price: float
    shortage_amount: int
    urgency_score: float
    daily_consumption_estimate: float
    consumption_basis: str
    estimated_stockout_days: int
    recommended_order_quantity: int
    confidence: str = "low"

class LowStockCategory(BaseModel):
    category: str
    total_items: int = 0
    critical_items: int = 0
    warning_items: int = 0
    total_shortage: int = 0
    estimated_reorder_cost: float = 0.0

class PredictedStockout(BaseModel):
    sku: str
    name: str
    current_quantity: int
    estimated_stockout_days: int
    estimated_stockout_date: date
    within_period: bool
    confidence: str = "low"

class StockPredictions(BaseModel):
    prediction_period_days: int
    methodology: str
    predicted_stockouts: List[PredictedStockout]
    disclaimer: str

class ActionRecommendation(BaseModel):
    priority: str
    action: str
    message: str
    items: List[str] = []

class AlertNotification(BaseModel):
    id: int
    product_id: int
    type: str
    message: str
    created_at: datetime

class FinancialImpact(BaseModel):
    immediate_restock_cost: float
    potential_lost_sales: float
    inventory_risk_value: float

class LowStockSummary(BaseModel):
    total_low_stock_items: int
    critical_items: int
    warning_items: int
    categories_affected: int
    total_estimated_shortage_value: float
    requires_immediate_action: bool

class LowStockAlertReport(BaseModel):
    report_type: ReportType = ReportType.LOW_STOCK_ALERT
    generated_at: datetime
    summary: LowStockSummary
    urgency_ranking: List[UrgencyItem]
    urgent_items: List[UrgencyItem]
    category_breakdown: List[LowStockCategory]
    recent_notifications: List[AlertNotification]
    stock_predictions: Optional[StockPredictions]
    action_recommendations: List[ActionRecommendation]
    financial_impact: FinancialImpact

# ====================
# EXECUTIVE SUMMARY
# ====================

class InventoryMetrics(BaseModel):
    total_value: float
    total_products: int
    stock_health_score: float

class SalesMetrics(BaseModel):
    total_quantity_sold: int
    total_transactions: int
    unique_products_sold: int
    average_daily_sales: float
    trend_direction: Optional[TrendDirection]

class OperationsMetrics(BaseModel):
    total_stock_movements: int
    net_stock_change: int
    active_users: int
    total_user_activities: int

class AlertMetrics(BaseModel):
    critical_stock_items: int
    warning_stock_items: int
    categories_affected: int
    estimated_shortage_value: float

class ExecutiveKeyMetrics(BaseModel):
    inventory: InventoryMetrics
    sales: SalesMetrics
    operations: OperationsMetrics
    alerts: AlertMetrics

class PerformanceIndicators(BaseModel):
    inventory_turnover: float
    stock_efficiency: float
    operational_efficiency: float
    alert_severity: float

class Insight(BaseModel):
    category: str
    insight: str
    impact: str

class PriorityAction(BaseModel):
    priority: str
    action: str
    description: str
    estimated_impact: str

class ReportSummaries(BaseModel):
    inventory_valuation: InventoryValuationSummary
    sales_performance: SalesSummary
    stock_movement: StockMovementSummary
    user_activity: UserActivitySummary
    low_stock_alert: LowStockSummary

class ExecutiveSummaryReport(BaseModel):
    report_type: ReportType = ReportType.EXECUTIVE_SUMMARY
    generated_at: datetime
    date_range: DateRange
    summary: ExecutiveKeyMetrics
    performance_indicators: PerformanceIndicators
    top_insights: List[Insight]
    priority_actions: List[PriorityAction]
    report_summaries: ReportSummaries

# ====================
# LEDGER SUMMARY
# ====================

class LedgerSummary(BaseModel):
    generated_at: datetime
    totals: StockMovementSummary
    by_operation: List[OperationBreakdown]
    by_day: List[DailyMovement]
    top_products: List[ProductMovement]
    top_users: List[UserMovement]

# ====================
# CATALOGUE
# ====================

class ReportDescriptor(BaseModel):
    name: str
    report_type: ReportType
    endpoint: str
    description: str
    parameters: List[str]
    access_level: UserRole = UserRole.MANAGER
