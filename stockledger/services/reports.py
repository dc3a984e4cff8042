"""
Report composer: the six fixed report shapes plus the ledger summary.
Contract:
- Read-only; reports never write
- Ledger rows are streamed into the aggregation fold, never loaded whole
- Every report runs under a ReportBudget and raises ReportTimeout past it
- Storage errors propagate unchanged, no retries
"""
from collections import OrderedDict
from datetime import date, datetime, timedelta
from sqlalchemy.orm import Session
import logging
from typing import Dict, List, Optional, Tuple

from stockledger.config import settings
from stockledger.crud.products import crud_product
from stockledger.crud.users import crud_user
from stockledger.crud.notifications import crud_notification
from stockledger.errors import InvalidInput
from stockledger.schemas.inventory import OperationType
from stockledger.schemas.ledger import LedgerFilter
from stockledger.schemas.reports import (
    ReportType, TrendDirection, DateRange, DateRangeOptions, Recommendation,
    InventoryValuationOptions, SalesReportOptions, StockMovementOptions,
    UserActivityOptions, LowStockOptions, ExecutiveSummaryOptions,
    ValuationItem, ValuationCategory, InventoryValuationSummary, ValuationPerformance,
    InventoryValuationReport,
    DailySales, ProductSales, UserSales, SalesSummary, SalesAnalytics, SalesPerformanceReport,
    OperationBreakdown, ProductMovement, UserMovement, DailyMovement, StockMovementSummary,
    MovementEfficiency, StockMovementReport,
    UserActivity, DailyUserActivity, RoleAnalysis, MostActiveUser, PeakActivityDay,
    UserActivitySummary, ProductivityMetrics, UserActivityReport,
    UrgencyItem, LowStockCategory, PredictedStockout, StockPredictions, ActionRecommendation,
    AlertNotification, FinancialImpact, LowStockSummary, LowStockAlertReport,
    InventoryMetrics, SalesMetrics, OperationsMetrics, AlertMetrics, ExecutiveKeyMetrics,
    PerformanceIndicators, Insight, PriorityAction, ReportSummaries, ExecutiveSummaryReport,
    LedgerSummary, ReportDescriptor,
)
from stockledger.services import ledger_query
from stockledger.services.aggregation import (
    GroupStats, LedgerAggregation, rank, peak_day, daily_series, compute_trend,
    consistency_score, ratio,
)
from stockledger.services.alerts import (
    StockAssessment, assess_product, rank_by_urgency,
    PREDICTION_METHODOLOGY, PREDICTION_DISCLAIMER,
)
from stockledger.utils.budget import ReportBudget
from stockledger.utils.dates import utcnow

logger = logging.getLogger(__name__)

TOP_PRODUCTS = 20
TOP_USERS = 10
TOP_USER_RANKINGS = 20
URGENCY_RANKING_SIZE = 50
RECENT_NOTIFICATIONS = 20
PREDICTED_STOCKOUTS = 10
BUDGET_CHECK_EVERY = 200

UNKNOWN = "Unknown"

# ====================
# HELPERS
# ====================

def resolve_range(options: DateRangeOptions, default_days: int) -> DateRange:
    """Fill missing bounds (to = today, from = to - default_days) and validate."""
    date_to = options.date_to or utcnow().date()
    date_from = options.date_from or (date_to - timedelta(days=default_days))
    if date_from > date_to:
        raise InvalidInput("date_from must be on or before date_to")
    return DateRange(date_from=date_from, date_to=date_to)

def _fold(db: Session, flt: LedgerFilter, budget: ReportBudget, *, decreases_only: bool = False) -> LedgerAggregation:
    aggregation = LedgerAggregation().consume(
        ledger_query.stream(db, flt, decreases_only=decreases_only), budget
    )
    budget.check()
    return aggregation

def _product_labels(db: Session, aggregation: LedgerAggregation) -> Dict[int, Tuple[str, str]]:
    return crud_product.get_names(db, aggregation.by_product.keys())

def _usernames(db: Session) -> Dict[int, str]:
    return {user.id: user.username for user in crud_user.get_all(db)}

def _values(series: List[Tuple[date, float]]) -> List[float]:
    return [value for _, value in series]

# ====================
# INVENTORY VALUATION
# ====================

def _inventory_recommendations(summary: InventoryValuationSummary) -> List[Recommendation]:
    recommendations = []
    if summary.out_of_stock_items > 0:
        recommendations.append(Recommendation(
            priority="critical",
            type="restock",
            message=f"{summary.out_of_stock_items} products are out of stock and need immediate restocking.",
            action="Review out-of-stock items and place urgent orders",
        ))
    if summary.low_stock_items > 5:
        recommendations.append(Recommendation(
            priority="high",
            type="reorder",
            message=f"{summary.low_stock_items} products are running low on stock.",
            action="Plan restock orders for low-stock items",
        ))
    if summary.low_stock_value > summary.total_inventory_value * 0.1:
        recommendations.append(Recommendation(
            priority="medium",
            type="optimization",
            message="Low stock items represent significant inventory value.",
            action="Review reorder levels and purchasing strategies",
        ))
    return recommendations

def inventory_valuation(
    db: Session,
    options: Optional[InventoryValuationOptions] = None,
    budget: Optional[ReportBudget] = None,
) -> InventoryValuationReport:
    options = options or InventoryValuationOptions()
    budget = budget or ReportBudget(ReportType.INVENTORY_VALUATION.value)

    items: List[ValuationItem] = []
    categories: Dict[str, ValuationCategory] = OrderedDict()
    for count, product in enumerate(crud_product.stream(db, include_zero_value=options.include_zero_value), 1):
        total_value = round(float(product.total_value()), 2)
        is_low = product.is_low_stock()
        item = ValuationItem(
            id=product.id,
            sku=product.sku,
            name=product.name,
            category=product.category,
            quantity=product.quantity,
            unit_price=float(product.price or 0),
            total_value=total_value,
            reorder_level=product.reorder_level,
            is_low_stock=is_low,
            is_out_of_stock=product.is_out_of_stock(),
            low_stock_value=total_value if is_low else 0.0,
            location=product.location or UNKNOWN,
            supplier=product.supplier or UNKNOWN,
        )
        items.append(item)

        if options.group_by_category:
            category = categories.setdefault(item.category, ValuationCategory(category=item.category))
            category.total_items += 1
            category.total_quantity += item.quantity
            category.total_value = round(category.total_value + item.total_value, 2)
            category.low_stock_items += int(item.is_low_stock)
            category.out_of_stock_items += int(item.is_out_of_stock)

        if count % BUDGET_CHECK_EVERY == 0:
            budget.check()
    budget.check()

    total_value = sum(item.total_value for item in items)
    summary = InventoryValuationSummary(
        total_products=len(items),
        total_inventory_value=round(total_value, 2),
        total_quantity=sum(item.quantity for item in items),
        low_stock_items=sum(1 for item in items if item.is_low_stock),
        out_of_stock_items=sum(1 for item in items if item.is_out_of_stock),
        low_stock_value=round(sum(item.low_stock_value for item in items), 2),
        average_unit_value=round(ratio(total_value, len(items)), 2),
    )

    return InventoryValuationReport(
        generated_at=utcnow(),
        summary=summary,
        category_breakdown=list(categories.values()),
        detailed_items=items,
        recommendations=_inventory_recommendations(summary),
        performance_metrics=ValuationPerformance(
            inventory_turnover_indicator=round(
                ratio(summary.low_stock_value, summary.total_inventory_value, 100), 2
            ),
            stock_health_score=round(
                ratio(summary.total_products - summary.out_of_stock_items, summary.total_products, 100), 1
            ),
        ),
    )

# ====================
# SALES PERFORMANCE
# ====================

def _daily_sales(stats: GroupStats) -> DailySales:
    return DailySales(
        date=stats.key,
        total_quantity_sold=stats.total_decrease,
        total_sales_count=stats.total_movements,
        unique_products=stats.unique_products,
        unique_users=stats.unique_users,
    )

def sales_performance(
    db: Session,
    options: Optional[SalesReportOptions] = None,
    budget: Optional[ReportBudget] = None,
) -> SalesPerformanceReport:
    """Sales are sale entries that decreased stock; quantity sold is the decrease."""
    options = options or SalesReportOptions()
    budget = budget or ReportBudget(ReportType.SALES_PERFORMANCE.value)
    date_range = resolve_range(options, 30)

    flt = LedgerFilter(
        operation_type=OperationType.SALE,
        date_from=date_range.date_from,
        date_to=date_range.date_to,
    )
    aggregation = _fold(db, flt, budget, decreases_only=True)
    totals = aggregation.totals

    top_products = []
    if options.include_product_details:
        labels = _product_labels(db, aggregation)
        for stats in rank(aggregation.by_product.values(), "total_decrease", limit=options.limit):
            sku, name = labels.get(stats.key, (UNKNOWN, UNKNOWN))
            top_products.append(ProductSales(
                product_id=stats.key,
                product_sku=sku,
                product_name=name,
                total_quantity_sold=stats.total_decrease,
                total_sales_count=stats.total_movements,
                last_sale_date=stats.last_activity,
            ))

    usernames = _usernames(db)
    top_users = [
        UserSales(
            user_id=stats.key,
            user_username=usernames.get(stats.key, UNKNOWN),
            total_quantity_sold=stats.total_decrease,
            total_sales_count=stats.total_movements,
            unique_products=stats.unique_products,
        )
        for stats in rank(aggregation.by_user.values(), "total_decrease", limit=TOP_USERS)
    ]
    budget.check()

    peak = peak_day(aggregation.by_day, "total_decrease")
    summary = SalesSummary(
        total_quantity_sold=totals.total_decrease,
        total_sales_transactions=totals.total_movements,
        unique_products_sold=totals.unique_products,
        unique_users_involved=totals.unique_users,
        average_daily_sales=round(ratio(totals.total_decrease, len(aggregation.by_day)), 2),
        peak_sales_day=_daily_sales(peak) if peak else None,
    )

    return SalesPerformanceReport(
        generated_at=utcnow(),
        date_range=date_range,
        summary=summary,
        top_selling_products=top_products,
        top_performing_users=top_users,
        daily_breakdown=[_daily_sales(stats) for stats in aggregation.days()],
        trends=compute_trend(_values(daily_series(aggregation.by_day, "total_decrease"))),
        analytics=SalesAnalytics(
            sales_velocity=round(ratio(totals.total_decrease, totals.total_movements), 2),
            product_diversity=totals.unique_products,
            user_engagement=totals.unique_users,
        ),
    )

# ====================
# STOCK MOVEMENT
# ====================

def _movement_summary(aggregation: LedgerAggregation) -> StockMovementSummary:
    totals = aggregation.totals
    return StockMovementSummary(
        total_movements=totals.total_movements,
        total_stock_increase=totals.total_increase,
        total_stock_decrease=totals.total_decrease,
        net_stock_change=totals.net_change,
        unique_products_affected=totals.unique_products,
        unique_users_involved=totals.unique_users,
        operation_types_used=len(aggregation.by_operation),
    )

def _operation_breakdown(aggregation: LedgerAggregation) -> List[OperationBreakdown]:
    return [
        OperationBreakdown(
            operation_type=stats.key,
            total_movements=stats.total_movements,
            total_increase=stats.total_increase,
            total_decrease=stats.total_decrease,
            net_change=stats.net_change,
            unique_products=stats.unique_products,
            unique_users=stats.unique_users,
        )
        for stats in rank(aggregation.by_operation.values())
    ]

def _product_movements(db: Session, aggregation: LedgerAggregation, limit: int) -> List[ProductMovement]:
    ranked = rank(aggregation.by_product.values(), limit=limit)
    labels = crud_product.get_names(db, (stats.key for stats in ranked))
    movements = []
    for stats in ranked:
        sku, name = labels.get(stats.key, (UNKNOWN, UNKNOWN))
        movements.append(ProductMovement(
            product_id=stats.key,
            product_sku=sku,
            product_name=name,
            total_movements=stats.total_movements,
            total_increase=stats.total_increase,
            total_decrease=stats.total_decrease,
            net_change=stats.net_change,
            operation_types=stats.operation_types,
            last_activity=stats.last_activity,
        ))
    return movements

def _user_movements(db: Session, aggregation: LedgerAggregation, limit: int) -> List[UserMovement]:
    usernames = _usernames(db)
    return [
        UserMovement(
            user_id=stats.key,
            user_username=usernames.get(stats.key, UNKNOWN),
            total_movements=stats.total_movements,
            total_increase=stats.total_increase,
            total_decrease=stats.total_decrease,
            unique_products=stats.unique_products,
            operation_types=stats.operation_types,
        )
        for stats in rank(aggregation.by_user.values(), limit=limit)
    ]

def _daily_movements(aggregation: LedgerAggregation) -> List[DailyMovement]:
    return [
        DailyMovement(
            date=stats.key,
            total_movements=stats.total_movements,
            total_increase=stats.total_increase,
            total_decrease=stats.total_decrease,
            net_change=stats.net_change,
            unique_products=stats.unique_products,
            unique_users=stats.unique_users,
            operation_types=stats.operation_types,
        )
        for stats in aggregation.days()
    ]

def _movement_insights(
    operations: List[OperationBreakdown],
    products: List[ProductMovement],
    aggregation: LedgerAggregation,
) -> List[str]:
    insights = []
    if operations:
        insights.append(
            f"{operations[0].operation_type.value} operations account for the majority of stock movements"
        )
    if products:
        top = products[0]
        insights.append(
            f"Product {top.product_sku} had the most stock movements with {top.total_movements} transactions"
        )
    if aggregation.by_day:
        average = aggregation.totals.total_movements / len(aggregation.by_day)
        insights.append(f"Average daily stock movements: {average:.1f} transactions")
    return insights

def stock_movement(
    db: Session,
    options: Optional[StockMovementOptions] = None,
    budget: Optional[ReportBudget] = None,
) -> StockMovementReport:
    options = options or StockMovementOptions()
    budget = budget or ReportBudget(ReportType.STOCK_MOVEMENT.value)
    date_range = resolve_range(options, 7)

    flt = LedgerFilter(
        operation_type=options.operation_type,
        date_from=date_range.date_from,
        date_to=date_range.date_to,
    )
    aggregation = _fold(db, flt, budget)
    summary = _movement_summary(aggregation)

    operations = _operation_breakdown(aggregation)
    products = _product_movements(db, aggregation, TOP_PRODUCTS)
    users = _user_movements(db, aggregation, TOP_USERS)
    budget.check()

    return StockMovementReport(
        generated_at=utcnow(),
        date_range=date_range,
        operation_filter=options.operation_type.value if options.operation_type else "all",
        summary=summary,
        operation_breakdown=operations,
        most_active_products=products,
        most_active_users=users,
        daily_breakdown=_daily_movements(aggregation) if options.include_details else [],
        trends=compute_trend(_values(daily_series(aggregation.by_day))),
        insights=_movement_insights(operations, products, aggregation),
        efficiency_metrics=MovementEfficiency(
            movement_frequency=round(ratio(summary.total_movements, len(aggregation.by_day)), 2),
            stock_velocity=round(ratio(summary.total_stock_decrease, summary.total_stock_increase), 2),
            operational_diversity=summary.operation_types_used,
        ),
    )

def ledger_summary(db: Session, flt: LedgerFilter, *, top: int = 10) -> LedgerSummary:
    """Grouped totals for an arbitrary ledger filter (no pagination)."""
    budget = ReportBudget("ledger_summary")
    aggregation = _fold(db, flt, budget)
    return LedgerSummary(
        generated_at=utcnow(),
        totals=_movement_summary(aggregation),
        by_operation=_operation_breakdown(aggregation),
        by_day=_daily_movements(aggregation),
        top_products=_product_movements(db, aggregation, top),
        top_users=_user_movements(db, aggregation, top),
    )

# ====================
# USER ACTIVITY
# ====================

def _role_analysis(ranked: List[UserActivity]) -> List[RoleAnalysis]:
    roles: Dict[str, RoleAnalysis] = OrderedDict()
    for user in ranked:
        analysis = roles.setdefault(user.role.value, RoleAnalysis(role=user.role))
        analysis.total_users += 1
        if user.total_activities > 0:
            analysis.active_users += 1
            analysis.total_activities += user.total_activities
    for analysis in roles.values():
        analysis.average_activities = round(ratio(analysis.total_activities, analysis.active_users), 2)
    return list(roles.values())

def user_activity(
    db: Session,
    options: Optional[UserActivityOptions] = None,
    budget: Optional[ReportBudget] = None,
) -> UserActivityReport:
    """All users are listed, including those with no activity in the range."""
    options = options or UserActivityOptions()
    budget = budget or ReportBudget(ReportType.USER_ACTIVITY.value)
    date_range = resolve_range(options, 30)

    users = crud_user.get_all(db)
    flt = LedgerFilter(date_from=date_range.date_from, date_to=date_range.date_to)
    aggregation = _fold(db, flt, budget)

    by_id = {user.id: user for user in users}
    stats_by_user = [
        aggregation.by_user.get(user.id) or GroupStats(key=user.id, order=len(aggregation.by_user) + index)
        for index, user in enumerate(users)
    ]

    ranked = []
    for stats in rank(stats_by_user):
        user = by_id[stats.key]
        ranked.append(UserActivity(
            user_id=user.id,
            username=user.username,
            role=user.role,
            total_activities=stats.total_movements,
            activities_by_type=dict(stats.operation_counts),
            unique_products_affected=stats.unique_products,
            first_activity=stats.first_activity,
            last_activity=stats.last_activity,
            most_active_day=stats.most_active_day,
            active_days=stats.active_days,
            average_daily_activities=round(stats.productivity, 2),
            daily_breakdown=(
                {day.isoformat(): count for day, count in sorted(stats.day_counts.items())}
                if options.include_details else None
            ),
        ))
    budget.check()

    active = [user for user in ranked if user.total_activities > 0]
    total_activities = aggregation.totals.total_movements
    peak = peak_day(aggregation.by_day)
    summary = UserActivitySummary(
        total_users=len(users),
        active_users=len(active),
        inactive_users=len(users) - len(active),
        total_activities=total_activities,
        average_activities_per_user=round(ratio(total_activities, len(active)), 2),
        most_active_user=(
            MostActiveUser(username=active[0].username, activities=active[0].total_activities)
            if active else None
        ),
        peak_activity_day=(
            PeakActivityDay(date=peak.key, total_activities=peak.total_movements) if peak else None
        ),
    )

    insights = []
    if active:
        insights.append(f"Average activities per active user: {ratio(total_activities, len(active)):.1f}")
        insights.append(f"{len(active)} of {len(users)} users recorded stock activity")
    if peak:
        insights.append(f"Peak activity day was {peak.key.isoformat()} with {peak.total_movements} activities")

    rankings = ranked
    if options.role_filter:
        rankings = [user for user in ranked if user.role == options.role_filter]

    return UserActivityReport(
        generated_at=utcnow(),
        date_range=date_range,
        role_filter=options.role_filter.value if options.role_filter else "all",
        summary=summary,
        user_rankings=rankings[:TOP_USER_RANKINGS],
        daily_activity_breakdown=[
            DailyUserActivity(
                date=stats.key,
                total_activities=stats.total_movements,
                active_users=stats.unique_users,
                unique_products=stats.unique_products,
                activities_by_type=dict(stats.operation_counts),
            )
            for stats in aggregation.days()
        ],
        role_analysis=_role_analysis(ranked),
        productivity_insights=insights,
        productivity_metrics=ProductivityMetrics(
            activity_concentration=round(ratio(total_activities, len(active)), 2),
            user_engagement_rate=round(ratio(len(active), len(users), 100), 1),
            consistency_score=round(
                consistency_score([stats.total_movements for stats in aggregation.days()]), 1
            ),
        ),
    )

# ====================
# LOW STOCK ALERTS
# ====================

def _urgency_item(assessment: StockAssessment) -> UrgencyItem:
    return UrgencyItem(
        id=assessment.product_id,
        sku=assessment.sku,
        name=assessment.name,
        category=assessment.category,
        quantity=assessment.quantity,
        reorder_level=assessment.reorder_level,
        price=assessment.price,
        shortage_amount=assessment.shortage_amount,
        urgency_score=assessment.urgency_score,
        daily_consumption_estimate=assessment.daily_consumption_estimate,
        consumption_basis=assessment.consumption_basis,
        estimated_stockout_days=assessment.estimated_stockout_days,
        recommended_order_quantity=assessment.recommended_order_quantity,
        confidence=assessment.confidence,
    )

def _stock_actions(ranked: List[StockAssessment], categories: List[LowStockCategory]) -> List[ActionRecommendation]:
    actions = []
    critical = [a for a in ranked if a.urgency_score >= 100]
    if critical:
        actions.append(ActionRecommendation(
            priority="immediate",
            action="emergency_restock",
            message=f"{len(critical)} products are completely out of stock",
            items=[a.sku for a in critical[:5]],
        ))
    urgent = [a for a in ranked if 70 <= a.urgency_score < 100]
    if urgent:
        actions.append(ActionRecommendation(
            priority="urgent",
            action="priority_restock",
            message=f"{len(urgent)} products need urgent restocking",
            items=[a.sku for a in urgent[:10]],
        ))
    critical_categories = [c for c in categories if c.critical_items > 0]
    if critical_categories:
        actions.append(ActionRecommendation(
            priority="high",
            action="category_review",
            message=f"{len(critical_categories)} categories have critical stock issues",
            items=[c.category for c in critical_categories],
        ))
    return actions

def _predictions(assessments: List[StockAssessment], days: int, today: date) -> StockPredictions:
    stockouts = []
    for assessment in [a for a in assessments if a.quantity > 0][:PREDICTED_STOCKOUTS]:
        stockouts.append(PredictedStockout(
            sku=assessment.sku,
            name=assessment.name,
            current_quantity=assessment.quantity,
            estimated_stockout_days=assessment.estimated_stockout_days,
            estimated_stockout_date=assessment.stockout_date(today),
            within_period=assessment.estimated_stockout_days <= days,
        ))
    return StockPredictions(
        prediction_period_days=days,
        methodology=PREDICTION_METHODOLOGY,
        predicted_stockouts=stockouts,
        disclaimer=PREDICTION_DISCLAIMER,
    )

def low_stock_alerts(
    db: Session,
    options: Optional[LowStockOptions] = None,
    budget: Optional[ReportBudget] = None,
    now: Optional[datetime] = None,
) -> LowStockAlertReport:
    options = options or LowStockOptions()
    budget = budget or ReportBudget(ReportType.LOW_STOCK_ALERT.value)
    now = now or utcnow()

    products = crud_product.get_low_stock(db)
    assessments = []
    for product in products:
        history = ledger_query.recent_entries_for_product(db, product.id, settings.CONSUMPTION_HISTORY_ENTRIES)
        assessments.append(assess_product(product, history, now))
        budget.check()

    categories: Dict[str, LowStockCategory] = OrderedDict()
    for assessment in assessments:
        category = categories.setdefault(assessment.category, LowStockCategory(category=assessment.category))
        category.total_items += 1
        if assessment.is_critical:
            category.critical_items += 1
        else:
            category.warning_items += 1
        category.total_shortage += assessment.shortage_amount
        category.estimated_reorder_cost = round(
            category.estimated_reorder_cost + assessment.shortage_amount * assessment.price, 2
        )
    category_breakdown = sorted(categories.values(), key=lambda c: -c.critical_items)

    ranked = rank_by_urgency(assessments)
    urgent = [
        a for a in ranked
        if (not options.category_filter or a.category.lower() == options.category_filter.lower())
        and a.urgency_score >= options.urgency_threshold
    ]

    critical_count = sum(1 for a in assessments if a.is_critical)
    shortage_value = round(sum(a.shortage_amount * a.price for a in assessments), 2)
    summary = LowStockSummary(
        total_low_stock_items=len(assessments),
        critical_items=critical_count,
        warning_items=len(assessments) - critical_count,
        categories_affected=len(categories),
        total_estimated_shortage_value=shortage_value,
        requires_immediate_action=critical_count > 0,
    )

    notifications = [
        AlertNotification(
            id=n.id, product_id=n.product_id, type=n.type, message=n.message, created_at=n.created_at,
        )
        for n in crud_notification.get_recent_stock_alerts(db, limit=RECENT_NOTIFICATIONS)
    ]
    budget.check()

    return LowStockAlertReport(
        generated_at=now,
        summary=summary,
        urgency_ranking=[_urgency_item(a) for a in ranked[:URGENCY_RANKING_SIZE]],
        urgent_items=[_urgency_item(a) for a in urgent],
        category_breakdown=category_breakdown,
        recent_notifications=notifications,
        stock_predictions=(
            _predictions(assessments, options.days_to_predict, now.date())
            if options.include_predictions else None
        ),
        action_recommendations=_stock_actions(ranked, category_breakdown),
        financial_impact=FinancialImpact(
            immediate_restock_cost=round(sum(a.recommended_order_quantity * a.price for a in urgent), 2),
            potential_lost_sales=round(
                sum(a.price * a.reorder_level * 0.5 for a in ranked if a.is_critical), 2
            ),
            inventory_risk_value=shortage_value,
        ),
    )

# ====================
# EXECUTIVE SUMMARY
# ====================

def executive_summary(
    db: Session,
    options: Optional[ExecutiveSummaryOptions] = None,
    budget: Optional[ReportBudget] = None,
) -> ExecutiveSummaryReport:
    """The other five reports under one shared budget, condensed."""
    options = options or ExecutiveSummaryOptions()
    budget = budget or ReportBudget(ReportType.EXECUTIVE_SUMMARY.value)
    date_range = resolve_range(options, 30)
    range_args = {"date_from": date_range.date_from, "date_to": date_range.date_to}

    inventory = inventory_valuation(db, InventoryValuationOptions(include_zero_value=False), budget)
    sales = sales_performance(db, SalesReportOptions(**range_args), budget)
    movement = stock_movement(db, StockMovementOptions(**range_args), budget)
    activity = user_activity(db, UserActivityOptions(**range_args), budget)
    alerts = low_stock_alerts(db, LowStockOptions(include_predictions=False), budget)
    budget.check()

    sales_trend = sales.trends.trend_direction if sales.trends else None

    key_metrics = ExecutiveKeyMetrics(
        inventory=InventoryMetrics(
            total_value=inventory.summary.total_inventory_value,
            total_products=inventory.summary.total_products,
            stock_health_score=inventory.performance_metrics.stock_health_score,
        ),
        sales=SalesMetrics(
            total_quantity_sold=sales.summary.total_quantity_sold,
            total_transactions=sales.summary.total_sales_transactions,
            unique_products_sold=sales.summary.unique_products_sold,
            average_daily_sales=sales.summary.average_daily_sales,
            trend_direction=sales_trend,
        ),
        operations=OperationsMetrics(
            total_stock_movements=movement.summary.total_movements,
            net_stock_change=movement.summary.net_stock_change,
            active_users=activity.summary.active_users,
            total_user_activities=activity.summary.total_activities,
        ),
        alerts=AlertMetrics(
            critical_stock_items=alerts.summary.critical_items,
            warning_stock_items=alerts.summary.warning_items,
            categories_affected=alerts.summary.categories_affected,
            estimated_shortage_value=alerts.summary.total_estimated_shortage_value,
        ),
    )

    indicators = PerformanceIndicators(
        inventory_turnover=round(
            ratio(inventory.summary.total_quantity, sales.summary.total_quantity_sold), 2
        ),
        stock_efficiency=round(
            ratio(movement.summary.net_stock_change, movement.summary.total_stock_increase, 100), 2
        ),
        operational_efficiency=round(
            ratio(movement.summary.total_movements, activity.summary.active_users), 2
        ),
        alert_severity=round(
            ratio(alerts.summary.critical_items, alerts.summary.total_low_stock_items, 100), 2
        ),
    )

    insights = [
        Insight(
            category="inventory",
            insight=f"Inventory valued at ${inventory.summary.total_inventory_value:,.2f}",
            impact="negative" if inventory.summary.out_of_stock_items > 0 else "positive",
        ),
        Insight(
            category="sales",
            insight=(
                f"{sales.summary.total_quantity_sold} units sold across "
                f"{sales.summary.unique_products_sold} products"
            ),
            impact="positive" if sales_trend == TrendDirection.INCREASING else "neutral",
        ),
        Insight(
            category="operations",
            insight=(
                f"{movement.summary.total_movements} stock movements by "
                f"{activity.summary.active_users} active users"
            ),
            impact=(
                "positive"
                if activity.summary.active_users >= activity.summary.total_users * 0.7
                else "neutral"
            ),
        ),
        Insight(
            category="alerts",
            insight=f"{alerts.summary.critical_items} critical stock items requiring immediate attention",
            impact="negative" if alerts.summary.critical_items > 0 else "positive",
        ),
    ]

    actions = []
    if alerts.summary.critical_items > 0:
        actions.append(PriorityAction(
            priority="immediate",
            action="Address critical stock shortages",
            description=f"{alerts.summary.critical_items} products are out of stock",
            estimated_impact="high",
        ))
    if alerts.summary.warning_items > 5:
        actions.append(PriorityAction(
            priority="urgent",
            action="Plan restocking for low inventory",
            description=f"{alerts.summary.warning_items} products need restocking",
            estimated_impact="medium",
        ))
    if sales_trend == TrendDirection.DECREASING:
        actions.append(PriorityAction(
            priority="high",
            action="Investigate declining sales trend",
            description="Sales performance showing downward trend",
            estimated_impact="medium",
        ))

    logger.info(f"Executive summary generated for {date_range.date_from} - {date_range.date_to}")
    return ExecutiveSummaryReport(
        generated_at=utcnow(),
        date_range=date_range,
        summary=key_metrics,
        performance_indicators=indicators,
        top_insights=insights,
        priority_actions=actions,
        report_summaries=ReportSummaries(
            inventory_valuation=inventory.summary,
            sales_performance=sales.summary,
            stock_movement=movement.summary,
            user_activity=activity.summary,
            low_stock_alert=alerts.summary,
        ),
    )

# ====================
# CATALOGUE
# ====================

REPORT_CATALOGUE = [
    ReportDescriptor(
        name="Inventory Valuation",
        report_type=ReportType.INVENTORY_VALUATION,
        endpoint="/api/reports/inventory-valuation",
        description="Complete inventory valuation with category breakdown",
        parameters=["include_zero_value", "group_by_category"],
    ),
    ReportDescriptor(
        name="Sales Performance",
        report_type=ReportType.SALES_PERFORMANCE,
        endpoint="/api/reports/sales-performance",
        description="Sales analysis with trends and product rankings",
        parameters=["date_from", "date_to", "include_product_details", "limit"],
    ),
    ReportDescriptor(
        name="Stock Movement",
        report_type=ReportType.STOCK_MOVEMENT,
        endpoint="/api/reports/stock-movement",
        description="Stock movement analysis by operation type",
        parameters=["date_from", "date_to", "operation_type", "include_details"],
    ),
    ReportDescriptor(
        name="User Activity",
        report_type=ReportType.USER_ACTIVITY,
        endpoint="/api/reports/user-activity",
        description="User activity and productivity analysis",
        parameters=["date_from", "date_to", "include_details", "role_filter"],
    ),
    ReportDescriptor(
        name="Low Stock Alerts",
        report_type=ReportType.LOW_STOCK_ALERT,
        endpoint="/api/reports/low-stock-alerts",
        description="Critical stock alerts with urgency ranking",
        parameters=["include_predictions", "days_to_predict", "urgency_threshold", "category_filter"],
    ),
    ReportDescriptor(
        name="Executive Summary",
        report_type=ReportType.EXECUTIVE_SUMMARY,
        endpoint="/api/reports/executive-summary",
        description="Comprehensive executive dashboard summary",
        parameters=["date_from", "date_to"],
    ),
]
