"""
Product and stock-operation schemas.
- Quantities are whole units
- Every stock change names a reason and an operation type
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum

class OperationType(str, Enum):
    MANUAL_ADJUSTMENT = "manual_adjustment"
    SALE = "sale"
    PURCHASE = "purchase"
    DAMAGE = "damage"
    TRANSFER = "transfer"
    CORRECTION = "correction"

# Operation types that consume stock; used for consumption-rate estimates
CONSUMING_OPERATIONS = frozenset({OperationType.SALE, OperationType.DAMAGE, OperationType.TRANSFER})

class NotificationType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    REORDER_REQUIRED = "reorder_required"

class UserRole(str, Enum):
    STAFF = "staff"
    MANAGER = "manager"

class StockLevel(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    NORMAL_STOCK = "normal_stock"

# Product Schemas
class ProductBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    reorder_level: int = Field(10, ge=0)
    location: Optional[str] = Field(None, max_length=100)
    supplier: Optional[str] = Field(None, max_length=255)

class ProductCreate(ProductBase):
    sku: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Z0-9-]+$")
    quantity: int = Field(0, ge=0)

    @field_validator('sku', mode='before')
    @classmethod
    def normalize_sku(cls, v):
        """SKUs are stored upper-case"""
        if isinstance(v, str):
            return v.strip().upper()
        return v

class ProductUpdate(BaseModel):
    """Metadata only: SKU is immutable and quantity moves through the ledger"""
    model_config = ConfigDict(extra='forbid')

    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    reorder_level: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=100)
    supplier: Optional[str] = Field(None, max_length=255)

class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    quantity: int
    created_at: datetime
    updated_at: datetime

class ProductWithStatus(ProductResponse):
    stock_level: StockLevel
    is_low_stock: bool
    is_out_of_stock: bool
    total_value: Decimal

class ProductPage(BaseModel):
    products: List[ProductWithStatus]
    total: int
    limit: int
    offset: int

# Stock operation schemas
class StockAdjustRequest(BaseModel):
    new_quantity: int
    reason: str
    operation_type: OperationType = OperationType.MANUAL_ADJUSTMENT

class StockLineItem(BaseModel):
    sku: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(..., gt=0)

class StockBatchRequest(BaseModel):
    items: List[StockLineItem] = Field(..., min_length=1)
    reference: str = Field(..., min_length=1, max_length=100)

class BulkAdjustmentItem(BaseModel):
    sku: str = Field(..., min_length=1, max_length=50)
    quantity: int
    reason: Optional[str] = None
    operation_type: OperationType = OperationType.MANUAL_ADJUSTMENT

class BulkAdjustRequest(BaseModel):
    adjustments: List[BulkAdjustmentItem] = Field(..., min_length=1, max_length=1000)

class TransferRequest(BaseModel):
    from_product_id: int
    to_product_id: int
    quantity: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=200)

class AdjustmentDetail(BaseModel):
    old_quantity: int
    new_quantity: int
    change: int
    change_type: str
    reason: str
    operation_type: OperationType

class StockStatus(BaseModel):
    is_low_stock: bool
    is_out_of_stock: bool
    stock_level: StockLevel
    notification_created: bool = False

class StockChangeResult(BaseModel):
    product: ProductResponse
    ledger_entry_id: int
    adjustment: AdjustmentDetail
    status: StockStatus

class BatchItemSuccess(BaseModel):
    sku: str
    product_id: int
    product_name: str
    old_quantity: int
    new_quantity: int
    change: int
    ledger_entry_id: int

class BatchItemFailure(BaseModel):
    sku: str
    error: str
    kind: str

class BatchSummary(BaseModel):
    total: int
    success_count: int = 0
    error_count: int = 0
    total_items_affected: int = 0
    low_stock_after: int = 0
    notifications_created: int = 0

class BatchResult(BaseModel):
    successful: List[BatchItemSuccess] = []
    failed: List[BatchItemFailure] = []
    summary: BatchSummary

class TransferResult(BaseModel):
    from_product: StockChangeResult
    to_product: StockChangeResult
    quantity: int
    reason: str

# Notification schemas
class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    type: NotificationType
    message: str
    is_read: bool
    created_at: datetime

class NotificationPage(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    limit: int
    offset: int

class NotificationTypeStats(BaseModel):
    total: int = 0
    unread: int = 0
