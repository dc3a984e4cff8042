"""
SQLAlchemy 2.x models.
- Product.quantity is written only by the stock mutation service
- inventory_ledger is append-only
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Text,
    CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from decimal import Decimal

from stockledger.database import Base
from stockledger.utils.dates import utcnow

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default='staff')
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    ledger_entries = relationship("LedgerEntry", back_populates="user")

class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("reorder_level >= 0", name="ck_products_reorder_level_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    sku = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    category = Column(String(100), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    quantity = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=10)
    location = Column(String(100))
    supplier = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    ledger_entries = relationship("LedgerEntry", back_populates="product")
    notifications = relationship("Notification", back_populates="product")

    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_level

    def is_out_of_stock(self) -> bool:
        return self.quantity == 0

    def total_value(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.price or 0)

class LedgerEntry(Base):
    __tablename__ = "inventory_ledger"
    __table_args__ = (
        Index("idx_ledger_product_date", "product_id", "created_at"),
        Index("idx_ledger_user_date", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    old_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    operation_type = Column(String(20), nullable=False, default='manual_adjustment', index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Relationships
    product = relationship("Product", back_populates="ledger_entries")
    user = relationship("User", back_populates="ledger_entries")

    @property
    def quantity_change(self) -> int:
        return self.new_quantity - self.old_quantity

class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_product_type", "product_id", "type"),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    # Relationships
    product = relationship("Product", back_populates="notifications")

# At most one unread notification per product and type
Index(
    "uq_notifications_unread_product_type",
    Notification.product_id,
    Notification.type,
    unique=True,
    postgresql_where=Notification.is_read == False,
    sqlite_where=Notification.is_read == False,
)
