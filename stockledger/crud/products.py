"""
Product store.
Contract:
- SKU is unique and immutable after creation
- quantity is never written here; it moves only through services.stock
- get_for_update takes the row lock used to serialize stock mutations
"""
from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from typing import List, Optional, Tuple, Dict, Any, Iterator

from stockledger.models import Product
from stockledger.crud.base import CRUDBase
from stockledger.errors import StorageFailure, InvalidInput, NotFound

logger = logging.getLogger(__name__)

# Fields owned by the ledger or fixed at creation
IMMUTABLE_FIELDS = frozenset({"sku", "quantity", "id"})

class CRUDProduct(CRUDBase[Product]):
    def __init__(self):
        super().__init__(Product)

    def get_by_sku(self, db: Session, sku: str) -> Optional[Product]:
        try:
            stmt = select(Product).where(Product.sku == sku.strip().upper())
            return db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting product by sku {sku}: {e}")
            raise StorageFailure() from e

    def get_for_update(self, db: Session, id: int) -> Optional[Product]:
        """
        SELECT ... FOR UPDATE on one product row.
        populate_existing refreshes an identity-mapped instance with the
        values read under the lock.
        Contract: SQLAlchemyError propagates, the caller rolls back
        """
        stmt = (
            select(Product)
            .where(Product.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one_or_none()

    def list(
        self,
        db: Session,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
        low_stock: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Product], int]:
        """Filtered page of products plus the total matching count"""
        conditions = []
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        if category:
            conditions.append(Product.category == category)
        if low_stock:
            conditions.append(Product.quantity <= Product.reorder_level)

        try:
            count_stmt = select(func.count()).select_from(Product).where(*conditions)
            total = db.execute(count_stmt).scalar_one()

            stmt = (
                select(Product)
                .where(*conditions)
                .order_by(Product.name, Product.id)
                .offset(skip)
                .limit(limit)
            )
            products = list(db.execute(stmt).scalars().all())
            return products, total
        except SQLAlchemyError as e:
            logger.error(f"Error listing products: {e}")
            raise StorageFailure() from e

    def get_low_stock(self, db: Session, *, category: Optional[str] = None) -> List[Product]:
        """Products at or below reorder level, emptiest first"""
        try:
            stmt = select(Product).where(Product.quantity <= Product.reorder_level)
            if category:
                stmt = stmt.where(Product.category == category)
            stmt = stmt.order_by(Product.quantity.asc(), Product.reorder_level.desc(), Product.id)
            return list(db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting low stock products: {e}")
            raise StorageFailure() from e

    def stream(self, db: Session, *, include_zero_value: bool = True, batch_size: int = 500) -> Iterator[Product]:
        """Every product in id order, fetched in batches"""
        stmt = select(Product).order_by(Product.id)
        if not include_zero_value:
            stmt = stmt.where(Product.quantity > 0)
        try:
            yield from db.scalars(stmt.execution_options(yield_per=batch_size))
        except SQLAlchemyError as e:
            logger.error(f"Error streaming products: {e}")
            raise StorageFailure() from e

    def get_names(self, db: Session, ids) -> Dict[int, Tuple[str, str]]:
        """id -> (sku, name) for the given product ids"""
        ids = list(ids)
        if not ids:
            return {}
        try:
            stmt = select(Product.id, Product.sku, Product.name).where(Product.id.in_(ids))
            return {row.id: (row.sku, row.name) for row in db.execute(stmt)}
        except SQLAlchemyError as e:
            logger.error(f"Error getting product names: {e}")
            raise StorageFailure() from e

    def get_categories(self, db: Session) -> List[str]:
        try:
            stmt = select(Product.category).distinct().order_by(Product.category)
            return list(db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting product categories: {e}")
            raise StorageFailure() from e

    def update_metadata(self, db: Session, *, id: int, obj_in: Dict[str, Any]) -> Product:
        """
        Update descriptive fields only.
        Contract: SKU and quantity are rejected
        """
        forbidden = IMMUTABLE_FIELDS.intersection(obj_in)
        if forbidden:
            raise InvalidInput(f"Fields cannot be updated directly: {', '.join(sorted(forbidden))}")

        product = self.get(db, id)
        if not product:
            raise NotFound("Product", id)

        try:
            for field, value in obj_in.items():
                setattr(product, field, value)
            db.commit()
            logger.info(f"Product {product.sku} updated: {sorted(obj_in)}")
            return product
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error updating product {id}: {e}")
            raise StorageFailure() from e

crud_product = CRUDProduct()
