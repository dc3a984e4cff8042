"""
Product router.
Contract: quantity is set once at creation and afterwards only moves through
the stock endpoints; PATCH touches metadata only
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from stockledger.database import get_db
from stockledger import models
from stockledger.crud.products import crud_product
from stockledger.errors import NotFound
from stockledger.schemas.inventory import ProductCreate, ProductUpdate, ProductWithStatus, ProductPage
from stockledger.security import get_current_user
from stockledger.services import stock

router = APIRouter(prefix="/products", tags=["products"])

def with_status(product: models.Product) -> ProductWithStatus:
    return ProductWithStatus.model_validate({
        **{column.name: getattr(product, column.name) for column in models.Product.__table__.columns},
        "stock_level": stock.determine_stock_level(product),
        "is_low_stock": product.is_low_stock(),
        "is_out_of_stock": product.is_out_of_stock(),
        "total_value": product.total_value(),
    })

@router.post("", response_model=ProductWithStatus, status_code=status.HTTP_201_CREATED)
def create_product(
    product_in: ProductCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """A positive starting quantity is recorded as a purchase in the ledger"""
    product, _ = stock.create_product(db, product_in, current_user.id)
    return with_status(product)

@router.get("", response_model=ProductPage)
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    low_stock: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    products, total = crud_product.list(
        db, search=search, category=category, low_stock=low_stock, skip=skip, limit=limit
    )
    return ProductPage(
        products=[with_status(p) for p in products],
        total=total,
        limit=limit,
        offset=skip,
    )

@router.get("/categories", response_model=List[str])
def list_categories(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Distinct product categories, alphabetical"""
    return crud_product.get_categories(db)

@router.get("/{product_id}", response_model=ProductWithStatus)
def get_product(
    product_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    product = crud_product.get(db, product_id)
    if not product:
        raise NotFound("Product", product_id)
    return with_status(product)

@router.patch("/{product_id}", response_model=ProductWithStatus)
def update_product(
    product_id: int,
    product_in: ProductUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    product = crud_product.update_metadata(
        db, id=product_id, obj_in=product_in.model_dump(exclude_unset=True)
    )
    return with_status(product)
