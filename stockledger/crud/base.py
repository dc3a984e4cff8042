"""
Base CRUD operations with SQLAlchemy 2.x patterns.
Contract: Use only 2.x syntax - select(), insert(), update(), delete()
- Reads log SQLAlchemy errors and raise StorageFailure
- Writes never commit; the caller owns the transaction boundary
"""
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from typing import TypeVar, Generic, Type, Optional, Dict, Any

from stockledger.database import Base
from stockledger.errors import StorageFailure

logger = logging.getLogger(__name__)
ModelType = TypeVar("ModelType", bound=Base)

class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: int) -> Optional[ModelType]:
        """Get record by ID using SQLAlchemy 2.x select()"""
        try:
            stmt = select(self.model).where(self.model.id == id)
            result = db.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting {self.model.__name__} {id}: {e}")
            raise StorageFailure() from e

    def add(self, db: Session, *, obj_in: Dict[str, Any]) -> ModelType:
        """
        Stage a new record and flush it so it has an id.
        Contract: no commit here, SQLAlchemyError propagates to the caller
        """
        obj = self.model(**obj_in)
        db.add(obj)
        db.flush()
        return obj
