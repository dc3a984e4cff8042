"""
User store. Read-only from the stock core; create() exists for seeding.
"""
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm import Session
import logging
from typing import List, Optional

from stockledger.models import User
from stockledger.crud.base import CRUDBase
from stockledger.errors import StorageFailure, Conflict

logger = logging.getLogger(__name__)

class CRUDUser(CRUDBase[User]):
    def __init__(self):
        super().__init__(User)

    def get_by_username(self, db: Session, username: str) -> Optional[User]:
        try:
            stmt = select(User).where(User.username == username)
            return db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user by username {username}: {e}")
            raise StorageFailure() from e

    def get_all(self, db: Session, *, role: Optional[str] = None) -> List[User]:
        try:
            stmt = select(User).order_by(User.id)
            if role:
                stmt = stmt.where(User.role == role)
            return list(db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting users: {e}")
            raise StorageFailure() from e

    def create(self, db: Session, *, username: str, password_hash: str, full_name: str, role: str = "staff") -> User:
        try:
            user = self.add(db, obj_in={
                "username": username,
                "password_hash": password_hash,
                "full_name": full_name,
                "role": role,
            })
            db.commit()
            return user
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Integrity error creating user {username}: {e}")
            raise Conflict(f"Username '{username}' already exists") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating user {username}: {e}")
            raise StorageFailure() from e

crud_user = CRUDUser()
