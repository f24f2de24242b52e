import logging
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from wms_core.database import models
from wms_core.repositories.interfaces import IUserRepository

logger = logging.getLogger(__name__)

class SqlalchemyUserRepository(IUserRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, user_model: models.User) -> models.User:
        self.db.add(user_model)
        self.db.commit()
        self.db.refresh(user_model)
        return user_model

    def find_by_id(self, user_id: int) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.id == user_id).first()

    def find_by_username(self, username: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def find_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def list_all(self) -> List[models.User]:
        return self.db.query(models.User).order_by(models.User.username.asc()).all()

    def save(self, user: models.User) -> models.User:
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user: models.User) -> bool:
        if user:
            self.db.delete(user)
            self.db.commit()
            return True
        return False

    def replace_roles(self, user: models.User, role_ids: List[int], assigned_by: Optional[int]) -> None:
        try:
            self.db.query(models.UserRole).filter(
                models.UserRole.user_id == user.id
            ).delete(synchronize_session="fetch")
            self.db.add_all([
                models.UserRole(user_id=user.id, role_id=role_id, assigned_by=assigned_by)
                for role_id in role_ids
            ])
            self.db.commit()
        except SQLAlchemyError:
            logger.warning("Replacing roles of user %s failed, rolling back", user.id)
            self.db.rollback()
            raise
