import logging
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from wms_core.database import models
from wms_core.repositories.interfaces import IRoleRepository

logger = logging.getLogger(__name__)

class SqlalchemyRoleRepository(IRoleRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, role_model: models.Role) -> models.Role:
        self.db.add(role_model)
        self.db.commit()
        self.db.refresh(role_model)
        return role_model

    def find_by_id(self, role_id: int) -> Optional[models.Role]:
        return self.db.query(models.Role).filter(models.Role.id == role_id).first()

    def find_by_slug(self, slug: str) -> Optional[models.Role]:
        return self.db.query(models.Role).filter(models.Role.slug == slug).first()

    def find_by_name(self, name: str) -> Optional[models.Role]:
        return self.db.query(models.Role).filter(models.Role.name == name).first()

    def list_with_permission_counts(self) -> List[Tuple[models.Role, int]]:
        rows = (
            self.db.query(models.Role, func.count(models.RolePermission.id))
            .outerjoin(models.RolePermission, models.RolePermission.role_id == models.Role.id)
            .group_by(models.Role.id)
            .order_by(models.Role.name.asc())
            .all()
        )
        return [(role, count) for role, count in rows]

    def save(self, role: models.Role) -> models.Role:
        self.db.commit()
        self.db.refresh(role)
        return role

    def delete(self, role: models.Role) -> bool:
        if role:
            self.db.delete(role)
            self.db.commit()
            return True
        return False

    def list_permissions(self, role_id: int) -> List[models.Permission]:
        return (
            self.db.query(models.Permission)
            .join(models.RolePermission, models.RolePermission.permission_id == models.Permission.id)
            .filter(models.RolePermission.role_id == role_id)
            .order_by(models.Permission.module.asc(), models.Permission.slug.asc())
            .all()
        )

    def replace_permissions(self, role: models.Role, permission_ids: List[int]) -> None:
        try:
            self.db.query(models.RolePermission).filter(
                models.RolePermission.role_id == role.id
            ).delete(synchronize_session="fetch")
            self.db.add_all([
                models.RolePermission(role_id=role.id, permission_id=permission_id)
                for permission_id in permission_ids
            ])
            self.db.commit()
        except SQLAlchemyError:
            logger.warning("Replacing permissions of role %s failed, rolling back", role.id)
            self.db.rollback()
            raise

    def list_users(self, role_id: int) -> List[models.User]:
        return (
            self.db.query(models.User)
            .join(models.UserRole, models.UserRole.user_id == models.User.id)
            .filter(models.UserRole.role_id == role_id)
            .order_by(models.User.username.asc())
            .all()
        )

    def count_users(self, role_id: int) -> int:
        return self.db.query(models.UserRole).filter(models.UserRole.role_id == role_id).count()
