from typing import Set
from sqlalchemy.orm import Session
from wms_core.database import models
from wms_core.repositories.interfaces import IAccessRepository

class SqlalchemyAccessRepository(IAccessRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _permission_query(self, user_id: int):
        # user_roles -> roles -> role_permissions -> permissions, 비활성 행은 제외
        return (
            self.db.query(models.Permission.slug)
            .join(models.RolePermission, models.RolePermission.permission_id == models.Permission.id)
            .join(models.Role, models.Role.id == models.RolePermission.role_id)
            .join(models.UserRole, models.UserRole.role_id == models.Role.id)
            .filter(
                models.UserRole.user_id == user_id,
                models.Role.is_active.is_(True),
                models.Permission.is_active.is_(True),
            )
        )

    def _role_query(self, user_id: int):
        return (
            self.db.query(models.Role.slug)
            .join(models.UserRole, models.UserRole.role_id == models.Role.id)
            .filter(models.UserRole.user_id == user_id, models.Role.is_active.is_(True))
        )

    def list_permission_slugs(self, user_id: int) -> Set[str]:
        return {row[0] for row in self._permission_query(user_id).distinct().all()}

    def has_permission(self, user_id: int, slug: str) -> bool:
        return self._permission_query(user_id).filter(models.Permission.slug == slug).first() is not None

    def list_role_slugs(self, user_id: int) -> Set[str]:
        return {row[0] for row in self._role_query(user_id).all()}

    def has_role(self, user_id: int, role_slug: str) -> bool:
        return self._role_query(user_id).filter(models.Role.slug == role_slug).first() is not None
