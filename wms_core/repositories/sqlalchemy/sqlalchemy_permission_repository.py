from typing import List, Optional
from sqlalchemy.orm import Session
from wms_core.database import models
from wms_core.repositories.interfaces import IPermissionRepository

class SqlalchemyPermissionRepository(IPermissionRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, permission_model: models.Permission) -> models.Permission:
        self.db.add(permission_model)
        self.db.commit()
        self.db.refresh(permission_model)
        return permission_model

    def find_by_id(self, permission_id: int) -> Optional[models.Permission]:
        return self.db.query(models.Permission).filter(models.Permission.id == permission_id).first()

    def find_by_slug(self, slug: str) -> Optional[models.Permission]:
        return self.db.query(models.Permission).filter(models.Permission.slug == slug).first()

    def find_by_name(self, name: str) -> Optional[models.Permission]:
        return self.db.query(models.Permission).filter(models.Permission.name == name).first()

    def find_by_ids(self, permission_ids: List[int]) -> List[models.Permission]:
        if not permission_ids:
            return []
        return self.db.query(models.Permission).filter(models.Permission.id.in_(permission_ids)).all()

    def list_all(self, module: Optional[str] = None, active_only: bool = True) -> List[models.Permission]:
        query = self.db.query(models.Permission)
        if module is not None:
            query = query.filter(models.Permission.module == module)
        if active_only:
            query = query.filter(models.Permission.is_active.is_(True))
        return query.order_by(models.Permission.module.asc(), models.Permission.name.asc()).all()

    def list_modules(self) -> List[str]:
        rows = (
            self.db.query(models.Permission.module)
            .filter(models.Permission.module.isnot(None))
            .distinct()
            .order_by(models.Permission.module.asc())
            .all()
        )
        return [row[0] for row in rows]

    def count_roles(self, permission_id: int) -> int:
        return self.db.query(models.RolePermission).filter(
            models.RolePermission.permission_id == permission_id
        ).count()

    def delete(self, permission: models.Permission) -> bool:
        if permission:
            self.db.delete(permission)
            self.db.commit()
            return True
        return False
