import logging
import os

from sqlalchemy.orm import Session

from .database import engine, SessionLocal, Base
from .models import *
from wms_core.logging_config import configure_logging
from wms_core.services.identity_service import hash_password
from wms_core.services.permission_registry import (
    DEFAULT_ROLES, PERMISSION_CATALOG, SUPER_ADMIN, permissions_for_role
)

logger = logging.getLogger(__name__)


def seed_defaults(db: Session, admin_username: str = 'admin', admin_password: str = 'admin') -> bool:
    """
    권한 카탈로그, 기본 역할과 그 권한, 초기 super-admin 사용자를 삽입합니다.
    권한이 이미 존재하면 아무것도 하지 않습니다.

    Returns:
        데이터를 삽입했으면 True.
    """
    if db.query(Permission).first():
        logger.info("Seed data already present, skipping.")
        return False

    permissions = {}
    for entry in PERMISSION_CATALOG:
        permission = Permission(
            name=entry.name, slug=entry.slug, description=entry.description, module=entry.module, is_active=True
        )
        db.add(permission)
        permissions[entry.slug] = permission

    roles = {}
    for role_data in DEFAULT_ROLES:
        role = Role(is_active=True, **role_data)
        db.add(role)
        roles[role.slug] = role

    # 변경사항을 커밋하여 각 객체의 id를 할당받습니다.
    db.commit()

    for slug, role in roles.items():
        for permission_slug in permissions_for_role(slug):
            db.add(RolePermission(role_id=role.id, permission_id=permissions[permission_slug].id))

    admin_user = User(username=admin_username, password_hash=hash_password(admin_password), is_active=True)
    db.add(admin_user)
    db.commit()

    db.add(UserRole(user_id=admin_user.id, role_id=roles[SUPER_ADMIN].id))
    db.commit()
    logger.info("Seeded %d permissions, %d roles and user '%s'", len(permissions), len(roles), admin_username)
    return True


def initialize_db():
    """
    DB와 테이블을 생성하고, 기본 데이터를 삽입합니다.
    초기 관리자 비밀번호는 WMS_ADMIN_PASSWORD에서 읽습니다 (기본값 'admin').
    """
    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_defaults(db, admin_password=os.getenv('WMS_ADMIN_PASSWORD', 'admin'))
    except Exception:
        logger.exception("Database initialization failed")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == '__main__':
    configure_logging()
    initialize_db()
