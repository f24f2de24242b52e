from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from ..database import Base

class RolePermission(Base):
    """
    역할(Role)과 권한(Permission)을 연결하는 연관 테이블 모델입니다.
    역할의 권한 집합은 부분 수정 없이 항상 통째로 교체됩니다.
    """
    __tablename__ = 'role_permissions'
    __table_args__ = (UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),)

    id = Column(Integer, primary_key=True)
    role_id = Column(Integer, ForeignKey('roles.id', ondelete='CASCADE'), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey('permissions.id'), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    role = relationship("Role", back_populates="permission_links")
    permission = relationship("Permission", back_populates="role_links")


class UserRole(Base):
    """
    사용자(User)와 역할(Role) 사이의 다대다(many-to-many) 관계를 연결하는 연관 테이블 모델입니다.
    assigned_by에는 할당을 수행한 사용자의 id가 기록되며, 그 사용자가 삭제되면 NULL이 됩니다.
    """
    __tablename__ = 'user_roles'
    __table_args__ = (UniqueConstraint('user_id', 'role_id', name='uq_user_role'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey('roles.id', ondelete='CASCADE'), nullable=False, index=True)
    assigned_at = Column(DateTime, nullable=False, server_default=func.now())
    assigned_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    user = relationship("User", back_populates="role_links", foreign_keys=[user_id])
    role = relationship("Role", back_populates="user_links")
