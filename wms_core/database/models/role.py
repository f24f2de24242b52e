from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from ..database import Base

class Role(Base):
    """
    사용자에게 부여할 수 있는, 이름 붙은 권한의 묶음을 정의합니다.
    (예: 'super-admin', 'manager', 'viewer').
    RBAC(역할 기반 접근 제어)의 핵심 요소로, 사용자의 유효 권한은 사용자가 가진
    모든 역할 권한의 합집합입니다.
    """
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    permission_links = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    user_links = relationship("UserRole", back_populates="role")
