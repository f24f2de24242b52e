from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from ..database import Base

class Permission(Base):
    """
    인가 경계에서 확인되는 이름 붙은 권한 하나를 정의합니다.
    slug는 'module.action' 형태(예: 'products.delete')이며,
    역할 할당과 라우트 가드는 이 slug로 권한을 가리킵니다.
    """
    __tablename__ = "permissions"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    module = Column(String(50))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    role_links = relationship("RolePermission", back_populates="permission")
