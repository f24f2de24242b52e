from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from ..database import Base

class Product(Base):
    """
    카탈로그가 소유하는 상품의 식별 정보입니다. 사용자 정의 필드는 AttributeValue 행으로
    붙으며, 상품이 삭제되면 함께 삭제됩니다.
    """
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    attribute_values = relationship("AttributeValue", back_populates="product", cascade="all, delete-orphan")
