from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from ..database import Base

ATTRIBUTE_TYPES = ("text", "number", "boolean", "select", "multiselect", "date")
OPTION_TYPES = ("select", "multiselect")


class ProductAttribute(Base):
    """
    상품의 동적 필드 하나에 대한 정의(EAV의 속성 정의)입니다.
    type에 따라 AttributeValue.value의 검증 방식과 읽기 방식이 정해지며,
    select/multiselect 속성은 AttributeOption 행에서 값을 고릅니다.
    """
    __tablename__ = "product_attributes"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    type = Column(Enum(*ATTRIBUTE_TYPES, name="attribute_type", native_enum=False), nullable=False)
    description = Column(Text)
    is_required = Column(Boolean, nullable=False, default=False)
    is_filterable = Column(Boolean, nullable=False, default=False)
    is_searchable = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    options = relationship(
        "AttributeOption",
        back_populates="attribute",
        cascade="all, delete-orphan",
        order_by="AttributeOption.sort_order",
    )

    @property
    def uses_options(self) -> bool:
        return self.type in OPTION_TYPES


class AttributeOption(Base):
    """select/multiselect 속성이 허용하는 선택지 하나."""
    __tablename__ = "product_attribute_options"
    __table_args__ = (UniqueConstraint("attribute_id", "value", name="uq_attribute_option_value"),)

    id = Column(Integer, primary_key=True, index=True)
    attribute_id = Column(Integer, ForeignKey("product_attributes.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(String(200), nullable=False)
    label = Column(String(200), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    attribute = relationship("ProductAttribute", back_populates="options")


class AttributeValue(Base):
    """
    한 상품의 한 속성에 대한 값입니다. (product_id, attribute_id) 쌍마다 최대 한 행만 존재합니다.
    option_id는 select/multiselect 속성에서만 채워지며, 이때 value는 옵션의 value를 그대로 따릅니다.
    """
    __tablename__ = "product_attribute_values"
    __table_args__ = (UniqueConstraint("product_id", "attribute_id", name="uq_product_attribute_value"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    attribute_id = Column(Integer, ForeignKey("product_attributes.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(Text)
    option_id = Column(Integer, ForeignKey("product_attribute_options.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="attribute_values")
    attribute = relationship("ProductAttribute")
    option = relationship("AttributeOption")
