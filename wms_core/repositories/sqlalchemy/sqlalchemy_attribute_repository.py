import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, joinedload
from wms_core.database import models
from wms_core.repositories.interfaces import (
    IAttributeRepository, IAttributeOptionRepository, IAttributeValueRepository
)

logger = logging.getLogger(__name__)

class SqlalchemyAttributeRepository(IAttributeRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, attribute_model: models.ProductAttribute) -> models.ProductAttribute:
        self.db.add(attribute_model)
        self.db.commit()
        self.db.refresh(attribute_model)
        return attribute_model

    def find_by_id(self, attribute_id: int) -> Optional[models.ProductAttribute]:
        return self.db.query(models.ProductAttribute).filter(models.ProductAttribute.id == attribute_id).first()

    def find_by_slug(self, slug: str) -> Optional[models.ProductAttribute]:
        return self.db.query(models.ProductAttribute).filter(models.ProductAttribute.slug == slug).first()

    def find_by_name(self, name: str) -> Optional[models.ProductAttribute]:
        return self.db.query(models.ProductAttribute).filter(models.ProductAttribute.name == name).first()

    def list_all(self, active_only: bool = True) -> List[models.ProductAttribute]:
        query = self.db.query(models.ProductAttribute)
        if active_only:
            query = query.filter(models.ProductAttribute.is_active.is_(True))
        return query.order_by(models.ProductAttribute.sort_order.asc(), models.ProductAttribute.name.asc()).all()

    def save(self, attribute: models.ProductAttribute) -> models.ProductAttribute:
        self.db.commit()
        self.db.refresh(attribute)
        return attribute

    def delete(self, attribute: models.ProductAttribute) -> bool:
        if attribute:
            self.db.delete(attribute)
            self.db.commit()
            return True
        return False

    def count_values(self, attribute_id: int) -> int:
        return self.db.query(models.AttributeValue).filter(models.AttributeValue.attribute_id == attribute_id).count()


class SqlalchemyAttributeOptionRepository(IAttributeOptionRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, option_model: models.AttributeOption) -> models.AttributeOption:
        self.db.add(option_model)
        self.db.commit()
        self.db.refresh(option_model)
        return option_model

    def find_by_id(self, option_id: int) -> Optional[models.AttributeOption]:
        return self.db.query(models.AttributeOption).filter(models.AttributeOption.id == option_id).first()

    def find_by_value(self, attribute_id: int, value: str) -> Optional[models.AttributeOption]:
        return self.db.query(models.AttributeOption).filter(
            models.AttributeOption.attribute_id == attribute_id,
            models.AttributeOption.value == value
        ).first()

    def list_all(self, attribute_id: Optional[int] = None, active_only: bool = True) -> List[models.AttributeOption]:
        query = self.db.query(models.AttributeOption).options(joinedload(models.AttributeOption.attribute))
        if attribute_id is not None:
            query = query.filter(models.AttributeOption.attribute_id == attribute_id)
        if active_only:
            query = query.filter(models.AttributeOption.is_active.is_(True))
        return query.order_by(models.AttributeOption.sort_order.asc(), models.AttributeOption.value.asc()).all()

    def save(self, option: models.AttributeOption) -> models.AttributeOption:
        self.db.commit()
        self.db.refresh(option)
        return option

    def save_and_sync_values(self, option: models.AttributeOption) -> models.AttributeOption:
        try:
            self.db.query(models.AttributeValue).filter(
                models.AttributeValue.option_id == option.id
            ).update({models.AttributeValue.value: option.value}, synchronize_session="fetch")
            self.db.commit()
        except SQLAlchemyError:
            logger.warning("Renaming option %s and its stored values failed, rolling back", option.id)
            self.db.rollback()
            raise
        self.db.refresh(option)
        return option

    def delete(self, option: models.AttributeOption) -> bool:
        if option:
            self.db.delete(option)
            self.db.commit()
            return True
        return False

    def count_values(self, option_id: int) -> int:
        return self.db.query(models.AttributeValue).filter(models.AttributeValue.option_id == option_id).count()


class SqlalchemyAttributeValueRepository(IAttributeValueRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find(self, product_id: int, attribute_id: int) -> Optional[models.AttributeValue]:
        return self.db.query(models.AttributeValue).filter(
            models.AttributeValue.product_id == product_id,
            models.AttributeValue.attribute_id == attribute_id
        ).first()

    def upsert(self, product_id: int, attribute_id: int, value: Optional[str], option_id: Optional[int]) -> models.AttributeValue:
        attribute_value = self.find(product_id, attribute_id)
        if attribute_value is None:
            attribute_value = models.AttributeValue(product_id=product_id, attribute_id=attribute_id)
            self.db.add(attribute_value)
        attribute_value.value = value
        attribute_value.option_id = option_id
        try:
            self.db.commit()
        except IntegrityError:
            # (product_id, attribute_id) 동시 삽입 경쟁에서 진 경우: 다른 요청이 만든 행을 갱신합니다.
            self.db.rollback()
            attribute_value = self.find(product_id, attribute_id)
            if attribute_value is None:
                raise
            logger.info("Concurrent insert for product %s attribute %s, updating instead", product_id, attribute_id)
            attribute_value.value = value
            attribute_value.option_id = option_id
            self.db.commit()
        self.db.refresh(attribute_value)
        return attribute_value

    def list_detailed(self, product_id: Optional[int] = None, attribute_id: Optional[int] = None) -> List[models.AttributeValue]:
        query = (
            self.db.query(models.AttributeValue)
            .join(models.AttributeValue.product)
            .join(models.AttributeValue.attribute)
            .options(
                contains_eager(models.AttributeValue.product),
                contains_eager(models.AttributeValue.attribute),
                joinedload(models.AttributeValue.option),
            )
        )
        if product_id is not None:
            query = query.filter(models.AttributeValue.product_id == product_id)
        if attribute_id is not None:
            query = query.filter(models.AttributeValue.attribute_id == attribute_id)
        return query.order_by(models.Product.name.asc(), models.ProductAttribute.sort_order.asc()).all()

    def delete(self, attribute_value: models.AttributeValue) -> bool:
        if attribute_value:
            self.db.delete(attribute_value)
            self.db.commit()
            return True
        return False
