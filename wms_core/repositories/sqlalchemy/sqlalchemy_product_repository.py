from typing import Optional
from sqlalchemy.orm import Session
from wms_core.database import models
from wms_core.repositories.interfaces import IProductRepository

class SqlalchemyProductRepository(IProductRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, product_model: models.Product) -> models.Product:
        self.db.add(product_model)
        self.db.commit()
        self.db.refresh(product_model)
        return product_model

    def find_by_id(self, product_id: int) -> Optional[models.Product]:
        return self.db.query(models.Product).filter(models.Product.id == product_id).first()
