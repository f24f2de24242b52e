from abc import ABC, abstractmethod
from typing import Optional
from wms_core.database import models

class IProductRepository(ABC):
    @abstractmethod
    def create(self, product_model: models.Product) -> models.Product:
        pass

    @abstractmethod
    def find_by_id(self, product_id: int) -> Optional[models.Product]:
        """고유 ID로 특정 상품을 조회합니다."""
        pass
