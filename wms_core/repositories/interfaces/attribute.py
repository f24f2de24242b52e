from abc import ABC, abstractmethod
from typing import List, Optional
from wms_core.database import models

class IAttributeRepository(ABC):
    @abstractmethod
    def create(self, attribute_model: models.ProductAttribute) -> models.ProductAttribute:
        pass

    @abstractmethod
    def find_by_id(self, attribute_id: int) -> Optional[models.ProductAttribute]:
        pass

    @abstractmethod
    def find_by_slug(self, slug: str) -> Optional[models.ProductAttribute]:
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.ProductAttribute]:
        pass

    @abstractmethod
    def list_all(self, active_only: bool = True) -> List[models.ProductAttribute]:
        """속성 정의를 sort_order, 이름 순으로 조회합니다."""
        pass

    @abstractmethod
    def save(self, attribute: models.ProductAttribute) -> models.ProductAttribute:
        pass

    @abstractmethod
    def delete(self, attribute: models.ProductAttribute) -> bool:
        """속성 정의를 옵션과 함께 삭제합니다."""
        pass

    @abstractmethod
    def count_values(self, attribute_id: int) -> int:
        """해당 속성에 저장된 상품 값의 개수."""
        pass


class IAttributeOptionRepository(ABC):
    @abstractmethod
    def create(self, option_model: models.AttributeOption) -> models.AttributeOption:
        pass

    @abstractmethod
    def find_by_id(self, option_id: int) -> Optional[models.AttributeOption]:
        pass

    @abstractmethod
    def find_by_value(self, attribute_id: int, value: str) -> Optional[models.AttributeOption]:
        pass

    @abstractmethod
    def list_all(self, attribute_id: Optional[int] = None, active_only: bool = True) -> List[models.AttributeOption]:
        """옵션을 sort_order, value 순으로 조회합니다. attribute_id가 주어지면 해당 속성의 옵션만."""
        pass

    @abstractmethod
    def save(self, option: models.AttributeOption) -> models.AttributeOption:
        pass

    @abstractmethod
    def save_and_sync_values(self, option: models.AttributeOption) -> models.AttributeOption:
        """
        옵션의 변경 사항을 저장하면서, 이 옵션을 가리키는 모든 상품 값의 value를
        옵션의 새 value로 맞춥니다.

        두 작업은 한 트랜잭션으로 커밋되며, 실패하면 롤백되어 옵션과 상품 값 모두
        호출 전 상태로 남습니다.
        """
        pass

    @abstractmethod
    def delete(self, option: models.AttributeOption) -> bool:
        pass

    @abstractmethod
    def count_values(self, option_id: int) -> int:
        """해당 옵션을 가리키는 상품 값의 개수."""
        pass


class IAttributeValueRepository(ABC):
    @abstractmethod
    def find(self, product_id: int, attribute_id: int) -> Optional[models.AttributeValue]:
        pass

    @abstractmethod
    def upsert(self, product_id: int, attribute_id: int, value: Optional[str], option_id: Optional[int]) -> models.AttributeValue:
        """
        한 상품의 한 속성 값을 저장합니다.

        (product_id, attribute_id) 행이 있으면 갱신하고, 없으면 새로 추가합니다.
        같은 쌍에 대해 행이 두 개가 되는 일은 없습니다.
        """
        pass

    @abstractmethod
    def list_detailed(self, product_id: Optional[int] = None, attribute_id: Optional[int] = None) -> List[models.AttributeValue]:
        """
        속성, 옵션, 상품이 함께 로드된 값 목록을 상품 이름, 속성 sort_order 순으로 조회합니다.
        """
        pass

    @abstractmethod
    def delete(self, attribute_value: models.AttributeValue) -> bool:
        pass
