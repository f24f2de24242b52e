from abc import ABC, abstractmethod
from typing import List, Optional
from wms_core.database import models

class IPermissionRepository(ABC):
    @abstractmethod
    def create(self, permission_model: models.Permission) -> models.Permission:
        pass

    @abstractmethod
    def find_by_id(self, permission_id: int) -> Optional[models.Permission]:
        pass

    @abstractmethod
    def find_by_slug(self, slug: str) -> Optional[models.Permission]:
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Permission]:
        pass

    @abstractmethod
    def find_by_ids(self, permission_ids: List[int]) -> List[models.Permission]:
        """주어진 ID 중 실제로 존재하는 권한만 반환합니다. 없는 ID는 건너뜁니다."""
        pass

    @abstractmethod
    def list_all(self, module: Optional[str] = None, active_only: bool = True) -> List[models.Permission]:
        """권한을 모듈, 이름 순으로 조회합니다. module이 주어지면 해당 모듈만."""
        pass

    @abstractmethod
    def list_modules(self) -> List[str]:
        """NULL이 아닌 모듈 태그를 중복 없이 알파벳 순으로 조회합니다."""
        pass

    @abstractmethod
    def count_roles(self, permission_id: int) -> int:
        """해당 권한을 참조하는 역할의 개수."""
        pass

    @abstractmethod
    def delete(self, permission: models.Permission) -> bool:
        pass
