from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from wms_core.database import models

class IRoleRepository(ABC):
    @abstractmethod
    def create(self, role_model: models.Role) -> models.Role:
        """새로운 역할을 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, role_id: int) -> Optional[models.Role]:
        pass

    @abstractmethod
    def find_by_slug(self, slug: str) -> Optional[models.Role]:
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Role]:
        pass

    @abstractmethod
    def list_with_permission_counts(self) -> List[Tuple[models.Role, int]]:
        """모든 역할을 이름 순으로, 각 역할이 가진 권한 개수와 함께 조회합니다."""
        pass

    @abstractmethod
    def save(self, role: models.Role) -> models.Role:
        pass

    @abstractmethod
    def delete(self, role: models.Role) -> bool:
        """역할을 권한 연결과 함께 삭제합니다."""
        pass

    @abstractmethod
    def list_permissions(self, role_id: int) -> List[models.Permission]:
        """역할에 연결된 권한을 모듈, slug 순으로 조회합니다."""
        pass

    @abstractmethod
    def replace_permissions(self, role: models.Role, permission_ids: List[int]) -> None:
        """
        역할의 권한 집합을 통째로 교체합니다 (삭제 후 추가, 한 트랜잭션).

        실패하면 트랜잭션이 롤백되어 역할은 이전 권한을 그대로 유지합니다.
        """
        pass

    @abstractmethod
    def list_users(self, role_id: int) -> List[models.User]:
        """현재 해당 역할을 가진 사용자 목록."""
        pass

    @abstractmethod
    def count_users(self, role_id: int) -> int:
        pass
