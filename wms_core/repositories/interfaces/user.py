from abc import ABC, abstractmethod
from typing import List, Optional
from wms_core.database import models

class IUserRepository(ABC):
    @abstractmethod
    def create(self, user_model: models.User) -> models.User:
        """새로운 사용자를 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, user_id: int) -> Optional[models.User]:
        """고유 ID로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[models.User]:
        """사용자 이름으로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[models.User]:
        pass

    @abstractmethod
    def list_all(self) -> List[models.User]:
        """모든 사용자의 목록을 사용자 이름 순으로 조회합니다."""
        pass

    @abstractmethod
    def save(self, user: models.User) -> models.User:
        """이미 저장된 사용자에 가해진 변경 사항을 커밋합니다."""
        pass

    @abstractmethod
    def delete(self, user: models.User) -> bool:
        """특정 사용자를 역할 할당과 함께 데이터베이스에서 삭제합니다."""
        pass

    @abstractmethod
    def replace_roles(self, user: models.User, role_ids: List[int], assigned_by: Optional[int]) -> None:
        """
        사용자의 역할 할당을 주어진 역할들로 모두 교체합니다.

        삭제와 추가는 한 트랜잭션에서 실행되며, 어느 단계든 실패하면 사용자는
        호출 전의 역할 할당을 그대로 유지합니다.

        Args:
            user: 역할이 교체될 사용자.
            role_ids: 교체 후 가질 역할들. 빈 리스트면 모든 역할이 제거됩니다.
            assigned_by: 작업을 수행한 사용자의 ID. 새 할당마다 기록됩니다.
        """
        pass
