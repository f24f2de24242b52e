from abc import ABC, abstractmethod
from typing import Set

class IAccessRepository(ABC):
    """
    권한 판단을 위한 단일 조회 경로입니다.

    "사용자 U가 무엇을 할 수 있는가" 형태의 질문은 모두 아래 네 개의 조회를 거치므로
    users -> user_roles -> roles -> role_permissions -> permissions 조인은 한 곳에만 존재합니다.
    """

    @abstractmethod
    def list_permission_slugs(self, user_id: int) -> Set[str]:
        """사용자의 활성 역할을 통해 도달 가능한 활성 권한 slug를 중복 없이 조회합니다."""
        pass

    @abstractmethod
    def has_permission(self, user_id: int, slug: str) -> bool:
        """전체 집합을 만들지 않고 필터가 걸린 조회 한 번으로 답합니다."""
        pass

    @abstractmethod
    def list_role_slugs(self, user_id: int) -> Set[str]:
        pass

    @abstractmethod
    def has_role(self, user_id: int, role_slug: str) -> bool:
        pass
