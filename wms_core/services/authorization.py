import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Set

from wms_core.repositories.interfaces import IAccessRepository
from wms_core.services.exceptions import ForbiddenError, UnauthorizedError
from wms_core.services.permission_registry import SUPER_ADMIN

logger = logging.getLogger(__name__)

# 권한(permission)이 아닌 능력(capability). 특정 역할 slug를 가지고 있으면 부여됩니다.
CHANGE_USER_ROLE = "users.role.replace"
CHANGE_ANY_PASSWORD = "users.password.change_any"

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    SUPER_ADMIN: frozenset({CHANGE_USER_ROLE, CHANGE_ANY_PASSWORD}),
}


@dataclass(frozen=True)
class RequestContext:
    """한 요청의 호출자 신원. 인증되지 않았으면 user_id는 None입니다."""
    user_id: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class AuthorizationResolver:
    """하나의 조회 경로를 통해 사용자가 무엇을 할 수 있는지 판단합니다."""

    def __init__(self, access_repo: IAccessRepository):
        """
        AuthorizationResolver를 초기화합니다.

        Args:
            access_repo: user -> role -> permission 조인을 담당하는 리포지토리.
        """
        self.access_repo = access_repo

    def resolve_permissions(self, user_id: Optional[int]) -> Set[str]:
        """
        사용자의 유효 권한 집합을 계산합니다.

        Returns:
            사용자가 가진 모든 역할의 권한 slug 합집합. 역할이 없거나 존재하지 않는
            사용자는 빈 집합을 받습니다.
        """
        if user_id is None:
            return set()
        return set(self.access_repo.list_permission_slugs(user_id))

    def has_permission(self, user_id: Optional[int], slug: str) -> bool:
        if user_id is None:
            return False
        return self.access_repo.has_permission(user_id, slug)

    def role_slugs(self, user_id: Optional[int]) -> Set[str]:
        if user_id is None:
            return set()
        return set(self.access_repo.list_role_slugs(user_id))

    def has_role(self, user_id: Optional[int], role_slug: str) -> bool:
        """역할 slug로 소속 여부만 확인합니다. 권한은 보지 않습니다."""
        if user_id is None:
            return False
        return self.access_repo.has_role(user_id, role_slug)

    def has_capability(self, user_id: Optional[int], capability: str) -> bool:
        """해당 capability를 부여하는 역할 중 하나라도 가지고 있으면 True."""
        role_slugs = [slug for slug, capabilities in ROLE_CAPABILITIES.items() if capability in capabilities]
        return any(self.has_role(user_id, slug) for slug in role_slugs)


class AuthorizationGuard:
    """
    보호된 작업 전에 요청 경계에서 실행되는 검사입니다.
    읽기만 하므로, 거부된 호출은 아무런 부수 효과도 남기지 않습니다.
    """

    def __init__(self, resolver: AuthorizationResolver):
        self.resolver = resolver

    def authorize(
        self,
        context: RequestContext,
        permission: Optional[str] = None,
        role: Optional[str] = None,
        capability: Optional[str] = None,
    ) -> int:
        """
        호출자가 선언된 요구 사항을 만족하는지 검증합니다.
        요구 사항이 없으면 인증 여부만 확인합니다.

        Returns:
            호출자의 user id.

        Raises:
            UnauthorizedError: 요청에 인증된 신원이 없을 때.
            ForbiddenError: 필요한 권한, 역할 또는 capability가 없을 때.
        """
        if not context.is_authenticated:
            raise UnauthorizedError("Authentication required.")

        user_id = context.user_id
        if permission is not None and not self.resolver.has_permission(user_id, permission):
            logger.info("User %s denied: missing permission '%s'", user_id, permission)
            raise ForbiddenError(f"Missing permission '{permission}'.")
        if role is not None and not self.resolver.has_role(user_id, role):
            logger.info("User %s denied: missing role '%s'", user_id, role)
            raise ForbiddenError(f"Role '{role}' required.")
        if capability is not None and not self.resolver.has_capability(user_id, capability):
            logger.info("User %s denied: missing capability '%s'", user_id, capability)
            raise ForbiddenError(f"Not allowed to perform '{capability}'.")
        return user_id
