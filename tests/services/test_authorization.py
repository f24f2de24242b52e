# tests/services/test_authorization.py
import pytest
from unittest.mock import MagicMock

from wms_core.repositories.interfaces import IAccessRepository
from wms_core.services.authorization import (
    AuthorizationGuard, AuthorizationResolver, RequestContext, CHANGE_USER_ROLE, CHANGE_ANY_PASSWORD
)
from wms_core.services.exceptions import ForbiddenError, UnauthorizedError

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_access_repo() -> MagicMock:
    """IAccessRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IAccessRepository)

@pytest.fixture
def resolver(mock_access_repo: MagicMock) -> AuthorizationResolver:
    return AuthorizationResolver(mock_access_repo)

@pytest.fixture
def guard(resolver: AuthorizationResolver) -> AuthorizationGuard:
    return AuthorizationGuard(resolver)

# ===================================================================
#  AuthorizationResolver
# ===================================================================
class TestResolver:
    def test_resolve_permissions_returns_union_from_repository(self, resolver, mock_access_repo):
        # === Arrange (테스트 준비) ===
        mock_access_repo.list_permission_slugs.return_value = {"products.view", "products.update"}

        # === Act (실제 테스트 대상 실행) ===
        permissions = resolver.resolve_permissions(7)

        # === Assert (결과 검증) ===
        assert permissions == {"products.view", "products.update"}
        mock_access_repo.list_permission_slugs.assert_called_once_with(7)

    def test_user_without_roles_has_empty_set(self, resolver, mock_access_repo):
        """역할이 없는(또는 존재하지 않는) 사용자는 예외 없이 빈 집합을 받는지 테스트합니다."""
        mock_access_repo.list_permission_slugs.return_value = set()

        assert resolver.resolve_permissions(404) == set()

    def test_anonymous_user_is_never_queried(self, resolver, mock_access_repo):
        assert resolver.resolve_permissions(None) == set()
        assert resolver.has_permission(None, "users.view") is False
        assert resolver.has_role(None, "admin") is False
        mock_access_repo.list_permission_slugs.assert_not_called()
        mock_access_repo.has_permission.assert_not_called()
        mock_access_repo.has_role.assert_not_called()

    def test_has_permission_uses_single_filtered_query(self, resolver, mock_access_repo):
        # === Arrange ===
        mock_access_repo.has_permission.return_value = True

        # === Act ===
        allowed = resolver.has_permission(3, "roles.view")

        # === Assert ===
        assert allowed is True
        mock_access_repo.has_permission.assert_called_once_with(3, "roles.view")
        # 검증: 단일 권한 확인에 전체 집합을 만들지 않아야 함
        mock_access_repo.list_permission_slugs.assert_not_called()

    def test_has_role_checks_membership_only(self, resolver, mock_access_repo):
        mock_access_repo.has_role.return_value = False

        assert resolver.has_role(3, "manager") is False
        mock_access_repo.has_role.assert_called_once_with(3, "manager")
        mock_access_repo.has_permission.assert_not_called()

    @pytest.mark.parametrize("capability", [CHANGE_USER_ROLE, CHANGE_ANY_PASSWORD])
    def test_super_admin_role_grants_capabilities(self, resolver, mock_access_repo, capability):
        # 시나리오: 사용자는 super-admin 역할만 있고 세부 권한은 하나도 없음
        mock_access_repo.has_role.side_effect = lambda user_id, slug: slug == "super-admin"
        mock_access_repo.list_permission_slugs.return_value = set()

        assert resolver.has_capability(1, capability) is True
        mock_access_repo.has_role.assert_called_with(1, "super-admin")

    def test_admin_role_does_not_grant_super_admin_capability(self, resolver, mock_access_repo):
        mock_access_repo.has_role.side_effect = lambda user_id, slug: slug == "admin"

        assert resolver.has_capability(2, CHANGE_USER_ROLE) is False

    def test_unknown_capability_is_denied(self, resolver, mock_access_repo):
        mock_access_repo.has_role.return_value = True

        assert resolver.has_capability(1, "warehouses.teleport") is False
        mock_access_repo.has_role.assert_not_called()

# ===================================================================
#  AuthorizationGuard
# ===================================================================
class TestGuard:
    def test_missing_identity_is_unauthorized(self, guard, mock_access_repo):
        with pytest.raises(UnauthorizedError):
            guard.authorize(RequestContext(), permission="users.view")
        # 검증: 권한 조회가 실행되기 전에 거부되어야 함
        mock_access_repo.has_permission.assert_not_called()

    def test_missing_permission_is_forbidden(self, guard, mock_access_repo):
        mock_access_repo.has_permission.return_value = False

        with pytest.raises(ForbiddenError, match="users.delete"):
            guard.authorize(RequestContext(user_id=5), permission="users.delete")

    def test_missing_role_is_forbidden(self, guard, mock_access_repo):
        mock_access_repo.has_role.return_value = False

        with pytest.raises(ForbiddenError):
            guard.authorize(RequestContext(user_id=5), role="admin")

    def test_missing_capability_is_forbidden(self, guard, mock_access_repo):
        mock_access_repo.has_role.return_value = False

        with pytest.raises(ForbiddenError):
            guard.authorize(RequestContext(user_id=5), capability=CHANGE_USER_ROLE)

    def test_allowed_call_returns_user_id(self, guard, mock_access_repo):
        mock_access_repo.has_permission.return_value = True
        mock_access_repo.has_role.return_value = True

        user_id = guard.authorize(RequestContext(user_id=9), permission="products.view", role="manager")

        assert user_id == 9

    def test_authentication_only_requirement(self, guard, mock_access_repo):
        assert guard.authorize(RequestContext(user_id=4)) == 4
        mock_access_repo.has_permission.assert_not_called()
        mock_access_repo.has_role.assert_not_called()
