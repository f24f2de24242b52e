import hashlib
import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from wms_core import config
from wms_core.database import models
from wms_core.repositories.interfaces import IUserRepository, IRoleRepository
from wms_core.services.authorization import (
    AuthorizationResolver, CHANGE_ANY_PASSWORD, CHANGE_USER_ROLE
)
from wms_core.services.exceptions import (
    AuthenticationError, ForbiddenError, RoleNotFoundError, TokenInvalidError,
    UserNotFoundError, ValidationError
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


class IdentityService:
    """사용자, 사용자의 역할 할당, 토큰 기반 인증 서비스를 제공합니다."""
    _token_cache = {}

    def __init__(self, user_repo: IUserRepository, role_repo: IRoleRepository, resolver: AuthorizationResolver,
                 default_role_slug: Optional[str] = None, token_ttl_minutes: Optional[int] = None):
        """
        IdentityService를 초기화합니다.

        Args:
            user_repo: 사용자와 역할 할당 데이터에 접근하기 위한 리포지토리.
            role_repo: 부여할 역할을 조회하기 위한 리포지토리.
            resolver: 요청한 사용자의 역할/권한 질문에 답하는 resolver.
            default_role_slug: 새 사용자에게 부여할 역할. 없으면 WMS_DEFAULT_ROLE을 사용합니다.
            token_ttl_minutes: 토큰 유효 시간. 없으면 WMS_TOKEN_TTL_MINUTES를 사용합니다.
        """
        self.user_repo = user_repo
        self.role_repo = role_repo
        self.resolver = resolver
        self.default_role_slug = config.DEFAULT_ROLE_SLUG if default_role_slug is None else default_role_slug
        self.token_ttl_minutes = config.TOKEN_TTL_MINUTES if token_ttl_minutes is None else token_ttl_minutes

    def _get_user_or_raise(self, user_id: int) -> models.User:
        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")
        return user

    def _user_to_dict(self, user: models.User) -> Dict[str, Any]:
        roles = [link.role for link in user.role_links]
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "is_active": user.is_active,
            "role_ids": [r.id for r in roles],
            "role_slugs": [r.slug for r in roles],
        }

    def _revoke_tokens_of(self, user_id: int) -> None:
        for token in [t for t, data in self._token_cache.items() if data['user_id'] == user_id]:
            self._token_cache.pop(token, None)

    def create_user(self, username: str, password: str, email: Optional[str] = None,
                    acting_user_id: Optional[int] = None) -> Dict[str, Any]:
        """
        새로운 사용자를 생성합니다. 기본 역할이 존재하면 그 역할을 부여합니다.

        Raises:
            ValidationError: 사용자 이름/비밀번호가 없거나, 사용자 이름/이메일이 이미 사용 중일 때.
        """
        if not username or not password:
            raise ValidationError("Username and password are required.")
        if self.user_repo.find_by_username(username):
            raise ValidationError(f"User with username '{username}' already exists.")
        if email and self.user_repo.find_by_email(email):
            raise ValidationError(f"User with email '{email}' already exists.")

        new_user = models.User(username=username, email=email, password_hash=hash_password(password), is_active=True)
        created_user = self.user_repo.create(new_user)

        if self.default_role_slug:
            default_role = self.role_repo.find_by_slug(self.default_role_slug)
            if default_role:
                self.user_repo.replace_roles(created_user, [default_role.id], assigned_by=acting_user_id)
            else:
                logger.warning("Default role '%s' does not exist; user '%s' has no role", self.default_role_slug, username)

        logger.info("User '%s' created", username)
        return self._user_to_dict(created_user)

    def list_users(self) -> List[Dict[str, Any]]:
        """모든 사용자의 목록을 역할과 함께 조회합니다. (비밀번호 제외)"""
        return [self._user_to_dict(u) for u in self.user_repo.list_all()]

    def get_user(self, user_id: int) -> Dict[str, Any]:
        """
        ID로 특정 사용자를 조회합니다. (비밀번호 제외)

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        return self._user_to_dict(self._get_user_or_raise(user_id))

    def update_user(self, user_id: int, username: Optional[str] = None,
                    email: Optional[str] = None) -> Dict[str, Any]:
        """
        사용자 이름과 이메일을 수정합니다. None인 필드는 그대로 두고,
        빈 문자열 이메일은 이메일을 지웁니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            ValidationError: 빈 사용자 이름이거나, 사용자 이름/이메일을 다른 사용자가 쓰고 있을 때.
        """
        user = self._get_user_or_raise(user_id)

        if username is not None:
            if not username:
                raise ValidationError("Username cannot be empty.")
            existing = self.user_repo.find_by_username(username)
            if existing and existing.id != user.id:
                raise ValidationError(f"User with username '{username}' already exists.")
            user.username = username

        if email is not None:
            if email:
                existing = self.user_repo.find_by_email(email)
                if existing and existing.id != user.id:
                    raise ValidationError(f"User with email '{email}' already exists.")
            user.email = email or None

        self.user_repo.save(user)
        logger.info("User %s updated", user_id)
        return self._user_to_dict(user)

    def activate_user(self, user_id: int) -> Dict[str, Any]:
        """
        비활성화된 사용자를 다시 활성화합니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        user = self._get_user_or_raise(user_id)
        user.is_active = True
        self.user_repo.save(user)
        logger.info("User %s activated", user_id)
        return self._user_to_dict(user)

    def deactivate_user(self, acting_user_id: int, user_id: int) -> Dict[str, Any]:
        """
        사용자를 비활성화합니다. 비활성 사용자는 로그인할 수 없으며,
        이미 발급된 토큰도 함께 폐기됩니다.

        Raises:
            ValidationError: 자기 자신을 비활성화하려 할 때.
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        if acting_user_id == user_id:
            raise ValidationError("Cannot deactivate your own account.")

        user = self._get_user_or_raise(user_id)
        user.is_active = False
        self.user_repo.save(user)
        self._revoke_tokens_of(user_id)
        logger.info("User %s deactivated by user %s", user_id, acting_user_id)
        return self._user_to_dict(user)

    def delete_user(self, user_id: int) -> bool:
        """
        사용자를 삭제합니다. 사용자의 역할 할당과 발급된 토큰도 함께 삭제됩니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        user = self._get_user_or_raise(user_id)
        self.user_repo.delete(user)
        self._revoke_tokens_of(user_id)
        logger.info("User %s deleted", user_id)
        return True

    def replace_user_role(self, acting_user_id: int, user_id: int, role_id: Optional[int]) -> Dict[str, Any]:
        """
        사용자의 역할 할당을 단일 역할 하나(또는 없음)로 통째로 교체합니다.

        스키마는 사용자당 여러 역할을 허용하지만, 관리자 화면은 활성 역할 하나를 기준으로
        동작하므로 이 작업 후에는 항상 최대 하나의 할당만 남습니다.
        super-admin만 호출할 수 있습니다.

        Args:
            acting_user_id: 요청한 사용자. assigned_by로 기록됩니다.
            user_id: 역할이 바뀔 사용자.
            role_id: 새 역할. None이면 모든 역할을 제거합니다.

        Raises:
            ForbiddenError: 요청한 사용자가 super-admin 역할을 갖고 있지 않을 때.
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
            RoleNotFoundError: 해당 ID의 역할을 찾을 수 없을 때.
            ValidationError: 비활성화된 역할을 부여하려 할 때.
        """
        if not self.resolver.has_capability(acting_user_id, CHANGE_USER_ROLE):
            logger.info("User %s tried to change the role of user %s", acting_user_id, user_id)
            raise ForbiddenError("Only a super admin can change user roles.")

        user = self._get_user_or_raise(user_id)
        role_ids = []
        if role_id is not None:
            role = self.role_repo.find_by_id(role_id)
            if not role:
                raise RoleNotFoundError(f"Role with id '{role_id}' not found.")
            if not role.is_active:
                raise ValidationError(f"Role '{role.slug}' is inactive and cannot be assigned.")
            role_ids = [role.id]

        self.user_repo.replace_roles(user, role_ids, assigned_by=acting_user_id)
        logger.info("User %s role set to %s by user %s", user_id, role_id, acting_user_id)
        return self._user_to_dict(self._get_user_or_raise(user_id))

    def get_user_permissions(self, user_id: int) -> Dict[str, Any]:
        """존재하는 사용자의 유효 권한과 역할 slug를 조회합니다."""
        self._get_user_or_raise(user_id)
        return {
            "user_id": user_id,
            "roles": sorted(self.resolver.role_slugs(user_id)),
            "permissions": sorted(self.resolver.resolve_permissions(user_id)),
        }

    def change_password(self, acting_user_id: int, user_id: int, new_password: str,
                        current_password: Optional[str] = None) -> bool:
        """
        비밀번호를 변경합니다. 자신의 비밀번호는 현재 비밀번호를 확인한 뒤 변경하고,
        super-admin은 현재 비밀번호 없이 누구의 비밀번호든 변경할 수 있습니다.

        Raises:
            ForbiddenError: super-admin이 아닌 사용자가 다른 사람의 비밀번호를 바꾸려 할 때.
            AuthenticationError: 현재 비밀번호가 틀렸을 때.
            ValidationError: 새 비밀번호가 비어 있을 때.
        """
        if not new_password:
            raise ValidationError("New password is required.")

        is_super = self.resolver.has_capability(acting_user_id, CHANGE_ANY_PASSWORD)
        if acting_user_id != user_id and not is_super:
            raise ForbiddenError("You can only change your own password.")

        user = self._get_user_or_raise(user_id)
        if not is_super:
            if current_password is None or hash_password(current_password) != user.password_hash:
                raise AuthenticationError("Current password is incorrect.")

        user.password_hash = hash_password(new_password)
        self.user_repo.save(user)
        logger.info("Password of user %s changed by user %s", user_id, acting_user_id)
        return True

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        """
        자격증명을 검증하고, 성공 시 인증 토큰을 발급합니다.

        Raises:
            AuthenticationError: 사용자가 없거나, 비밀번호가 틀렸거나, 비활성 계정일 때.
        """
        user = self.user_repo.find_by_username(username)
        if not user or user.password_hash != hash_password(password or ''):
            raise AuthenticationError("Invalid username or password.")
        if not user.is_active:
            raise AuthenticationError("User account is inactive.")

        token = str(uuid.uuid4())
        expires_at = datetime.now() + timedelta(minutes=self.token_ttl_minutes)
        self._token_cache[token] = {
            'user_id': user.id,
            'expires_at': expires_at
        }
        return {"token": token, "user_id": user.id, "expires_at": expires_at.isoformat()}

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        인증 토큰의 유효성을 검증하고, 유효하면 토큰 데이터를 반환합니다.
        토큰 주인이 삭제되었거나 비활성화되었으면 토큰은 더 이상 유효하지 않습니다.

        Raises:
            TokenInvalidError: 토큰을 찾을 수 없거나 만료되었거나, 토큰 주인이 활성 사용자가 아닐 때.
        """
        token_data = self._token_cache.get(token)
        if not token_data:
            raise TokenInvalidError("Token not found or invalid.")

        if datetime.now() > token_data['expires_at']:
            self._token_cache.pop(token, None)
            raise TokenInvalidError("Token has expired.")

        user = self.user_repo.find_by_id(token_data['user_id'])
        if not user or not user.is_active:
            self._token_cache.pop(token, None)
            raise TokenInvalidError("Token owner is no longer active.")

        return token_data

    def revoke_token(self, token: str) -> bool:
        return self._token_cache.pop(token, None) is not None
