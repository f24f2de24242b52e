import logging
from typing import Any, Dict, List, Optional

from wms_core.database import models
from wms_core.repositories.interfaces import IPermissionRepository, IRoleRepository
from wms_core.services.exceptions import (
    ConflictError, PermissionNotFoundError, RoleNotFoundError, ValidationError
)
from wms_core.services.permission_registry import is_valid_slug, module_of

logger = logging.getLogger(__name__)


def permission_to_dict(permission: models.Permission) -> Dict[str, Any]:
    return {
        "id": permission.id,
        "name": permission.name,
        "slug": permission.slug,
        "description": permission.description,
        "module": permission.module,
        "is_active": permission.is_active,
    }


def role_to_dict(role: models.Role) -> Dict[str, Any]:
    return {
        "id": role.id,
        "name": role.name,
        "slug": role.slug,
        "description": role.description,
        "is_active": role.is_active,
    }


class PermissionService:
    """권한 레지스트리 조회와 제약이 걸린 생성/삭제 서비스를 제공합니다."""

    def __init__(self, permission_repo: IPermissionRepository):
        self.permission_repo = permission_repo

    def list_permissions(self, module: Optional[str] = None) -> List[Dict[str, Any]]:
        return [permission_to_dict(p) for p in self.permission_repo.list_all(module=module)]

    def list_modules(self) -> List[str]:
        return self.permission_repo.list_modules()

    def list_grouped_by_module(self) -> Dict[str, List[Dict[str, Any]]]:
        """활성 권한을 모듈별로 묶어 조회합니다. 모듈이 없는 권한은 'General'에 들어갑니다."""
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for permission in self.permission_repo.list_all():
            grouped.setdefault(permission.module or "General", []).append(permission_to_dict(permission))
        return grouped

    def get_permission(self, permission_id: int) -> Dict[str, Any]:
        permission = self.permission_repo.find_by_id(permission_id)
        if not permission:
            raise PermissionNotFoundError(f"Permission with id '{permission_id}' not found.")
        return permission_to_dict(permission)

    def create_permission(self, name: str, slug: str, description: Optional[str] = None, module: Optional[str] = None) -> Dict[str, Any]:
        """
        레지스트리에 새로운 권한을 추가합니다.

        Raises:
            ValidationError: 이름이 없거나, slug 형식이 잘못되었거나, 이름/slug가 이미 사용 중일 때.
        """
        if not name:
            raise ValidationError("Permission name is required.")
        if not is_valid_slug(slug):
            raise ValidationError(f"Permission slug '{slug}' must look like 'module.action'.")
        if self.permission_repo.find_by_slug(slug):
            raise ValidationError(f"Permission with slug '{slug}' already exists.")
        if self.permission_repo.find_by_name(name):
            raise ValidationError(f"Permission with name '{name}' already exists.")

        permission = self.permission_repo.create(models.Permission(
            name=name, slug=slug, description=description, module=module or module_of(slug), is_active=True
        ))
        logger.info("Permission '%s' created", slug)
        return permission_to_dict(permission)

    def delete_permission(self, permission_id: int) -> bool:
        """
        권한을 삭제합니다.

        Raises:
            PermissionNotFoundError: 해당 ID의 권한을 찾을 수 없을 때.
            ConflictError: 이 권한을 참조하는 역할이 하나 이상 남아 있을 때.
        """
        permission = self.permission_repo.find_by_id(permission_id)
        if not permission:
            raise PermissionNotFoundError(f"Permission with id '{permission_id}' not found.")
        if self.permission_repo.count_roles(permission_id) > 0:
            raise ConflictError(f"Permission '{permission.slug}' is still assigned to roles.")
        self.permission_repo.delete(permission)
        logger.info("Permission '%s' deleted", permission.slug)
        return True


class RoleService:
    """역할 CRUD와 통째 교체 방식의 권한 할당 서비스를 제공합니다."""

    def __init__(self, role_repo: IRoleRepository, permission_repo: IPermissionRepository):
        """
        RoleService를 초기화합니다.

        Args:
            role_repo: 역할과 권한 연결 데이터에 접근하기 위한 리포지토리.
            permission_repo: 연결 전에 권한 ID를 확인하기 위한 리포지토리.
        """
        self.role_repo = role_repo
        self.permission_repo = permission_repo

    def _get_role_or_raise(self, role_id: int) -> models.Role:
        role = self.role_repo.find_by_id(role_id)
        if not role:
            raise RoleNotFoundError(f"Role with id '{role_id}' not found.")
        return role

    def create_role(self, name: str, slug: str, description: Optional[str] = None) -> Dict[str, Any]:
        """
        권한이 없는 새로운 역할을 생성합니다.

        Raises:
            ValidationError: 이름이나 slug가 없거나, 이미 사용 중일 때.
        """
        if not name or not slug:
            raise ValidationError("Role name and slug are required.")
        if self.role_repo.find_by_slug(slug):
            raise ValidationError(f"Role with slug '{slug}' already exists.")
        if self.role_repo.find_by_name(name):
            raise ValidationError(f"Role with name '{name}' already exists.")

        role = self.role_repo.create(models.Role(name=name, slug=slug, description=description, is_active=True))
        logger.info("Role '%s' created", slug)
        return role_to_dict(role)

    def list_roles(self) -> List[Dict[str, Any]]:
        """모든 역할을 이름 순으로, 각 역할의 permission_count와 함께 조회합니다."""
        roles = []
        for role, count in self.role_repo.list_with_permission_counts():
            data = role_to_dict(role)
            data["permission_count"] = count
            roles.append(data)
        return roles

    def get_role(self, role_id: int) -> Dict[str, Any]:
        """역할 상세 정보를 보유한 권한 목록과 함께 조회합니다."""
        role = self._get_role_or_raise(role_id)
        data = role_to_dict(role)
        data["permissions"] = [permission_to_dict(p) for p in self.role_repo.list_permissions(role_id)]
        return data

    def update_role(self, role_id: int, name: Optional[str] = None, slug: Optional[str] = None,
                    description: Optional[str] = None, is_active: Optional[bool] = None) -> Dict[str, Any]:
        """
        주어진 필드만 수정합니다. None인 필드는 기존 값을 유지합니다.

        Raises:
            RoleNotFoundError: 해당 ID의 역할을 찾을 수 없을 때.
            ValidationError: 새 이름이나 slug를 다른 역할이 쓰고 있을 때.
        """
        role = self._get_role_or_raise(role_id)

        if slug is not None and slug != role.slug:
            if not slug:
                raise ValidationError("Role slug cannot be empty.")
            existing = self.role_repo.find_by_slug(slug)
            if existing and existing.id != role.id:
                raise ValidationError(f"Role with slug '{slug}' already exists.")
            role.slug = slug
        if name is not None and name != role.name:
            if not name:
                raise ValidationError("Role name cannot be empty.")
            existing = self.role_repo.find_by_name(name)
            if existing and existing.id != role.id:
                raise ValidationError(f"Role with name '{name}' already exists.")
            role.name = name
        if description is not None:
            role.description = description
        if is_active is not None:
            role.is_active = bool(is_active)

        return role_to_dict(self.role_repo.save(role))

    def delete_role(self, role_id: int) -> bool:
        """
        역할을 삭제합니다.

        Raises:
            RoleNotFoundError: 해당 ID의 역할을 찾을 수 없을 때.
            ConflictError: 역할이 아직 한 명 이상의 사용자에게 할당되어 있을 때.
        """
        role = self._get_role_or_raise(role_id)
        if self.role_repo.count_users(role_id) > 0:
            raise ConflictError(f"Role '{role.slug}' is assigned to users and cannot be deleted.")
        self.role_repo.delete(role)
        logger.info("Role '%s' deleted", role.slug)
        return True

    def list_role_permissions(self, role_id: int) -> List[Dict[str, Any]]:
        self._get_role_or_raise(role_id)
        return [permission_to_dict(p) for p in self.role_repo.list_permissions(role_id)]

    def replace_permissions(self, role_id: int, permission_ids: List[int]) -> List[Dict[str, Any]]:
        """
        역할의 권한 집합 전체를 교체합니다.

        부분 추가/삭제가 아니라, 호출 후 역할은 정확히 주어진 권한만 가집니다.
        빈 리스트면 권한이 모두 사라집니다. 중복 ID는 하나로 합쳐지므로 같은 목록으로
        두 번 호출해도 결과는 같습니다.

        Returns:
            교체 후 역할의 권한 목록.

        Raises:
            RoleNotFoundError: 해당 ID의 역할을 찾을 수 없을 때.
            ValidationError: permission_ids가 정수 리스트가 아니거나 존재하지 않는 권한을 포함할 때.
        """
        role = self._get_role_or_raise(role_id)

        if not isinstance(permission_ids, (list, tuple)):
            raise ValidationError("permission_ids must be a list.")
        if any(isinstance(pid, bool) or not isinstance(pid, int) for pid in permission_ids):
            raise ValidationError("permission_ids must contain integer ids.")
        unique_ids = list(dict.fromkeys(permission_ids))

        found = {p.id for p in self.permission_repo.find_by_ids(unique_ids)}
        missing = [pid for pid in unique_ids if pid not in found]
        if missing:
            raise ValidationError(f"Unknown permission ids: {missing}")

        self.role_repo.replace_permissions(role, unique_ids)
        logger.info("Role '%s' permissions replaced (%d permissions)", role.slug, len(unique_ids))
        return self.list_role_permissions(role_id)

    def list_role_users(self, role_id: int) -> List[Dict[str, Any]]:
        self._get_role_or_raise(role_id)
        return [
            {"id": u.id, "username": u.username, "email": u.email, "is_active": u.is_active}
            for u in self.role_repo.list_users(role_id)
        ]
