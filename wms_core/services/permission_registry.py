"""
권한 slug와 기본 역할의 정적 카탈로그.

아래 slug는 외부와의 약속입니다. 기존 역할 할당, 라우트 가드, 클라이언트 코드가
그대로 참조하므로 이름을 바꾸면 안 됩니다.
"""
import re
from typing import Dict, List, NamedTuple, Optional

SLUG_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*(\.[a-z][a-z0-9_-]*)+$")


class PermissionSpec(NamedTuple):
    name: str
    slug: str
    description: str
    module: str


PERMISSION_CATALOG: List[PermissionSpec] = [
    # 사용자 관리
    PermissionSpec("View Users", "users.view", "Can view users list", "users"),
    PermissionSpec("Create Users", "users.create", "Can create new users", "users"),
    PermissionSpec("Update Users", "users.update", "Can update user information", "users"),
    PermissionSpec("Delete Users", "users.delete", "Can delete users", "users"),
    # 역할 관리
    PermissionSpec("View Roles", "roles.view", "Can view roles list", "roles"),
    PermissionSpec("Create Roles", "roles.create", "Can create new roles", "roles"),
    PermissionSpec("Update Roles", "roles.update", "Can update role information", "roles"),
    PermissionSpec("Delete Roles", "roles.delete", "Can delete roles", "roles"),
    # 상품 관리
    PermissionSpec("View Products", "products.view", "Can view products list", "products"),
    PermissionSpec("Create Products", "products.create", "Can create new products", "products"),
    PermissionSpec("Update Products", "products.update", "Can update product information", "products"),
    PermissionSpec("Delete Products", "products.delete", "Can delete products", "products"),
    # 창고 관리
    PermissionSpec("View Warehouses", "warehouses.view", "Can view warehouses list", "warehouses"),
    PermissionSpec("Create Warehouses", "warehouses.create", "Can create new warehouses", "warehouses"),
    PermissionSpec("Update Warehouses", "warehouses.update", "Can update warehouse information", "warehouses"),
    PermissionSpec("Delete Warehouses", "warehouses.delete", "Can delete warehouses", "warehouses"),
    # 시스템
    PermissionSpec("View System Logs", "system.logs.view", "Can view system logs", "system"),
    PermissionSpec("Manage Settings", "system.settings.manage", "Can manage system settings", "system"),
    PermissionSpec("Send Notifications", "notifications.send", "Can send notifications", "notifications"),
    PermissionSpec("View All Notifications", "notifications.view.all", "Can view all notifications", "notifications"),
]

SUPER_ADMIN = "super-admin"

DEFAULT_ROLES: List[Dict[str, str]] = [
    {"name": "Super Admin", "slug": SUPER_ADMIN, "description": "Full system access"},
    {"name": "Admin", "slug": "admin", "description": "Administrative access"},
    {"name": "Manager", "slug": "manager", "description": "Management level access"},
    {"name": "Employee", "slug": "employee", "description": "Basic employee access"},
    {"name": "Viewer", "slug": "viewer", "description": "Read-only access"},
]

# None은 카탈로그의 모든 권한을 뜻합니다.
DEFAULT_ROLE_PERMISSIONS: Dict[str, Optional[List[str]]] = {
    SUPER_ADMIN: None,
    "admin": [
        "users.view", "users.create", "users.update",
        "roles.view", "products.view", "products.create", "products.update", "products.delete",
        "warehouses.view", "warehouses.create", "warehouses.update",
        "system.logs.view", "notifications.send", "notifications.view.all",
    ],
    "manager": [
        "users.view", "products.view", "products.create", "products.update",
        "warehouses.view", "warehouses.update", "notifications.send",
    ],
    "employee": ["users.view", "products.view", "warehouses.view"],
    "viewer": ["users.view", "products.view", "warehouses.view"],
}


def is_valid_slug(slug: str) -> bool:
    """점으로 구분된 두 단계 이상의 소문자 slug('module.action')이면 True."""
    return bool(slug) and SLUG_PATTERN.match(slug) is not None


def module_of(slug: str) -> str:
    return slug.split(".", 1)[0]


def permissions_for_role(role_slug: str) -> List[str]:
    """기본 역할 하나에 시드되는 권한 slug 목록."""
    slugs = DEFAULT_ROLE_PERMISSIONS.get(role_slug, [])
    if slugs is None:
        return [entry.slug for entry in PERMISSION_CATALOG]
    return list(slugs)
