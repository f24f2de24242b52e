from .user import User
from .permission import Permission
from .role import Role
from .association import RolePermission, UserRole
from .product import Product
from .attribute import ProductAttribute, AttributeOption, AttributeValue, ATTRIBUTE_TYPES, OPTION_TYPES

__all__ = [
    "User", "Permission", "Role", "RolePermission", "UserRole", "Product",
    "ProductAttribute", "AttributeOption", "AttributeValue",
    "ATTRIBUTE_TYPES", "OPTION_TYPES",
]
