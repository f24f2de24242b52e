from .user import IUserRepository
from .role import IRoleRepository
from .permission import IPermissionRepository
from .access import IAccessRepository
from .product import IProductRepository
from .attribute import IAttributeRepository, IAttributeOptionRepository, IAttributeValueRepository
