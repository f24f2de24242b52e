# wms_core/services/exceptions.py

class ServiceError(Exception):
    """서비스가 의도적으로 발생시키는 모든 예외의 기반 클래스. kind는 기계가 읽는 고정 값입니다."""
    kind = "error"


# --- Error kinds ---
class NotFoundError(ServiceError):
    """참조한 엔티티가 존재하지 않을 때"""
    kind = "not_found"

class ValidationError(ServiceError):
    """입력 형식이 잘못되었거나 고유성/타입 규칙을 어겼을 때"""
    kind = "validation_error"

class ConflictError(ServiceError):
    """다른 행이 아직 엔티티를 참조하고 있어 작업할 수 없을 때"""
    kind = "conflict"

class UnauthorizedError(ServiceError):
    """인증된 사용자가 없을 때"""
    kind = "unauthorized"

class ForbiddenError(ServiceError):
    """인증은 되었지만 필요한 권한이나 역할이 없을 때"""
    kind = "forbidden"


# --- Not found ---
class UserNotFoundError(NotFoundError):
    """사용자를 찾을 수 없을 때"""
    pass

class RoleNotFoundError(NotFoundError):
    """역할을 찾을 수 없을 때"""
    pass

class PermissionNotFoundError(NotFoundError):
    pass

class ProductNotFoundError(NotFoundError):
    pass

class AttributeNotFoundError(NotFoundError):
    """속성 정의를 찾을 수 없을 때"""
    pass

class AttributeOptionNotFoundError(NotFoundError):
    pass

class AttributeValueNotFoundError(NotFoundError):
    pass


# --- Auth ---
class TokenInvalidError(UnauthorizedError):
    """토큰이 없거나, 알 수 없거나, 만료되었을 때"""
    pass

class AuthenticationError(UnauthorizedError):
    """자격증명 검증에 실패했을 때"""
    pass
