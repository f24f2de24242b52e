# wms_core/app.py
from wsgiref.simple_server import make_server
from urllib.parse import parse_qs
import functools
import json
import logging
import re
import sys

from wms_core import config
from wms_core.database.database import SessionLocal
from wms_core.logging_config import configure_logging
from wms_core.repositories.sqlalchemy.sqlalchemy_access_repository import SqlalchemyAccessRepository
from wms_core.repositories.sqlalchemy.sqlalchemy_attribute_repository import (
    SqlalchemyAttributeRepository, SqlalchemyAttributeOptionRepository, SqlalchemyAttributeValueRepository
)
from wms_core.repositories.sqlalchemy.sqlalchemy_permission_repository import SqlalchemyPermissionRepository
from wms_core.repositories.sqlalchemy.sqlalchemy_product_repository import SqlalchemyProductRepository
from wms_core.repositories.sqlalchemy.sqlalchemy_role_repository import SqlalchemyRoleRepository
from wms_core.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from wms_core.services.attribute_service import AttributeService
from wms_core.services.authorization import AuthorizationGuard, AuthorizationResolver, RequestContext
from wms_core.services.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ServiceError, UnauthorizedError, ValidationError
)
from wms_core.services.identity_service import IdentityService
from wms_core.services.role_service import PermissionService, RoleService

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValidationError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object.")
    return data

def get_query_params(environ):
    return {key: values[-1] for key, values in parse_qs(environ.get("QUERY_STRING", "")).items()}

def optional_int(value, field):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be an integer.")

def get_request_context(environ):
    """
    X-Auth-Token 헤더로부터 이 요청의 호출자 신원을 만듭니다.
    헤더가 없으면 익명 컨텍스트를, 유효하지 않은 토큰이면 예외를 돌려줍니다.
    """
    auth_token = environ.get('HTTP_X_AUTH_TOKEN')
    if not auth_token:
        return RequestContext()
    token_data = environ['services']['identity'].validate_token(auth_token)
    return RequestContext(user_id=token_data['user_id'])

def requires(permission=None, role=None, capability=None):
    """
    핸들러를 보호하는 데코레이터입니다. 검사는 핸들러 본문보다 먼저 실행되므로
    거부된 요청은 서비스 호출까지 가지 않습니다. 인자가 없으면 인증 여부만 확인합니다.
    """
    def decorator(handler):
        @functools.wraps(handler)
        def wrapper(environ, *args):
            context = get_request_context(environ)
            environ['services']['guard'].authorize(
                context, permission=permission, role=role, capability=capability
            )
            environ['wms.context'] = context
            return handler(environ, *args)
        return wrapper
    return decorator

def respond(status, payload=None):
    if payload is None:
        return status, ''
    return status, json.dumps(payload, default=str)

def handle_exception(e):
    error_map = {
        UnauthorizedError: "401 Unauthorized",
        ForbiddenError: "403 Forbidden",
        NotFoundError: "404 Not Found",
        ValidationError: "400 Bad Request",
        ConflictError: "409 Conflict",
    }
    for cls in type(e).__mro__:
        if cls in error_map:
            return error_map[cls], json.dumps({"error": str(e), "kind": e.kind})

    # 그 밖의 예외는 버그나 저장소 오류입니다. 상세 내용은 로그에만 남깁니다.
    logger.exception("Unhandled error while serving request")
    return "500 Internal Server Error", json.dumps({"error": "Internal server error.", "kind": "internal_error"})

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def build_services(db_session):
    """한 요청을 위한 의존성 생성 (Repositories -> Services). 요청이 끝나면 모두 버려집니다."""
    user_repo = SqlalchemyUserRepository(db_session)
    role_repo = SqlalchemyRoleRepository(db_session)
    permission_repo = SqlalchemyPermissionRepository(db_session)
    access_repo = SqlalchemyAccessRepository(db_session)
    product_repo = SqlalchemyProductRepository(db_session)
    attribute_repo = SqlalchemyAttributeRepository(db_session)
    option_repo = SqlalchemyAttributeOptionRepository(db_session)
    value_repo = SqlalchemyAttributeValueRepository(db_session)

    resolver = AuthorizationResolver(access_repo)
    return {
        'resolver': resolver,
        'guard': AuthorizationGuard(resolver),
        'identity': IdentityService(user_repo, role_repo, resolver),
        'permissions': PermissionService(permission_repo),
        'roles': RoleService(role_repo, permission_repo),
        'attributes': AttributeService(attribute_repo, option_repo, value_repo, product_repo),
    }

def make_application(session_factory=SessionLocal):
    def application(environ, start_response):
        db_session = session_factory()
        try:
            environ['services'] = build_services(db_session)

            path = environ.get("PATH_INFO", "")
            method = environ.get("REQUEST_METHOD", "")

            handler, path_args = None, []
            for route_method, pattern, route_handler in ROUTES:
                if method == route_method and (match := re.match(pattern, path)):
                    handler, path_args = route_handler, match.groups()
                    break

            if handler:
                status, response_body = handler(environ, *path_args)
            else:
                status, response_body = '404 Not Found', json.dumps({'error': 'Not Found', 'kind': 'not_found'})

        except Exception as e:
            db_session.rollback()
            status, response_body = handle_exception(e)
        finally:
            db_session.close()

        start_response(status, [("Content-Type", "application/json")])
        return [response_body.encode("utf-8")]
    return application

# --------------------------------------------------------------------------
## 인증 핸들러
# --------------------------------------------------------------------------

def auth_tokens_handler(environ, *args):
    data = get_request_data(environ)
    token = environ['services']['identity'].authenticate(data.get('username'), data.get('password'))
    return respond('201 Created', token)

@requires()
def revoke_token_handler(environ, *args):
    environ['services']['identity'].revoke_token(environ['HTTP_X_AUTH_TOKEN'])
    return respond('204 No Content')

@requires()
def me_handler(environ, *args):
    user = environ['services']['identity'].get_user(environ['wms.context'].user_id)
    return respond('200 OK', user)

@requires()
def me_permissions_handler(environ, *args):
    permissions = environ['services']['identity'].get_user_permissions(environ['wms.context'].user_id)
    return respond('200 OK', permissions)

# --------------------------------------------------------------------------
## 권한 핸들러
# --------------------------------------------------------------------------

@requires(permission='roles.view')
def list_permissions_handler(environ, *args):
    module = get_query_params(environ).get('module')
    return respond('200 OK', {"permissions": environ['services']['permissions'].list_permissions(module)})

@requires(permission='roles.view')
def list_permission_modules_handler(environ, *args):
    return respond('200 OK', {"modules": environ['services']['permissions'].list_modules()})

@requires(permission='roles.view')
def grouped_permissions_handler(environ, *args):
    return respond('200 OK', {"permissions": environ['services']['permissions'].list_grouped_by_module()})

@requires(permission='roles.view')
def get_permission_handler(environ, permission_id):
    return respond('200 OK', environ['services']['permissions'].get_permission(int(permission_id)))

@requires(permission='roles.create')
def create_permission_handler(environ, *args):
    data = get_request_data(environ)
    permission = environ['services']['permissions'].create_permission(
        data.get('name'), data.get('slug'), data.get('description'), data.get('module')
    )
    return respond('201 Created', permission)

@requires(permission='roles.delete')
def delete_permission_handler(environ, permission_id):
    environ['services']['permissions'].delete_permission(int(permission_id))
    return respond('204 No Content')

# --------------------------------------------------------------------------
## 역할 핸들러
# --------------------------------------------------------------------------

@requires(permission='roles.view')
def list_roles_handler(environ, *args):
    return respond('200 OK', {"roles": environ['services']['roles'].list_roles()})

@requires(permission='roles.create')
def create_role_handler(environ, *args):
    data = get_request_data(environ)
    role = environ['services']['roles'].create_role(data.get('name'), data.get('slug'), data.get('description'))
    return respond('201 Created', role)

@requires(permission='roles.view')
def get_role_handler(environ, role_id):
    return respond('200 OK', environ['services']['roles'].get_role(int(role_id)))

@requires(permission='roles.update')
def update_role_handler(environ, role_id):
    data = get_request_data(environ)
    role = environ['services']['roles'].update_role(
        int(role_id),
        name=data.get('name'),
        slug=data.get('slug'),
        description=data.get('description'),
        is_active=data.get('is_active'),
    )
    return respond('200 OK', role)

@requires(permission='roles.delete')
def delete_role_handler(environ, role_id):
    environ['services']['roles'].delete_role(int(role_id))
    return respond('204 No Content')

@requires(permission='roles.view')
def list_role_permissions_handler(environ, role_id):
    permissions = environ['services']['roles'].list_role_permissions(int(role_id))
    return respond('200 OK', {"permissions": permissions})

@requires(permission='roles.update')
def replace_role_permissions_handler(environ, role_id):
    data = get_request_data(environ)
    if 'permission_ids' not in data:
        raise ValidationError("'permission_ids' is required.")
    permissions = environ['services']['roles'].replace_permissions(int(role_id), data['permission_ids'])
    return respond('200 OK', {"permissions": permissions})

@requires(permission='roles.view')
def list_role_users_handler(environ, role_id):
    return respond('200 OK', {"users": environ['services']['roles'].list_role_users(int(role_id))})

# --------------------------------------------------------------------------
## 사용자 핸들러
# --------------------------------------------------------------------------

@requires(permission='users.view')
def list_users_handler(environ, *args):
    return respond('200 OK', {"users": environ['services']['identity'].list_users()})

@requires(permission='users.create')
def create_user_handler(environ, *args):
    data = get_request_data(environ)
    user = environ['services']['identity'].create_user(
        data.get('username'), data.get('password'), data.get('email'),
        acting_user_id=environ['wms.context'].user_id,
    )
    return respond('201 Created', user)

@requires(permission='users.view')
def get_user_handler(environ, user_id):
    return respond('200 OK', environ['services']['identity'].get_user(int(user_id)))

@requires(permission='users.update')
def update_user_handler(environ, user_id):
    data = get_request_data(environ)
    user = environ['services']['identity'].update_user(
        int(user_id), username=data.get('username'), email=data.get('email')
    )
    return respond('200 OK', user)

@requires(permission='users.update')
def activate_user_handler(environ, user_id):
    return respond('200 OK', environ['services']['identity'].activate_user(int(user_id)))

@requires(permission='users.update')
def deactivate_user_handler(environ, user_id):
    user = environ['services']['identity'].deactivate_user(environ['wms.context'].user_id, int(user_id))
    return respond('200 OK', user)

@requires(permission='users.delete')
def delete_user_handler(environ, user_id):
    environ['services']['identity'].delete_user(int(user_id))
    return respond('204 No Content')

@requires()
def replace_user_role_handler(environ, user_id):
    data = get_request_data(environ)
    user = environ['services']['identity'].replace_user_role(
        environ['wms.context'].user_id, int(user_id), optional_int(data.get('role_id'), 'role_id')
    )
    return respond('200 OK', user)

@requires()
def change_password_handler(environ, user_id):
    data = get_request_data(environ)
    environ['services']['identity'].change_password(
        environ['wms.context'].user_id, int(user_id), data.get('password'), data.get('current_password')
    )
    return respond('204 No Content')

@requires(permission='users.view')
def user_permissions_handler(environ, user_id):
    return respond('200 OK', environ['services']['identity'].get_user_permissions(int(user_id)))

# --------------------------------------------------------------------------
## 상품 속성 핸들러
# --------------------------------------------------------------------------

ATTRIBUTE_FIELDS = ('name', 'slug', 'type', 'description', 'is_required', 'is_filterable',
                    'is_searchable', 'sort_order', 'is_active')

@requires(permission='products.view')
def list_attributes_handler(environ, *args):
    include_inactive = get_query_params(environ).get('include_inactive', '').lower() == 'true'
    attributes = environ['services']['attributes'].list_attributes(include_inactive=include_inactive)
    return respond('200 OK', {"attributes": attributes})

@requires(permission='products.create')
def create_attribute_handler(environ, *args):
    data = get_request_data(environ)
    attribute = environ['services']['attributes'].create_attribute(
        name=data.get('name'),
        slug=data.get('slug'),
        type=data.get('type'),
        description=data.get('description'),
        is_required=data.get('is_required', False),
        is_filterable=data.get('is_filterable', False),
        is_searchable=data.get('is_searchable', False),
        sort_order=optional_int(data.get('sort_order'), 'sort_order') or 0,
    )
    return respond('201 Created', attribute)

@requires(permission='products.view')
def get_attribute_handler(environ, attribute_id):
    return respond('200 OK', environ['services']['attributes'].get_attribute(int(attribute_id)))

@requires(permission='products.update')
def update_attribute_handler(environ, attribute_id):
    data = get_request_data(environ)
    changes = {field: data[field] for field in ATTRIBUTE_FIELDS if field in data}
    if 'sort_order' in changes:
        changes['sort_order'] = optional_int(changes['sort_order'], 'sort_order')
    attribute = environ['services']['attributes'].update_attribute(int(attribute_id), **changes)
    return respond('200 OK', attribute)

@requires(permission='products.delete')
def delete_attribute_handler(environ, attribute_id):
    environ['services']['attributes'].delete_attribute(int(attribute_id))
    return respond('204 No Content')

@requires(permission='products.view')
def list_options_handler(environ, *args):
    attribute_id = optional_int(get_query_params(environ).get('attribute_id'), 'attribute_id')
    return respond('200 OK', {"options": environ['services']['attributes'].list_options(attribute_id)})

@requires(permission='products.create')
def create_option_handler(environ, *args):
    data = get_request_data(environ)
    option = environ['services']['attributes'].create_option(
        optional_int(data.get('attribute_id'), 'attribute_id'),
        data.get('value'),
        data.get('label'),
        optional_int(data.get('sort_order'), 'sort_order') or 0,
    )
    return respond('201 Created', option)

@requires(permission='products.view')
def get_option_handler(environ, option_id):
    return respond('200 OK', environ['services']['attributes'].get_option(int(option_id)))

@requires(permission='products.update')
def update_option_handler(environ, option_id):
    data = get_request_data(environ)
    option = environ['services']['attributes'].update_option(
        int(option_id),
        value=data.get('value'),
        label=data.get('label'),
        sort_order=optional_int(data.get('sort_order'), 'sort_order'),
        is_active=data.get('is_active'),
    )
    return respond('200 OK', option)

@requires(permission='products.delete')
def delete_option_handler(environ, option_id):
    environ['services']['attributes'].delete_option(int(option_id))
    return respond('204 No Content')

@requires(permission='products.view')
def list_values_handler(environ, *args):
    params = get_query_params(environ)
    values = environ['services']['attributes'].list_values(
        product_id=optional_int(params.get('product_id'), 'product_id'),
        attribute_id=optional_int(params.get('attribute_id'), 'attribute_id'),
    )
    return respond('200 OK', {"values": values})

@requires(permission='products.view')
def product_attributes_handler(environ, product_id):
    attributes = environ['services']['attributes'].get_product_attributes(int(product_id))
    return respond('200 OK', {"product_id": int(product_id), "attributes": attributes})

@requires(permission='products.view')
def missing_attributes_handler(environ, product_id):
    missing = environ['services']['attributes'].missing_required_attributes(int(product_id))
    return respond('200 OK', {"product_id": int(product_id), "missing": missing})

@requires(permission='products.update')
def set_attribute_value_handler(environ, product_id, attribute_id):
    data = get_request_data(environ)
    value = environ['services']['attributes'].set_attribute_value(
        int(product_id), int(attribute_id), data.get('value'), optional_int(data.get('option_id'), 'option_id')
    )
    return respond('200 OK', value)

@requires(permission='products.update')
def delete_attribute_value_handler(environ, product_id, attribute_id):
    environ['services']['attributes'].delete_attribute_value(int(product_id), int(attribute_id))
    return respond('204 No Content')

# --------------------------------------------------------------------------
## 라우팅 테이블
# --------------------------------------------------------------------------

ROUTES = [
    ('POST', r'^/v1/auth/tokens$', auth_tokens_handler),
    ('DELETE', r'^/v1/auth/tokens$', revoke_token_handler),
    ('GET', r'^/v1/me$', me_handler),
    ('GET', r'^/v1/me/permissions$', me_permissions_handler),

    ('GET', r'^/v1/permissions$', list_permissions_handler),
    ('POST', r'^/v1/permissions$', create_permission_handler),
    ('GET', r'^/v1/permissions/modules$', list_permission_modules_handler),
    ('GET', r'^/v1/permissions/grouped$', grouped_permissions_handler),
    ('GET', r'^/v1/permissions/([0-9]+)$', get_permission_handler),
    ('DELETE', r'^/v1/permissions/([0-9]+)$', delete_permission_handler),

    ('GET', r'^/v1/roles$', list_roles_handler),
    ('POST', r'^/v1/roles$', create_role_handler),
    ('GET', r'^/v1/roles/([0-9]+)$', get_role_handler),
    ('PUT', r'^/v1/roles/([0-9]+)$', update_role_handler),
    ('DELETE', r'^/v1/roles/([0-9]+)$', delete_role_handler),
    ('GET', r'^/v1/roles/([0-9]+)/permissions$', list_role_permissions_handler),
    ('PUT', r'^/v1/roles/([0-9]+)/permissions$', replace_role_permissions_handler),
    ('GET', r'^/v1/roles/([0-9]+)/users$', list_role_users_handler),

    ('GET', r'^/v1/users$', list_users_handler),
    ('POST', r'^/v1/users$', create_user_handler),
    ('GET', r'^/v1/users/([0-9]+)$', get_user_handler),
    ('PUT', r'^/v1/users/([0-9]+)$', update_user_handler),
    ('DELETE', r'^/v1/users/([0-9]+)$', delete_user_handler),
    ('PUT', r'^/v1/users/([0-9]+)/role$', replace_user_role_handler),
    ('PUT', r'^/v1/users/([0-9]+)/activate$', activate_user_handler),
    ('PUT', r'^/v1/users/([0-9]+)/deactivate$', deactivate_user_handler),
    ('PUT', r'^/v1/users/([0-9]+)/password$', change_password_handler),
    ('GET', r'^/v1/users/([0-9]+)/permissions$', user_permissions_handler),

    ('GET', r'^/v1/product-attributes$', list_attributes_handler),
    ('POST', r'^/v1/product-attributes$', create_attribute_handler),
    ('GET', r'^/v1/product-attributes/([0-9]+)$', get_attribute_handler),
    ('PUT', r'^/v1/product-attributes/([0-9]+)$', update_attribute_handler),
    ('DELETE', r'^/v1/product-attributes/([0-9]+)$', delete_attribute_handler),

    ('GET', r'^/v1/product-attribute-options$', list_options_handler),
    ('POST', r'^/v1/product-attribute-options$', create_option_handler),
    ('GET', r'^/v1/product-attribute-options/([0-9]+)$', get_option_handler),
    ('PUT', r'^/v1/product-attribute-options/([0-9]+)$', update_option_handler),
    ('DELETE', r'^/v1/product-attribute-options/([0-9]+)$', delete_option_handler),

    ('GET', r'^/v1/product-attribute-values$', list_values_handler),
    ('GET', r'^/v1/products/([0-9]+)/attributes$', product_attributes_handler),
    ('GET', r'^/v1/products/([0-9]+)/attributes/missing$', missing_attributes_handler),
    ('PUT', r'^/v1/products/([0-9]+)/attributes/([0-9]+)$', set_attribute_value_handler),
    ('DELETE', r'^/v1/products/([0-9]+)/attributes/([0-9]+)$', delete_attribute_value_handler),
]

application = make_application()

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    configure_logging()
    try:
        with make_server(config.HOST, config.PORT, application) as httpd:
            logger.info("Serving wms-core on port %s...", config.PORT)
            httpd.serve_forever()
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
