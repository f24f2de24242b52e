# tests/test_app.py
import io
import json

import pytest
from wsgiref.util import setup_testing_defaults

from wms_core.app import make_application
from wms_core.database import models
from wms_core.database.db_init import seed_defaults
from wms_core.services.identity_service import IdentityService

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def app(session_factory):
    """시드 데이터가 들어간 인메모리 데이터베이스 위의 WSGI 애플리케이션."""
    db = session_factory()
    seed_defaults(db)
    db.add(models.Product(id=7, sku="SKU-7", name="Widget"))
    db.commit()
    db.close()
    return make_application(session_factory)

@pytest.fixture(autouse=True)
def clear_tokens():
    IdentityService._token_cache.clear()
    yield
    IdentityService._token_cache.clear()

def call(app, method, path, body=None, token=None, query=""):
    """요청 하나를 애플리케이션에 보내고 (상태 코드, 디코딩된 JSON 또는 None)을 반환합니다."""
    raw = json.dumps(body).encode("utf-8") if body is not None else b""
    environ = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "CONTENT_LENGTH": str(len(raw)),
        "wsgi.input": io.BytesIO(raw),
    }
    if token:
        environ["HTTP_X_AUTH_TOKEN"] = token
    setup_testing_defaults(environ)

    captured = {}
    def start_response(status, headers):
        captured["status"] = status
    chunks = app(environ, start_response)

    payload = b"".join(chunks)
    return int(captured["status"].split(" ", 1)[0]), (json.loads(payload) if payload else None)

def login(app, username, password):
    status, body = call(app, "POST", "/v1/auth/tokens", {"username": username, "password": password})
    assert status == 201
    return body["token"]

def role_id(app, token, slug):
    _, body = call(app, "GET", "/v1/roles", token=token)
    return next(r["id"] for r in body["roles"] if r["slug"] == slug)

def create_user_with_role(app, admin_token, username, role_slug):
    status, user = call(app, "POST", "/v1/users", {"username": username, "password": "pw"}, token=admin_token)
    assert status == 201
    status, _ = call(app, "PUT", f"/v1/users/{user['id']}/role",
                     {"role_id": role_id(app, admin_token, role_slug)}, token=admin_token)
    assert status == 200
    return user["id"], login(app, username, "pw")

# ===================================================================
#  인증과 가드 테스트
# ===================================================================
class TestAuthentication:
    def test_login_and_me(self, app):
        token = login(app, "admin", "admin")

        status, me = call(app, "GET", "/v1/me", token=token)

        assert status == 200
        assert me["username"] == "admin"
        assert me["role_slugs"] == ["super-admin"]

    def test_wrong_password_is_unauthorized(self, app):
        status, body = call(app, "POST", "/v1/auth/tokens", {"username": "admin", "password": "nope"})

        assert status == 401
        assert body["kind"] == "unauthorized"

    def test_missing_token_is_unauthorized(self, app):
        status, _ = call(app, "GET", "/v1/roles")
        assert status == 401

    def test_unknown_token_is_unauthorized(self, app):
        status, _ = call(app, "GET", "/v1/roles", token="not-a-token")
        assert status == 401

    def test_revoked_token_stops_working(self, app):
        token = login(app, "admin", "admin")

        status, _ = call(app, "DELETE", "/v1/auth/tokens", token=token)
        assert status == 204

        status, _ = call(app, "GET", "/v1/me", token=token)
        assert status == 401

    def test_token_of_deactivated_user_stops_working(self, app, session_factory):
        """토큰 발급 후 계정이 비활성화되면 기존 토큰이 401로 거부되는지 테스트합니다."""
        # === Arrange (테스트 준비) ===
        admin = login(app, "admin", "admin")
        user_id, token = create_user_with_role(app, admin, "dan", "manager")
        # 시나리오: 토큰 캐시를 거치지 않고 데이터베이스에서 직접 비활성화됨
        db = session_factory()
        db.query(models.User).filter_by(id=user_id).one().is_active = False
        db.commit()
        db.close()

        # === Act (실제 테스트 대상 실행) ===
        status, body = call(app, "GET", "/v1/products/7/attributes", token=token)

        # === Assert (결과 검증) ===
        assert status == 401
        assert body["kind"] == "unauthorized"

    def test_token_of_deleted_user_stops_working(self, app, session_factory):
        admin = login(app, "admin", "admin")
        user_id, token = create_user_with_role(app, admin, "del", "viewer")
        db = session_factory()
        db.delete(db.query(models.User).filter_by(id=user_id).one())
        db.commit()
        db.close()

        status, _ = call(app, "GET", "/v1/me/permissions", token=token)

        assert status == 401


class TestGuards:
    def test_new_user_gets_default_role(self, app):
        admin = login(app, "admin", "admin")

        status, user = call(app, "POST", "/v1/users", {"username": "erin", "password": "pw"}, token=admin)

        assert status == 201
        assert user["role_slugs"] == ["employee"]

    def test_viewer_is_forbidden_from_roles(self, app):
        admin = login(app, "admin", "admin")
        _, viewer = create_user_with_role(app, admin, "vic", "viewer")

        status, body = call(app, "GET", "/v1/roles", token=viewer)
        assert status == 403
        assert body["kind"] == "forbidden"

        status, _ = call(app, "GET", "/v1/users", token=viewer)
        assert status == 200

    def test_my_permissions(self, app):
        admin = login(app, "admin", "admin")
        _, manager = create_user_with_role(app, admin, "mia", "manager")

        status, body = call(app, "GET", "/v1/me/permissions", token=manager)

        assert status == 200
        assert body["roles"] == ["manager"]
        assert "products.view" in body["permissions"]
        assert "products.delete" not in body["permissions"]

    def test_only_super_admin_changes_roles(self, app):
        admin = login(app, "admin", "admin")
        target_id, _ = create_user_with_role(app, admin, "tom", "employee")
        _, plain_admin = create_user_with_role(app, admin, "ada", "admin")

        # 시나리오: admin 역할은 users.* 권한을 가졌지만 super-admin은 아님
        status, _ = call(app, "PUT", f"/v1/users/{target_id}/role",
                         {"role_id": role_id(app, admin, "manager")}, token=plain_admin)
        assert status == 403

        status, user = call(app, "PUT", f"/v1/users/{target_id}/role",
                            {"role_id": role_id(app, admin, "manager")}, token=admin)
        assert status == 200
        assert user["role_slugs"] == ["manager"]

    def test_null_role_clears_assignment(self, app):
        admin = login(app, "admin", "admin")
        target_id, _ = create_user_with_role(app, admin, "tom", "employee")

        status, user = call(app, "PUT", f"/v1/users/{target_id}/role", {"role_id": None}, token=admin)

        assert status == 200
        assert user["role_slugs"] == []

# ===================================================================
#  사용자 수정, 활성화/비활성화 테스트
# ===================================================================
class TestUserLifecycle:
    def test_update_user(self, app):
        admin = login(app, "admin", "admin")
        user_id, _ = create_user_with_role(app, admin, "tom", "employee")

        status, user = call(app, "PUT", f"/v1/users/{user_id}", {"username": "thomas", "email": "t@example.com"}, token=admin)

        assert status == 200
        assert user["username"] == "thomas"
        assert user["email"] == "t@example.com"
        assert login(app, "thomas", "pw")

    def test_update_user_to_taken_username(self, app):
        admin = login(app, "admin", "admin")
        user_id, _ = create_user_with_role(app, admin, "tom", "employee")

        status, body = call(app, "PUT", f"/v1/users/{user_id}", {"username": "admin"}, token=admin)

        assert status == 400
        assert body["kind"] == "validation_error"

    def test_deactivate_and_activate(self, app):
        """비활성화된 사용자는 로그인할 수 없고, 다시 활성화하면 로그인할 수 있는지 테스트합니다."""
        # === Arrange (테스트 준비) ===
        admin = login(app, "admin", "admin")
        user_id, token = create_user_with_role(app, admin, "tom", "employee")

        # === Act (실제 테스트 대상 실행) ===
        status, user = call(app, "PUT", f"/v1/users/{user_id}/deactivate", token=admin)

        # === Assert (결과 검증) ===
        assert status == 200
        assert user["is_active"] is False
        status, _ = call(app, "GET", "/v1/me", token=token)
        assert status == 401
        status, _ = call(app, "POST", "/v1/auth/tokens", {"username": "tom", "password": "pw"})
        assert status == 401

        status, user = call(app, "PUT", f"/v1/users/{user_id}/activate", token=admin)
        assert status == 200
        assert user["is_active"] is True
        assert login(app, "tom", "pw")

    def test_cannot_deactivate_yourself(self, app):
        admin = login(app, "admin", "admin")
        _, me = call(app, "GET", "/v1/me", token=admin)

        status, body = call(app, "PUT", f"/v1/users/{me['id']}/deactivate", token=admin)

        assert status == 400
        assert body["kind"] == "validation_error"
        status, _ = call(app, "GET", "/v1/me", token=admin)
        assert status == 200

    def test_viewer_cannot_deactivate_users(self, app):
        admin = login(app, "admin", "admin")
        target_id, _ = create_user_with_role(app, admin, "tom", "employee")
        _, viewer = create_user_with_role(app, admin, "vic", "viewer")

        status, _ = call(app, "PUT", f"/v1/users/{target_id}/deactivate", token=viewer)

        assert status == 403
        _, user = call(app, "GET", f"/v1/users/{target_id}", token=admin)
        assert user["is_active"] is True

    def test_inactive_role_cannot_be_assigned(self, app):
        """비활성화된 역할을 부여하면 400이 반환되고 기존 역할이 유지되는지 테스트합니다."""
        # === Arrange (테스트 준비) ===
        admin = login(app, "admin", "admin")
        target_id, _ = create_user_with_role(app, admin, "tom", "employee")
        _, seasonal = call(app, "POST", "/v1/roles", {"name": "Seasonal", "slug": "seasonal"}, token=admin)
        status, _ = call(app, "PUT", f"/v1/roles/{seasonal['id']}", {"is_active": False}, token=admin)
        assert status == 200

        # === Act (실제 테스트 대상 실행) ===
        status, body = call(app, "PUT", f"/v1/users/{target_id}/role", {"role_id": seasonal["id"]}, token=admin)

        # === Assert (결과 검증) ===
        assert status == 400
        assert body["kind"] == "validation_error"
        _, user = call(app, "GET", f"/v1/users/{target_id}", token=admin)
        assert user["role_slugs"] == ["employee"]

# ===================================================================
#  에러 매핑 테스트
# ===================================================================
class TestErrorMapping:
    def test_deleting_assigned_role_conflicts(self, app):
        admin = login(app, "admin", "admin")
        create_user_with_role(app, admin, "vic", "viewer")

        status, body = call(app, "DELETE", f"/v1/roles/{role_id(app, admin, 'viewer')}", token=admin)

        assert status == 409
        assert body["kind"] == "conflict"

    def test_unknown_permission_id_is_bad_request(self, app):
        admin = login(app, "admin", "admin")
        viewer_id = role_id(app, admin, "viewer")

        status, body = call(app, "PUT", f"/v1/roles/{viewer_id}/permissions",
                            {"permission_ids": [1, 99999]}, token=admin)

        assert status == 400
        assert "99999" in body["error"]
        # 검증: 이전 권한 집합은 그대로여야 함
        _, body = call(app, "GET", f"/v1/roles/{viewer_id}/permissions", token=admin)
        assert len(body["permissions"]) == 3

    def test_replace_role_permissions(self, app):
        admin = login(app, "admin", "admin")
        viewer_id = role_id(app, admin, "viewer")
        _, body = call(app, "GET", "/v1/permissions", token=admin, query="module=products")
        ids = [p["id"] for p in body["permissions"]]

        status, body = call(app, "PUT", f"/v1/roles/{viewer_id}/permissions", {"permission_ids": ids}, token=admin)

        assert status == 200
        assert {p["module"] for p in body["permissions"]} == {"products"}

    def test_non_object_body_is_bad_request(self, app):
        admin = login(app, "admin", "admin")

        status, body = call(app, "POST", "/v1/roles", ["Auditor", "auditor"], token=admin)

        assert status == 400
        assert body["kind"] == "validation_error"

    def test_unknown_role_is_not_found(self, app):
        admin = login(app, "admin", "admin")

        status, body = call(app, "GET", "/v1/roles/9999", token=admin)

        assert status == 404
        assert body["kind"] == "not_found"

    def test_unknown_route_is_not_found(self, app):
        status, _ = call(app, "GET", "/v1/warehouses")
        assert status == 404

# ===================================================================
#  상품 속성 테스트
# ===================================================================
class TestProductAttributes:
    def test_color_red_over_http(self, app):
        admin = login(app, "admin", "admin")
        status, color = call(app, "POST", "/v1/product-attributes",
                             {"name": "Color", "slug": "color", "type": "select", "is_required": True}, token=admin)
        assert status == 201
        status, red = call(app, "POST", "/v1/product-attribute-options",
                           {"attribute_id": color["id"], "value": "Red"}, token=admin)
        assert status == 201

        status, value = call(app, "PUT", f"/v1/products/7/attributes/{color['id']}",
                             {"option_id": red["id"]}, token=admin)

        assert status == 200
        assert value["value"] == "Red"
        assert value["option_label"] == "Red"
        _, body = call(app, "GET", "/v1/products/7/attributes", token=admin)
        assert body["attributes"]["color"]["option_id"] == red["id"]

    def test_viewer_cannot_set_values(self, app):
        admin = login(app, "admin", "admin")
        _, viewer = create_user_with_role(app, admin, "vic", "viewer")
        _, weight = call(app, "POST", "/v1/product-attributes",
                         {"name": "Weight", "slug": "weight", "type": "number"}, token=admin)

        status, _ = call(app, "PUT", f"/v1/products/7/attributes/{weight['id']}", {"value": "2"}, token=viewer)
        assert status == 403

        status, body = call(app, "PUT", f"/v1/products/7/attributes/{weight['id']}", {"value": "heavy"}, token=admin)
        assert status == 400
        assert body["kind"] == "validation_error"

    def test_attribute_with_values_cannot_be_deleted(self, app):
        admin = login(app, "admin", "admin")
        _, notes = call(app, "POST", "/v1/product-attributes",
                        {"name": "Notes", "slug": "notes", "type": "text"}, token=admin)
        call(app, "PUT", f"/v1/products/7/attributes/{notes['id']}", {"value": "fragile"}, token=admin)

        status, _ = call(app, "DELETE", f"/v1/product-attributes/{notes['id']}", token=admin)

        assert status == 409

    def test_non_integer_sort_order_is_bad_request(self, app):
        admin = login(app, "admin", "admin")
        _, weight = call(app, "POST", "/v1/product-attributes",
                         {"name": "Weight", "slug": "weight", "type": "number"}, token=admin)

        status, body = call(app, "PUT", f"/v1/product-attributes/{weight['id']}", {"sort_order": "abc"}, token=admin)

        assert status == 400
        assert body["kind"] == "validation_error"
        _, stored = call(app, "GET", f"/v1/product-attributes/{weight['id']}", token=admin)
        assert stored["sort_order"] == 0

    def test_missing_attributes_of_unknown_product(self, app):
        admin = login(app, "admin", "admin")

        status, body = call(app, "GET", "/v1/products/999/attributes/missing", token=admin)

        assert status == 404
        assert body["kind"] == "not_found"
