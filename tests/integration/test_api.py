"""Integration tests for the HTTP API: authentication, permission guards and menus."""

import logging

from fastapi import status

from rbac_console.authz import permissions as perms
from rbac_console.core.config import settings
from rbac_console.services.role_service import role_service
from rbac_console.services.user_service import user_service


class TestAuthEndpoints:
    """Login, session snapshot, refresh, logout."""

    def test_login_returns_session(self, client):
        response = client.post("/api/auth/login", json={"name": "dualuser", "password": "password123"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["session"]["primary_role"] == "访客"
        assert [role["name"] for role in data["session"]["roles"]] == ["访客", "编辑"]
        assert perms.ADD_USER in data["session"]["permissions"]

    def test_login_wrong_password(self, client):
        response = client.post("/api/auth/login", json={"name": "dualuser", "password": "wrong"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_me(self, client, login):
        response = client.get("/api/auth/me", headers=login("viewer"))
        assert response.json()["user"]["name"] == "viewer"
        assert sorted(response.json()["permissions"]) == sorted([perms.QUERY_USER, perms.QUERY_ROLE])

    def test_refresh_reflects_role_change(self, client, login, db):
        headers = login("viewer")
        role = role_service.get_by_name(db, "访客")
        role_service.update(db, role.id, "访客", [perms.AUDIT_LOG])

        response = client.post("/api/auth/refresh", headers=headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["session"]["permissions"] == [perms.AUDIT_LOG]

    def test_logout_is_audited(self, client, login, admin_headers):
        client.post("/api/auth/logout", headers=login("viewer"))

        history = client.get("/api/admin/audit", params={"event": "logout"}, headers=admin_headers).json()
        assert history["total"] == 1
        assert history["events"][0]["actor_name"] == "viewer"

    def test_deleted_user_token_stops_working(self, client, login, db):
        headers = login("viewer")
        user_service.delete(db, user_service.get_by_name(db, "viewer").id)

        assert client.get("/api/auth/me", headers=headers).status_code == status.HTTP_401_UNAUTHORIZED


class TestLoginAs:
    """Acting as another user."""

    def test_admin_can_login_as(self, client, admin_headers, db):
        viewer = user_service.get_by_name(db, "viewer")

        response = client.post("/api/auth/login-as", json={"user_id": viewer.id}, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        session = response.json()["session"]
        assert session["user"]["name"] == "viewer"
        assert session["impersonator_id"] is not None

        token = response.json()["access_token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["user"]["name"] == "viewer"
        assert me["impersonator_id"] == session["impersonator_id"]

    def test_login_as_requires_user_admin(self, client, login, db):
        viewer = user_service.get_by_name(db, "viewer")
        response = client.post("/api/auth/login-as", json={"user_id": viewer.id}, headers=login("dualuser"))
        # dualuser holds 用户管理 through the editor role
        assert response.status_code == status.HTTP_200_OK

        response = client.post("/api/auth/login-as", json={"user_id": viewer.id}, headers=login("reviewer"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_login_as_cannot_reach_administrator(self, client, login, db):
        admin = user_service.get_by_name(db, settings.ADMIN_USER_NAME)
        headers = login("editor")

        response = client.post("/api/auth/login-as", json={"user_id": admin.id}, headers=headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert perms.ADD_ROLE in response.json()["detail"]
        role = client.post("/api/roles", json={"name": "越权", "permissions": []}, headers=headers)
        assert role.status_code == status.HTTP_403_FORBIDDEN

    def test_login_as_unknown_user(self, client, admin_headers):
        response = client.post("/api/auth/login-as", json={"user_id": 999}, headers=admin_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestPermissionGuards:
    """Every capability is checked server-side with its own permission."""

    def test_viewer_can_list_but_not_add_users(self, client, login):
        headers = login("viewer")

        assert client.get("/api/users", headers=headers).status_code == status.HTTP_200_OK
        response = client.post(
            "/api/users", json={"name": "x1", "password": "secret1", "role_ids": []}, headers=headers
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert perms.ADD_USER in response.json()["detail"]

    def test_editor_cannot_list_roles(self, client, login):
        response = client.get("/api/roles", headers=login("editor"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_user_admin_does_not_imply_delete(self, client, login, db):
        # editor holds 用户管理 but not 删除用户
        viewer = user_service.get_by_name(db, "viewer")
        response = client.delete(f"/api/users/{viewer.id}", headers=login("editor"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_role_union_across_assignments(self, client, login):
        headers = login("dualuser")
        assert client.get("/api/users", headers=headers).status_code == status.HTTP_200_OK
        response = client.post(
            "/api/users", json={"name": "made-by-dual", "password": "secret1", "role_ids": []}, headers=headers
        )
        assert response.status_code == status.HTTP_201_CREATED

    def test_audit_log_requires_permission(self, client, login):
        assert client.get("/api/admin/audit", headers=login("viewer")).status_code == status.HTTP_403_FORBIDDEN

    def test_permission_catalogue_readable_by_anyone_signed_in(self, client, login):
        response = client.get("/api/permissions", headers=login("reviewer"))
        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()) == len(perms.PERMISSION_CATALOGUE)

    def test_health_is_public(self, client):
        assert client.get("/api/health").json() == {"status": "ok", "database": "ok"}


class TestRoleEndpoints:
    """Role administration through the API."""

    def test_create_update_delete_role(self, client, admin_headers):
        created = client.post(
            "/api/roles", json={"name": "运营", "permissions": [perms.QUERY_USER]}, headers=admin_headers
        )
        assert created.status_code == status.HTTP_201_CREATED
        role_id = created.json()["id"]

        updated = client.put(
            f"/api/roles/{role_id}",
            json={"name": "运营", "permissions": [perms.BUSINESS_ADMIN, perms.AUDIT_LOG]},
            headers=admin_headers,
        )
        assert updated.json()["permissions"] == [perms.BUSINESS_ADMIN, perms.AUDIT_LOG]

        deleted = client.delete(f"/api/roles/{role_id}", headers=admin_headers)
        assert deleted.status_code == status.HTTP_200_OK
        assert client.get(f"/api/roles/{role_id}", headers=admin_headers).status_code == status.HTTP_404_NOT_FOUND

    def test_admin_role_protected(self, client, admin_headers, db):
        admin_role = role_service.get_by_name(db, settings.ADMIN_ROLE_NAME)

        response = client.delete(f"/api/roles/{admin_role.id}", headers=admin_headers)
        assert response.status_code == status.HTTP_409_CONFLICT

        response = client.put(
            f"/api/roles/{admin_role.id}",
            json={"name": admin_role.name, "permissions": [perms.QUERY_USER]},
            headers=admin_headers,
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unknown_permission_is_bad_request(self, client, admin_headers):
        response = client.post(
            "/api/roles", json={"name": "坏角色", "permissions": ["不存在"]}, headers=admin_headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_roles_list_flags_admin(self, client, admin_headers):
        roles = client.get("/api/roles", headers=admin_headers).json()
        flagged = [role["name"] for role in roles if role["is_admin"]]
        assert flagged == [settings.ADMIN_ROLE_NAME]

    def test_role_change_is_audited(self, client, admin_headers, db):
        role = role_service.get_by_name(db, "访客")
        client.put(
            f"/api/roles/{role.id}", json={"name": "访客", "permissions": []}, headers=admin_headers
        )

        history = client.get("/api/admin/audit", params={"target_type": "role"}, headers=admin_headers).json()
        latest = history["events"][0]
        assert latest["event"] == "role.updated"
        assert latest["revoked"] == sorted([perms.QUERY_USER, perms.QUERY_ROLE])
        assert latest["granted"] == []


class TestUserEndpoints:
    """User administration through the API."""

    def test_assign_roles_sets_primary(self, client, admin_headers, db):
        viewer = user_service.get_by_name(db, "viewer")
        editor_role = role_service.get_by_name(db, "编辑")
        viewer_role = role_service.get_by_name(db, "访客")

        response = client.put(
            f"/api/users/{viewer.id}/roles",
            json={"role_ids": [editor_role.id, viewer_role.id]},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["primary_role"] == "编辑"

    def test_cannot_delete_self(self, client, admin_headers, db):
        admin = user_service.get_by_name(db, settings.ADMIN_USER_NAME)
        response = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_duplicate_user_conflict(self, client, admin_headers):
        response = client.post(
            "/api/users", json={"name": "viewer", "password": "secret1", "role_ids": []}, headers=admin_headers
        )
        assert response.status_code == status.HTTP_409_CONFLICT


class TestPermissionEndpoints:
    """Permission tree maintenance."""

    def test_tree(self, client, login):
        tree = client.get("/api/permissions/tree", headers=login("viewer")).json()
        assert [node["name"] for node in tree] == [perms.SYSTEM_ADMIN, perms.BUSINESS_ADMIN, perms.BUSINESS_AUDIT]
        assert tree[0]["children"][0]["name"] == perms.USER_ADMIN

    def test_create_requires_permission_admin(self, client, login):
        response = client.post("/api/permissions", json={"name": "新权限"}, headers=login("dualuser"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_new_permission_reaches_admin(self, client, admin_headers):
        created = client.post("/api/permissions", json={"name": "新权限"}, headers=admin_headers)
        assert created.status_code == status.HTTP_201_CREATED

        me = client.get("/api/auth/me", headers=admin_headers).json()
        assert "新权限" in me["permissions"]

    def test_delete_parent_conflict(self, client, admin_headers):
        catalogue = client.get("/api/permissions", headers=admin_headers).json()
        parent = next(item for item in catalogue if item["name"] == perms.SYSTEM_ADMIN)
        response = client.delete(f"/api/permissions/{parent['id']}", headers=admin_headers)
        assert response.status_code == status.HTTP_409_CONFLICT


class TestMenuEndpoints:
    """Server-resolved menus."""

    def test_admin_sees_full_menu(self, client, admin_headers):
        menu = client.get("/api/menu", headers=admin_headers).json()
        assert [node["id"] for node in menu] == ["dashboard", "system", "business", "audit", "demo"]

    def test_local_hides_apply(self, client, admin_headers):
        menu = client.get("/api/menu", params={"hidden": ["system", "demo"]}, headers=admin_headers).json()
        assert [node["id"] for node in menu] == ["dashboard", "business", "audit"]

    def test_editor_menu(self, client, login):
        menu = client.get("/api/menu", headers=login("editor")).json()
        system = next(node for node in menu if node["id"] == "system")
        assert [child["id"] for child in system["children"]] == ["users"]
        assert "audit" not in [node["id"] for node in menu]

    def test_catalog_is_unfiltered(self, client, login):
        catalog = client.get("/api/menu/catalog", headers=login("viewer")).json()
        business = next(node for node in catalog if node["id"] == "business")
        assert len(business["children"]) == 7
        assert business["children"][0]["required_permission"] == perms.BUSINESS_ADMIN


class TestAccessHistory:
    """Sign-ins and grant changes recorded for the audit view."""

    def history(self, client, headers, **params):
        response = client.get("/api/admin/audit", params=params, headers=headers)
        assert response.status_code == status.HTTP_200_OK, response.text
        return response.json()

    def test_failed_login_names_the_attempt(self, client, admin_headers):
        client.post("/api/auth/login", json={"name": "dualuser", "password": "wrong"})

        events = self.history(client, admin_headers, event="login.failed")["events"]
        assert len(events) == 1
        assert events[0]["target_name"] == "dualuser"
        assert events[0]["actor_name"] is None

    def test_user_role_change_lists_role_names(self, client, admin_headers, db):
        viewer = user_service.get_by_name(db, "viewer")
        reviewer_role = role_service.get_by_name(db, "审核员")
        client.put(f"/api/users/{viewer.id}/roles", json={"role_ids": [reviewer_role.id]}, headers=admin_headers)

        events = self.history(client, admin_headers, event="user.roles_changed", target="viewer")["events"]
        assert events[0]["granted"] == ["审核员"]
        assert events[0]["revoked"] == ["访客"]
        assert events[0]["actor_name"] == settings.ADMIN_USER_NAME

    def test_actions_while_impersonating_keep_the_real_actor(self, client, admin_headers, db):
        viewer = user_service.get_by_name(db, "viewer")
        acting = client.post("/api/auth/login-as", json={"user_id": viewer.id}, headers=admin_headers).json()
        client.post("/api/auth/logout", headers={"Authorization": f"Bearer {acting['access_token']}"})

        history = self.history(client, admin_headers, actor="viewer", event="logout")
        assert history["events"][0]["impersonator_id"] == acting["session"]["impersonator_id"]
        assert self.history(client, admin_headers, event="login_as")["events"][0]["target_name"] == "viewer"

    def test_permission_move_records_parents(self, client, admin_headers):
        catalogue = client.get("/api/permissions", headers=admin_headers).json()
        by_name = {item["name"]: item["id"] for item in catalogue}
        client.put(
            f"/api/permissions/{by_name[perms.PARAM_ADMIN]}/parent",
            json={"parent_id": by_name[perms.BUSINESS_ADMIN]},
            headers=admin_headers,
        )

        event = self.history(client, admin_headers, event="permission.moved")["events"][0]
        assert event["target_name"] == perms.PARAM_ADMIN
        assert event["revoked"] == [perms.SYSTEM_ADMIN]
        assert event["granted"] == [perms.BUSINESS_ADMIN]

    def test_unknown_event_filter_is_rejected(self, client, admin_headers):
        response = client.get("/api/admin/audit", params={"event": "nope"}, headers=admin_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_api_calls_are_logged_with_their_user(self, client, login, caplog):
        headers = login("viewer")
        caplog.set_level(logging.INFO, logger="rbac_console.http")

        ok = client.get("/api/users", headers=headers)
        denied = client.post("/api/roles", json={"name": "x", "permissions": []}, headers=headers)

        assert ok.headers["cache-control"] == "no-store"
        assert denied.status_code == status.HTTP_403_FORBIDDEN
        lines = [(record.levelno, record.getMessage()) for record in caplog.records if record.name == "rbac_console.http"]
        assert any(level == logging.INFO and "GET /api/users 200" in msg and "user=viewer" in msg for level, msg in lines)
        assert any(level == logging.WARNING and "POST /api/roles 403" in msg for level, msg in lines)
