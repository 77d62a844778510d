"""Integration tests for the role, user, permission and auth services on SQLite."""

import pytest

from rbac_console.authz import permissions as perms
from rbac_console.core.config import settings
from rbac_console.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ProtectedRoleError,
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rbac_console.models.permission import Permission
from rbac_console.models.role import RolePermission
from rbac_console.models.user import UserRole
from rbac_console.services.audit_service import audit_service, grant_delta
from rbac_console.services.auth_service import auth_service
from rbac_console.services.menu_service import menu_service
from rbac_console.services.permission_service import permission_service
from rbac_console.services.role_service import role_service
from rbac_console.services.user_service import user_service

CATALOGUE_SIZE = len(perms.PERMISSION_CATALOGUE)


def admin_role(db):
    return role_service.get_by_name(db, settings.ADMIN_ROLE_NAME)


class TestSeeds:
    """Seeded state."""

    def test_admin_holds_full_catalogue(self, db):
        assert sorted(admin_role(db).permission_names) == sorted(
            name for name, _ in perms.PERMISSION_CATALOGUE
        )

    def test_dual_user_roles_in_order(self, db):
        user = user_service.get_by_name(db, "dualuser")
        assert user.role_names == ["访客", "编辑"]

    def test_seeding_twice_is_harmless(self, db):
        from rbac_console.db.seeds.seed_permissions import seed_permissions
        from rbac_console.db.seeds.seed_roles import seed_roles

        seed_permissions(db)
        seed_roles(db)
        assert db.query(Permission).count() == CATALOGUE_SIZE
        assert len(role_service.list_roles(db)) == 4


class TestRoleService:
    """Role CRUD and the administrator role protection."""

    def test_create_with_permissions(self, db):
        role = role_service.create(db, "运营", [perms.QUERY_USER, perms.BUSINESS_ADMIN])
        assert role.permission_names == [perms.QUERY_USER, perms.BUSINESS_ADMIN]

    def test_duplicate_name(self, db):
        with pytest.raises(ResourceConflictError):
            role_service.create(db, "编辑", [])

    def test_unknown_permission_rejected(self, db):
        with pytest.raises(ValidationError, match="不存在"):
            role_service.create(db, "坏角色", [perms.QUERY_USER, "不存在"])
        assert role_service.get_by_name(db, "坏角色") is None

    def test_update_replaces_whole_set(self, db):
        role = role_service.get_by_name(db, "访客")
        updated = role_service.update(db, role.id, "访客", [perms.AUDIT_LOG])

        assert updated.permission_names == [perms.AUDIT_LOG]
        assert db.query(RolePermission).filter(RolePermission.role_id == role.id).count() == 1

    def test_update_to_empty_set(self, db):
        role = role_service.get_by_name(db, "访客")
        assert role_service.update(db, role.id, "只读", []).permission_names == []

    def test_admin_cannot_be_deleted(self, db):
        with pytest.raises(ProtectedRoleError):
            role_service.delete(db, admin_role(db).id)

    def test_admin_cannot_be_renamed(self, db):
        role = admin_role(db)
        with pytest.raises(ProtectedRoleError):
            role_service.update(db, role.id, "超级用户", role.permission_names)

    def test_admin_cannot_lose_permissions(self, db):
        role = admin_role(db)
        with pytest.raises(ProtectedRoleError):
            role_service.update(db, role.id, role.name, [perms.QUERY_USER])
        db.expire_all()
        assert len(admin_role(db).permission_names) == CATALOGUE_SIZE

    def test_delete_role_removes_assignments(self, db):
        role = role_service.get_by_name(db, "编辑")
        role_service.delete(db, role.id)
        db.expire_all()

        assert db.query(UserRole).filter(UserRole.role_id == role.id).count() == 0
        assert user_service.get_by_name(db, "dualuser").role_names == ["访客"]

    def test_missing_role(self, db):
        with pytest.raises(ResourceNotFoundError):
            role_service.get(db, 999)

    def test_ensure_admin_integrity_restores_grants(self, db):
        role = admin_role(db)
        role.permission_links.pop()
        db.commit()

        restored = role_service.ensure_admin_integrity(db)
        assert len(restored.permission_names) == CATALOGUE_SIZE

    def test_ensure_admin_integrity_creates_role(self, empty_db):
        from rbac_console.db.seeds.seed_permissions import seed_permissions

        seed_permissions(empty_db)
        role = role_service.ensure_admin_integrity(empty_db)
        assert role.name == settings.ADMIN_ROLE_NAME
        assert len(role.permission_names) == CATALOGUE_SIZE


class TestUserService:
    """User CRUD and role assignment."""

    def test_create_user_with_ordered_roles(self, db):
        viewer = role_service.get_by_name(db, "访客")
        editor = role_service.get_by_name(db, "编辑")
        user = user_service.create(db, "newbie", "secret1", [editor.id, viewer.id, editor.id])
        assert user.role_ids == [editor.id, viewer.id]

    def test_unknown_role_id(self, db):
        with pytest.raises(ValidationError):
            user_service.create(db, "newbie", "secret1", [999])

    def test_duplicate_user(self, db):
        with pytest.raises(ResourceConflictError):
            user_service.create(db, "viewer", "secret1")

    def test_replace_roles(self, db):
        user = user_service.get_by_name(db, "dualuser")
        editor = role_service.get_by_name(db, "编辑")
        updated = user_service.replace_roles(db, user.id, [editor.id])
        assert updated.role_names == ["编辑"]

    def test_replace_roles_with_nothing(self, db):
        user = user_service.get_by_name(db, "viewer")
        assert user_service.replace_roles(db, user.id, []).role_ids == []

    def test_cannot_delete_self(self, db):
        user = user_service.get_by_name(db, "viewer")
        with pytest.raises(ValidationError):
            user_service.delete(db, user.id, actor_id=user.id)

    def test_delete_user(self, db):
        user = user_service.get_by_name(db, "viewer")
        user_service.delete(db, user.id)
        assert user_service.get_by_name(db, "viewer") is None


class TestPermissionService:
    """Tree maintenance."""

    def test_new_permission_granted_to_admin(self, db):
        parent = db.query(Permission).filter(Permission.name == perms.SYSTEM_ADMIN).first()
        permission_service.create(db, "导出数据", parent.id)
        db.expire_all()
        assert "导出数据" in admin_role(db).permission_names

    def test_duplicate_permission(self, db):
        with pytest.raises(ResourceConflictError):
            permission_service.create(db, perms.QUERY_USER)

    def test_cannot_delete_parent(self, db):
        parent = db.query(Permission).filter(Permission.name == perms.USER_ADMIN).first()
        with pytest.raises(ResourceConflictError):
            permission_service.delete(db, parent.id)

    def test_delete_leaf_removes_grants(self, db):
        leaf = db.query(Permission).filter(Permission.name == perms.DELETE_USER).first()
        permission_service.delete(db, leaf.id)
        db.expire_all()

        assert perms.DELETE_USER not in admin_role(db).permission_names
        assert db.query(RolePermission).filter(RolePermission.permission_id == leaf.id).count() == 0

    def test_move_rejects_cycle(self, db):
        root = db.query(Permission).filter(Permission.name == perms.SYSTEM_ADMIN).first()
        leaf = db.query(Permission).filter(Permission.name == perms.QUERY_USER).first()
        with pytest.raises(ValidationError):
            permission_service.move(db, root.id, leaf.id)

    def test_tree_shape(self, db):
        roots = permission_service.tree(db)
        assert [root.name for root in roots] == [perms.SYSTEM_ADMIN, perms.BUSINESS_ADMIN, perms.BUSINESS_AUDIT]


class TestAuthService:
    """Login and principal loading."""

    def test_authenticate(self, db):
        result = auth_service.authenticate(db, "dualuser", "password123")

        assert result["access_token"]
        assert result["session"]["primary_role"] == "访客"
        assert perms.ADD_USER in result["session"]["permissions"]

    def test_wrong_password(self, db):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(db, "dualuser", "nope")

    def test_unknown_user(self, db):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(db, "ghost", "password123")

    def test_inactive_user(self, db):
        user = user_service.get_by_name(db, "viewer")
        user_service.set_active(db, user.id, False)
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(db, "viewer", "password123")

    def test_principal_reads_current_grants(self, db):
        user = user_service.get_by_name(db, "viewer")
        role = role_service.get_by_name(db, "访客")
        role_service.update(db, role.id, "访客", [perms.AUDIT_LOG])

        principal = auth_service.load_principal(db, user.id)
        assert principal.effective_permissions == {perms.AUDIT_LOG}

    def test_login_as_carries_impersonator(self, db):
        admin = auth_service.load_principal(db, user_service.get_by_name(db, settings.ADMIN_USER_NAME).id)
        viewer = user_service.get_by_name(db, "viewer")

        result = auth_service.login_as(db, admin, viewer.id)
        assert result["session"]["user"]["name"] == "viewer"
        assert result["session"]["impersonator_id"] == admin.user_id

    def test_login_as_missing_user(self, db):
        admin = auth_service.load_principal(db, user_service.get_by_name(db, settings.ADMIN_USER_NAME).id)
        with pytest.raises(ResourceNotFoundError):
            auth_service.login_as(db, admin, 999)

    def test_login_as_refuses_target_with_more_permissions(self, db):
        editor = auth_service.load_principal(db, user_service.get_by_name(db, "editor").id)
        admin = user_service.get_by_name(db, settings.ADMIN_USER_NAME)
        viewer = user_service.get_by_name(db, "viewer")

        with pytest.raises(AuthorizationError, match=perms.DELETE_ROLE):
            auth_service.login_as(db, editor, admin.id)
        # viewer holds 查询角色, which editor lacks
        with pytest.raises(AuthorizationError, match=perms.QUERY_ROLE):
            auth_service.login_as(db, editor, viewer.id)


class TestMenuService:
    """Server-side menu resolution."""

    def test_menu_for_viewer(self, db):
        principal = auth_service.load_principal(db, user_service.get_by_name(db, "viewer").id)
        menu = menu_service.resolve(principal)
        assert [node["id"] for node in menu] == ["dashboard", "demo"]

    def test_menu_integrity_after_permission_delete(self, db):
        leaf = db.query(Permission).filter(Permission.name == perms.AUDIT_LOG).first()
        permission_service.delete(db, leaf.id)
        assert menu_service.check_integrity(db) == [("audit-log", perms.AUDIT_LOG)]


class TestAuditService:
    """Access events keep only what changed."""

    def test_grant_delta(self):
        assert grant_delta(["a", "b"], ["b", "c"]) == (["c"], ["a"])
        assert grant_delta(None, ["x"]) == (["x"], [])
        assert grant_delta(["x"], ["x"]) == ([], [])

    def test_record_and_filter(self, db):
        admin = auth_service.load_principal(db, user_service.get_by_name(db, settings.ADMIN_USER_NAME).id)
        audit_service.record(db, admin, "role.updated", 7, "访客", ["查询用户"], ["查询用户", "审计日志"])
        audit_service.record(db, None, "login.failed", target_name="ghost")

        history = audit_service.history(db, target_type="role")
        assert history["total"] == 1
        event = history["events"][0]
        assert event["actor_name"] == settings.ADMIN_USER_NAME
        assert event["granted"] == ["审计日志"]
        assert event["revoked"] == []

        assert audit_service.history(db, target="ghost")["events"][0]["event"] == "login.failed"

    def test_unknown_event(self, db):
        with pytest.raises(ValueError):
            audit_service.record(db, None, "role.renamed")
        with pytest.raises(ValidationError):
            audit_service.history(db, event="role.renamed")
