"""The application's static navigation tree.

Changing this structure requires a redeploy; at runtime only visibility
(permission grants and local hides) varies.
"""

from rbac_console.authz import permissions as perms
from rbac_console.authz.model import MenuNode

SYSTEM_MENU = (
    MenuNode(id="dashboard", label="首页概览", path="/"),
    MenuNode(
        id="system",
        label="系统管理",
        children=(
            MenuNode(id="users", label="用户管理", path="/users", required_permission=perms.USER_ADMIN),
            MenuNode(id="role", label="角色管理", path="/roles", required_permission=perms.ROLE_ADMIN),
            MenuNode(
                id="permission",
                label="菜单维护",
                path="/permissions",
                required_permission=perms.PERMISSION_ADMIN,
            ),
            MenuNode(id="param", label="参数管理", path="/params", required_permission=perms.PARAM_ADMIN),
            MenuNode(id="audit-log", label="审计日志", path="/audit-log", required_permission=perms.AUDIT_LOG),
        ),
    ),
    MenuNode(
        id="business",
        label="业务管理",
        children=tuple(
            MenuNode(
                id=node_id,
                label=label,
                path=f"/business/{node_id}",
                required_permission=perms.BUSINESS_ADMIN,
            )
            for node_id, label in (
                ("cert", "资质维护"),
                ("type", "分类管理"),
                ("process", "流程管理"),
                ("ads", "广告管理"),
                ("message", "消息模板"),
                ("project-type", "项目分类"),
                ("tag", "项目标签"),
            )
        ),
    ),
    # Gated at the module root; the entries below open with it.
    MenuNode(
        id="audit",
        label="业务审核",
        required_permission=perms.BUSINESS_AUDIT,
        children=(
            MenuNode(id="real-name", label="实名认证审核", path="/audit/real-name"),
            MenuNode(id="advertisement", label="广告审核", path="/audit/advertisement"),
            MenuNode(id="project", label="项目审核", path="/audit/project"),
        ),
    ),
    MenuNode(id="demo", label="操作演示", path="/demo"),
)
