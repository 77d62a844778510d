"""Canonical permission names and the seeded permission catalogue.

Each capability has exactly one permission name. Names are opaque: holding
``用户管理`` does not imply ``查询用户``.
"""

from typing import Optional, Tuple

SYSTEM_ADMIN = "系统管理"

USER_ADMIN = "用户管理"
QUERY_USER = "查询用户"
ADD_USER = "添加用户"
MODIFY_USER = "修改用户"
DELETE_USER = "删除用户"

ROLE_ADMIN = "角色管理"
QUERY_ROLE = "查询角色"
ADD_ROLE = "添加角色"
MODIFY_ROLE = "修改角色"
DELETE_ROLE = "删除角色"

PERMISSION_ADMIN = "权限管理"
PARAM_ADMIN = "参数管理"
AUDIT_LOG = "审计日志"

BUSINESS_ADMIN = "业务管理"
BUSINESS_AUDIT = "业务审核"

# (name, parent name) in insertion order; parents precede their children.
PERMISSION_CATALOGUE: Tuple[Tuple[str, Optional[str]], ...] = (
    (SYSTEM_ADMIN, None),
    (USER_ADMIN, SYSTEM_ADMIN),
    (QUERY_USER, USER_ADMIN),
    (ADD_USER, USER_ADMIN),
    (MODIFY_USER, USER_ADMIN),
    (DELETE_USER, USER_ADMIN),
    (ROLE_ADMIN, SYSTEM_ADMIN),
    (QUERY_ROLE, ROLE_ADMIN),
    (ADD_ROLE, ROLE_ADMIN),
    (MODIFY_ROLE, ROLE_ADMIN),
    (DELETE_ROLE, ROLE_ADMIN),
    (PERMISSION_ADMIN, SYSTEM_ADMIN),
    (PARAM_ADMIN, SYSTEM_ADMIN),
    (AUDIT_LOG, SYSTEM_ADMIN),
    (BUSINESS_ADMIN, None),
    (BUSINESS_AUDIT, None),
)
