from nidipo.application.security.role_matrix import (
    Permission,
    Role,
    can_access_admin_view,
    can_manage_centers,
    can_manage_users,
    can_pick_center,
    can_view_all_centers,
    has_permission,
    navigation_for,
    resolve_page,
)

__all__ = [
    "Permission",
    "Role",
    "can_access_admin_view",
    "can_manage_centers",
    "can_manage_users",
    "can_pick_center",
    "can_view_all_centers",
    "has_permission",
    "navigation_for",
    "resolve_page",
]
