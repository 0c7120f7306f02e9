from __future__ import annotations

from typing import Final, Literal

Role = Literal["admin", "researcher", "data-entry"]
Permission = Literal[
    "access_admin_view",
    "manage_users",
    "manage_centers",
    "view_all_centers",
    "pick_center",
    "enter_patient_data",
]

_ROLE_PERMISSIONS: Final[dict[Role, frozenset[Permission]]] = {
    "admin": frozenset(
        {
            "access_admin_view",
            "manage_users",
            "manage_centers",
            "view_all_centers",
            "pick_center",
            "enter_patient_data",
        }
    ),
    "researcher": frozenset({"enter_patient_data"}),
    "data-entry": frozenset({"enter_patient_data"}),
}

_NAVIGATION: Final[tuple[tuple[str, str, frozenset[Role]], ...]] = (
    ("dashboard", "Dashboard", frozenset({"admin", "researcher", "data-entry"})),
    ("patients", "Patients", frozenset({"admin", "researcher", "data-entry"})),
    ("add_patient", "Add Patient", frozenset({"admin", "researcher", "data-entry"})),
    ("drafts", "Drafts", frozenset({"admin", "researcher", "data-entry"})),
    ("users", "Users", frozenset({"admin"})),
    ("centers", "Centers", frozenset({"admin"})),
)


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in _ROLE_PERMISSIONS[role]


def can_access_admin_view(role: Role) -> bool:
    return has_permission(role, "access_admin_view")


def can_manage_users(role: Role) -> bool:
    return has_permission(role, "manage_users")


def can_manage_centers(role: Role) -> bool:
    return has_permission(role, "manage_centers")


def can_view_all_centers(role: Role) -> bool:
    return has_permission(role, "view_all_centers")


def can_pick_center(role: Role) -> bool:
    return has_permission(role, "pick_center")


def navigation_for(role: Role) -> list[tuple[str, str]]:
    """Sidebar entries (page, title) visible to the role, in display order."""
    return [(page, title) for page, title, roles in _NAVIGATION if role in roles]


def resolve_page(role: Role, requested: str) -> str:
    """Pages outside the role's navigation fall back to the dashboard."""
    allowed = {page for page, _title in navigation_for(role)}
    return requested if requested in allowed else "dashboard"
