# communiserver/domain/permissions.py
"""
Static role -> permission table.

Lookups upper-case the role and fail closed: an unknown role gets an empty set.
ADMIN is never listed by hand; its set is every declared Permission, so a new
enum member is granted to ADMIN automatically and to nobody else until it is
added to their list below.
"""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Role(str, Enum):
    ADMIN = "ADMIN"
    CELL_LEADER = "CELL_LEADER"
    VILLAGE_LEADER = "VILLAGE_LEADER"
    ISIBO_LEADER = "ISIBO_LEADER"
    HOUSE_REPRESENTATIVE = "HOUSE_REPRESENTATIVE"
    CITIZEN = "CITIZEN"


class Permission(str, Enum):
    # Global
    VIEW_NOTIFICATIONS = "VIEW_NOTIFICATIONS"

    # Admin
    ASSIGN_CELL_LEADERS = "ASSIGN_CELL_LEADERS"
    DEASSIGN_CELL_LEADERS = "DEASSIGN_CELL_LEADERS"
    CREATE_CELL_LEADER = "CREATE_CELL_LEADER"
    CREATE_CELL = "CREATE_CELL"
    UPDATE_CELL = "UPDATE_CELL"
    DELETE_CELL = "DELETE_CELL"
    VIEW_ALL_CELLS = "VIEW_ALL_CELLS"
    MANAGE_LOCATIONS = "MANAGE_LOCATIONS"
    MANAGE_SETTINGS = "MANAGE_SETTINGS"
    VIEW_ALL_USERS = "VIEW_ALL_USERS"

    # Cell leader
    VIEW_CELL = "VIEW_CELL"
    ASSIGN_VILLAGE_LEADERS = "ASSIGN_VILLAGE_LEADERS"
    DEASSIGN_VILLAGE_LEADERS = "DEASSIGN_VILLAGE_LEADERS"
    VIEW_CELL_ANALYTICS = "VIEW_CELL_ANALYTICS"
    CREATE_VILLAGE_LEADER = "CREATE_VILLAGE_LEADER"
    VIEW_CELL_ACTIVITY = "VIEW_CELL_ACTIVITY"
    CREATE_VILLAGE = "CREATE_VILLAGE"
    UPDATE_VILLAGE = "UPDATE_VILLAGE"
    DELETE_VILLAGE = "DELETE_VILLAGE"
    VIEW_ALL_VILLAGES = "VIEW_ALL_VILLAGES"

    # Village leader
    VIEW_VILLAGE = "VIEW_VILLAGE"
    ASSIGN_ISIBO_LEADERS = "ASSIGN_ISIBO_LEADERS"
    DEASSIGN_ISIBO_LEADERS = "DEASSIGN_ISIBO_LEADERS"
    VIEW_VILLAGE_ANALYTICS = "VIEW_VILLAGE_ANALYTICS"
    CREATE_ISIBO = "CREATE_ISIBO"
    UPDATE_ISIBO = "UPDATE_ISIBO"
    DELETE_ISIBO = "DELETE_ISIBO"
    CREATE_ISIBO_LEADER = "CREATE_ISIBO_LEADER"
    CREATE_ACTIVITY = "CREATE_ACTIVITY"
    UPDATE_ACTIVITY = "UPDATE_ACTIVITY"
    ADD_ACTIVITY_REPORT = "ADD_ACTIVITY_REPORT"

    # Isibo leader
    VIEW_ISIBO = "VIEW_ISIBO"
    ASSIGN_HOUSE_REPRESENTATIVES = "ASSIGN_HOUSE_REPRESENTATIVES"
    DEASSIGN_HOUSE_REPRESENTATIVES = "DEASSIGN_HOUSE_REPRESENTATIVES"
    VIEW_ISIBO_ANALYTICS = "VIEW_ISIBO_ANALYTICS"
    CREATE_HOUSE = "CREATE_HOUSE"
    UPDATE_HOUSE = "UPDATE_HOUSE"
    DELETE_HOUSE = "DELETE_HOUSE"
    ADD_CITIZENS = "ADD_CITIZENS"
    ASSIGN_CITIZENS_TO_HOUSE = "ASSIGN_CITIZENS_TO_HOUSE"
    VIEW_VILLAGE_ACTIVITY = "VIEW_VILLAGE_ACTIVITY"
    ADD_TASK_REPORT = "ADD_TASK_REPORT"
    TAKE_ATTENDANCE = "TAKE_ATTENDANCE"

    # House representative
    VIEW_HOUSE = "VIEW_HOUSE"

    # Citizen
    VIEW_PROFILE = "VIEW_PROFILE"


_GLOBAL = (Permission.VIEW_NOTIFICATIONS, Permission.VIEW_PROFILE)

_EXPLICIT: dict[Role, tuple[Permission, ...]] = {
    Role.CELL_LEADER: _GLOBAL
    + (
        Permission.VIEW_CELL,
        Permission.ASSIGN_VILLAGE_LEADERS,
        Permission.DEASSIGN_VILLAGE_LEADERS,
        Permission.VIEW_CELL_ANALYTICS,
        Permission.CREATE_VILLAGE_LEADER,
        Permission.VIEW_CELL_ACTIVITY,
        Permission.CREATE_VILLAGE,
        Permission.UPDATE_VILLAGE,
        Permission.DELETE_VILLAGE,
        Permission.VIEW_ALL_VILLAGES,
    ),
    Role.VILLAGE_LEADER: _GLOBAL
    + (
        Permission.VIEW_VILLAGE,
        Permission.ASSIGN_ISIBO_LEADERS,
        Permission.DEASSIGN_ISIBO_LEADERS,
        Permission.VIEW_VILLAGE_ANALYTICS,
        Permission.CREATE_ISIBO,
        Permission.UPDATE_ISIBO,
        Permission.DELETE_ISIBO,
        Permission.CREATE_ISIBO_LEADER,
        Permission.CREATE_ACTIVITY,
        Permission.UPDATE_ACTIVITY,
        Permission.ADD_ACTIVITY_REPORT,
    ),
    Role.ISIBO_LEADER: _GLOBAL
    + (
        Permission.VIEW_ISIBO,
        Permission.ASSIGN_HOUSE_REPRESENTATIVES,
        Permission.DEASSIGN_HOUSE_REPRESENTATIVES,
        Permission.VIEW_ISIBO_ANALYTICS,
        Permission.CREATE_HOUSE,
        Permission.UPDATE_HOUSE,
        Permission.DELETE_HOUSE,
        Permission.ADD_CITIZENS,
        Permission.ASSIGN_CITIZENS_TO_HOUSE,
        Permission.VIEW_VILLAGE_ACTIVITY,
        Permission.ADD_TASK_REPORT,
        Permission.TAKE_ATTENDANCE,
    ),
    Role.HOUSE_REPRESENTATIVE: _GLOBAL + (Permission.VIEW_HOUSE,),
    Role.CITIZEN: _GLOBAL,
}


def build_role_permissions(
    permissions: type[Permission] = Permission,
    explicit: Mapping[Role, tuple[Permission, ...]] = _EXPLICIT,
) -> Mapping[Role, frozenset[Permission]]:
    """Derive the full table; ADMIN gets every member of `permissions`."""
    table: dict[Role, frozenset[Permission]] = {Role.ADMIN: frozenset(permissions)}
    for role, perms in explicit.items():
        table[role] = frozenset(perms)
    return MappingProxyType(table)


ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = build_role_permissions()


def parse_role(role: str | None) -> Role | None:
    if not role:
        return None
    try:
        return Role(str(role).strip().upper())
    except ValueError:
        return None


def get_permissions_for_role(role: str | None) -> frozenset[Permission]:
    r = parse_role(role)
    if r is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(r, frozenset())


def has_permission(role: str | None, permission: Permission | str) -> bool:
    try:
        perm = Permission(permission)
    except ValueError:
        return False
    return perm in get_permissions_for_role(role)
