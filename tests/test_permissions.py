# tests/test_permissions.py
from __future__ import annotations

import pytest

from communiserver.domain.permissions import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    build_role_permissions,
    get_permissions_for_role,
    has_permission,
)


def test_admin_holds_every_permission():
    assert get_permissions_for_role("ADMIN") == frozenset(Permission)


def test_new_permission_reaches_admin_only():
    # a table built from a wider enum grants the extra member to ADMIN and nobody else
    from enum import Enum

    Wider = Enum("Wider", {p.name: p.value for p in Permission} | {"EXPORT_EVERYTHING": "EXPORT_EVERYTHING"}, type=str)
    table = build_role_permissions(permissions=Wider)
    assert Wider.EXPORT_EVERYTHING in table[Role.ADMIN]
    for role, perms in table.items():
        if role is not Role.ADMIN:
            assert Wider.EXPORT_EVERYTHING not in perms


def test_unknown_role_fails_closed():
    assert get_permissions_for_role("MAYOR") == frozenset()
    assert get_permissions_for_role(None) == frozenset()
    assert has_permission("MAYOR", Permission.VIEW_PROFILE) is False


def test_role_lookup_is_case_insensitive():
    assert get_permissions_for_role("village_leader") == ROLE_PERMISSIONS[Role.VILLAGE_LEADER]


def test_unknown_permission_is_denied():
    assert has_permission("ADMIN", "NOT_A_PERMISSION") is False


def test_leader_tables():
    assert has_permission("VILLAGE_LEADER", Permission.CREATE_ACTIVITY)
    assert has_permission("ISIBO_LEADER", Permission.ADD_TASK_REPORT)
    assert not has_permission("CITIZEN", Permission.CREATE_ACTIVITY)
    assert not has_permission("ISIBO_LEADER", Permission.VIEW_CELL_ANALYTICS)
    assert get_permissions_for_role("CITIZEN") == frozenset({Permission.VIEW_NOTIFICATIONS, Permission.VIEW_PROFILE})


def test_table_is_read_only():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS[Role.CITIZEN] = frozenset(Permission)  # type: ignore[index]
