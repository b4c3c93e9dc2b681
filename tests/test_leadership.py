# tests/test_leadership.py
from __future__ import annotations

import uuid
from types import SimpleNamespace

from communiserver.domain import leadership
from communiserver.domain.leadership import LocationLevel


def _profile(**kw):
    base = dict(
        is_cell_leader=False,
        is_village_leader=False,
        is_isibo_leader=False,
        cell_id=None,
        village_id=None,
        isibo_id=None,
    )
    base.update(kw)
    return SimpleNamespace(**base)


def test_flag_without_reference_is_not_a_position():
    p = _profile(is_village_leader=True)
    assert leadership.assignments(p) == []


def test_assign_and_clear_keep_pair_in_sync():
    p = _profile()
    vid = uuid.uuid4()
    leadership.assign(p, LocationLevel.VILLAGE, vid)
    assert leadership.holds(p, LocationLevel.VILLAGE, vid)
    leadership.clear(p, LocationLevel.VILLAGE)
    assert not leadership.holds(p, LocationLevel.VILLAGE, vid)
    # still lives there
    assert p.village_id == vid


def test_effective_role_picks_most_senior_position():
    p = _profile()
    leadership.assign(p, LocationLevel.ISIBO, uuid.uuid4())
    leadership.assign(p, LocationLevel.CELL, uuid.uuid4())
    assert leadership.effective_role(p, "CITIZEN") == "CELL_LEADER"

    leadership.clear(p, LocationLevel.CELL)
    assert leadership.effective_role(p, "CELL_LEADER") == "ISIBO_LEADER"

    leadership.clear(p, LocationLevel.ISIBO)
    assert leadership.effective_role(p, "ISIBO_LEADER") == "CITIZEN"


def test_admin_role_is_never_changed():
    p = _profile()
    leadership.assign(p, LocationLevel.ISIBO, uuid.uuid4())
    assert leadership.effective_role(p, "ADMIN") == "ADMIN"


def test_house_representative_kept_without_positions():
    assert leadership.effective_role(_profile(), "HOUSE_REPRESENTATIVE") == "HOUSE_REPRESENTATIVE"
