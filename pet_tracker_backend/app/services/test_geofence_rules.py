# app/services/test_geofence_rules.py
"""
안전 구역 일관성 규칙 테스트

사용법: python -m pytest app/services/test_geofence_rules.py -v
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from app.models.pet import SafeZone
from app.services.geofence_rules import (
    clamp_radius, trim_to_limit, enforce_single_primary, enforce_safe_zone_rules, select_active_zone
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

def make_zone(index, **kwargs):
    defaults = dict(
        zone_id=f"zone-{index}", center_lat=10.0, center_lng=106.0,
        created_at=BASE_TIME + timedelta(minutes=index),
    )
    defaults.update(kwargs)
    return SafeZone(**defaults)

@pytest.mark.parametrize("radius, expected", [
    (5, 10), (10, 10), (50, 50), (5000, 5000), (99999, 5000), (-3, 10), (12.5, 12.5),
])
def test_clamp_radius(radius, expected):
    assert clamp_radius(radius) == expected

def test_clamp_radius_non_numeric_uses_default():
    assert clamp_radius(None) == 100
    assert clamp_radius("300") == 100
    assert clamp_radius(True) == 100

def test_single_primary_keeps_first_encountered():
    zones = [make_zone(0), make_zone(1, is_primary=True), make_zone(2, is_primary=True)]
    enforce_single_primary(zones)
    assert [z.is_primary for z in zones] == [False, True, False]

def test_single_primary_assigns_first_when_none():
    zones = [make_zone(0), make_zone(1)]
    enforce_single_primary(zones)
    assert [z.is_primary for z in zones] == [True, False]

def test_single_primary_assigns_earliest_created_not_array_head():
    # 배열 순서와 생성 순서가 반대인 경우
    zones = [make_zone(2), make_zone(0), make_zone(1)]
    enforce_single_primary(zones)
    assert [z.zone_id for z in zones if z.is_primary] == ["zone-0"]

def test_primary_lost_to_trim_moves_to_oldest_survivor():
    zones = [make_zone(i) for i in reversed(range(32))]
    zones[-1].is_primary = True  # zone-0, 정리 대상

    result = enforce_safe_zone_rules(zones, hard_limit=30)

    assert [z.zone_id for z in result if z.is_primary] == ["zone-2"]

def test_single_primary_empty_list():
    assert enforce_single_primary([]) == []

def test_trim_keeps_newest_in_original_order():
    # 생성 순서와 배열 순서가 다르도록 섞음
    zones = [make_zone(i) for i in range(35)]
    random.Random(7).shuffle(zones)

    trimmed = trim_to_limit(zones, 30)

    assert len(trimmed) == 30
    assert {z.zone_id for z in trimmed} == {f"zone-{i}" for i in range(5, 35)}
    original_order = [z.zone_id for z in zones if z in trimmed]
    assert [z.zone_id for z in trimmed] == original_order

def test_trim_under_limit_is_noop():
    zones = [make_zone(i) for i in range(3)]
    assert trim_to_limit(zones, 30) == zones

def test_rules_keep_primary_through_trim():
    zones = [make_zone(i) for i in range(31)]
    zones[30].is_primary = True

    result = enforce_safe_zone_rules(zones, warn_threshold=20, hard_limit=30)

    assert len(result) == 30
    assert "zone-0" not in {z.zone_id for z in result}
    assert [z.zone_id for z in result if z.is_primary] == ["zone-30"]

def test_rules_warn_threshold_does_not_discard(caplog):
    zones = [make_zone(i) for i in range(25)]
    result = enforce_safe_zone_rules(zones, warn_threshold=20, hard_limit=30, pet_id="pet-1")
    assert len(result) == 25
    assert "warning threshold" in caplog.text

def test_rules_invariants_over_random_mutations():
    rng = random.Random(42)
    zones = []
    for step in range(80):
        action = rng.choice(['add', 'add', 'remove', 'primary'])
        if action == 'add':
            zones.append(make_zone(step, radius=rng.uniform(-100, 9000), is_primary=rng.random() < 0.3))
        elif action == 'remove' and zones:
            zones.pop(rng.randrange(len(zones)))
        elif zones:
            rng.choice(zones).is_primary = True

        zones = enforce_safe_zone_rules(zones, hard_limit=30)

        assert len(zones) <= 30
        assert all(10 <= z.radius <= 5000 for z in zones)
        if zones:
            assert sum(z.is_primary for z in zones) == 1

def test_select_active_zone_priority():
    active_primary = make_zone(0, is_active=True, is_primary=True)
    active = make_zone(1, is_active=True)
    inactive_primary = make_zone(2, is_active=False, is_primary=True)
    inactive = make_zone(3, is_active=False)

    assert select_active_zone([active, inactive_primary, active_primary]) is active_primary
    assert select_active_zone([inactive_primary, active]) is active
    assert select_active_zone([inactive, inactive_primary]) is inactive_primary
    assert select_active_zone([inactive, make_zone(4, is_active=False)]) is inactive
    assert select_active_zone([]) is None
