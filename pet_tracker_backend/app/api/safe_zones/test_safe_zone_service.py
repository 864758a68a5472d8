# app/api/safe_zones/test_safe_zone_service.py
"""
안전 구역 CRUD 서비스 테스트

사용법: python -m pytest app/api/safe_zones/test_safe_zone_service.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from app.api.safe_zones.services import SafeZoneService

@pytest.fixture
def on_change():
    return MagicMock()

@pytest.fixture
def service(fake_db, on_change):
    return SafeZoneService(db=fake_db, on_change=on_change, warn_threshold=20, hard_limit=30)

def zone_payload(**kwargs):
    data = {'name': 'Home', 'center': {'lat': 10.0, 'lng': 106.0}, 'radius': 50}
    data.update(kwargs)
    return data

def stored_zones(fake_db, pet_id='pet-1'):
    return fake_db.raw('pets', pet_id)['safe_zones']

def test_first_zone_is_primary_and_triggers_change(seed, service, on_change, fake_db):
    seed.linked()

    zone = service.create_zone('pet-1', 'owner-1', zone_payload())

    assert zone.is_primary is True
    assert zone.radius == 50
    zones = stored_zones(fake_db)
    assert len(zones) == 1
    assert zones[0]['center'] == {'lat': 10.0, 'lng': 106.0}
    on_change.assert_called_once_with('pet-1')

def test_radius_out_of_range_is_clamped(seed, service, fake_db):
    seed.linked()
    service.create_zone('pet-1', 'owner-1', zone_payload(radius=2))
    service.create_zone('pet-1', 'owner-1', zone_payload(radius=80000))
    assert [z['radius'] for z in stored_zones(fake_db)] == [10, 5000]

def test_new_primary_replaces_previous(seed, service, fake_db):
    seed.linked()
    first = service.create_zone('pet-1', 'owner-1', zone_payload(name='Home'))
    second = service.create_zone('pet-1', 'owner-1', zone_payload(name='Park', is_primary=True))

    primaries = [z['zone_id'] for z in stored_zones(fake_db) if z['is_primary']]
    assert primaries == [second.zone_id]
    assert first.zone_id != second.zone_id

def test_adding_beyond_hard_limit_discards_oldest(seed, service, fake_db):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    existing = [{
        'zone_id': f'zone-{i}', 'name': f'Zone {i}', 'center': {'lat': 10.0, 'lng': 106.0},
        'radius': 100, 'is_active': True, 'is_primary': i == 0, 'auto_created': True,
        'created_at': base + timedelta(hours=i), 'updated_at': base + timedelta(hours=i),
    } for i in range(30)]
    seed.user()
    seed.pet(safe_zones=existing)

    new_zone = service.create_zone('pet-1', 'owner-1', zone_payload())

    zones = stored_zones(fake_db)
    zone_ids = {z['zone_id'] for z in zones}
    assert len(zones) == 30
    assert new_zone.zone_id in zone_ids
    assert 'zone-0' not in zone_ids
    assert 'zone-1' in zone_ids
    assert sum(z['is_primary'] for z in zones) == 1

def test_update_merges_center_and_sets_primary(seed, service, fake_db):
    seed.linked()
    home = service.create_zone('pet-1', 'owner-1', zone_payload(name='Home'))
    park = service.create_zone('pet-1', 'owner-1', zone_payload(name='Park'))

    updated = service.update_zone('pet-1', 'owner-1', park.zone_id,
                                  {'center': {'lat': 10.5}, 'radius': 300, 'is_primary': True})

    assert updated.center_lat == 10.5
    assert updated.center_lng == 106.0
    stored = {z['zone_id']: z for z in stored_zones(fake_db)}
    assert stored[park.zone_id]['is_primary'] is True
    assert stored[park.zone_id]['radius'] == 300
    assert stored[home.zone_id]['is_primary'] is False

def test_toggle_and_delete(seed, service, on_change, fake_db):
    seed.linked()
    zone = service.create_zone('pet-1', 'owner-1', zone_payload())

    toggled = service.toggle_zone('pet-1', 'owner-1', zone.zone_id)
    assert toggled.is_active is False

    service.delete_zone('pet-1', 'owner-1', zone.zone_id)
    assert stored_zones(fake_db) == []
    assert on_change.call_count == 3

def test_other_owner_is_rejected(seed, service, on_change):
    seed.linked()
    with pytest.raises(PermissionError):
        service.create_zone('pet-1', 'intruder', zone_payload())
    on_change.assert_not_called()

def test_unknown_zone_raises_not_found(seed, service):
    seed.linked()
    with pytest.raises(FileNotFoundError):
        service.toggle_zone('pet-1', 'owner-1', 'missing-zone')

def test_notification_failure_does_not_fail_mutation(seed, service, on_change, fake_db):
    seed.linked()
    on_change.side_effect = RuntimeError("mqtt down")

    service.create_zone('pet-1', 'owner-1', zone_payload())

    assert len(stored_zones(fake_db)) == 1
