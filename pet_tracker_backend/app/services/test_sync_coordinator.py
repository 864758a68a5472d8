# app/services/test_sync_coordinator.py
"""
설정 동기화 코디네이터 테스트

MQTT 어댑터는 MagicMock 으로, 저장소는 메모리 Firestore 로 대체합니다.
사용법: python -m pytest app/services/test_sync_coordinator.py -v
"""

import json
from unittest.mock import MagicMock

import pytest

from app.api.devices.services import DeviceService
from app.api.pet_data.services import TelemetryService
from app.api.pets.services import PetService
from app.api.users.services import UserService
from app.services.config_assembler import ConfigAssembler
from app.services.sync_coordinator import DeviceSyncCoordinator

class RecordingScheduler:
    def __init__(self):
        self.pending = []

    def __call__(self, delay, callback):
        self.pending.append((delay, callback))

    def run_all(self):
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()

@pytest.fixture
def mqtt():
    service = MagicMock()
    service.publish_config.return_value = True
    return service

@pytest.fixture
def scheduler():
    return RecordingScheduler()

@pytest.fixture
def coordinator(fake_db, mqtt, scheduler):
    devices = DeviceService(db=fake_db)
    assembler = ConfigAssembler(
        device_service=devices,
        pet_service=PetService(db=fake_db),
        user_service=UserService(db=fake_db),
        server_url='http://api.local:5000',
        update_interval_ms=30000,
        connection_settings={'broker': 'broker.local', 'port': 1883, 'username': '', 'password': ''},
    )
    return DeviceSyncCoordinator(
        mqtt_service=mqtt,
        device_service=devices,
        telemetry_service=TelemetryService(db=fake_db),
        config_assembler=assembler,
        dispatch_delay=1.0,
        scheduler=scheduler,
    )

def send(coordinator, topic, payload):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode('utf-8')
    coordinator.handle_message(topic, raw)

def test_location_stores_sample_and_dispatches(seed, coordinator, mqtt, fake_db):
    seed.linked()

    send(coordinator, 'pets/TRACKER-001/location', {'latitude': 10.77, 'longitude': 106.69, 'speed': 1.2})

    samples = list(fake_db.collections['pet_data'].values())
    assert len(samples) == 1
    assert samples[0]['pet_id'] == 'pet-1'
    assert samples[0]['activity_type'] == 'walking'

    mqtt.publish_config.assert_called_once()
    device_id, config = mqtt.publish_config.call_args.args
    assert device_id == 'TRACKER-001'
    assert 'safeZone' not in config

    device = fake_db.raw('devices', 'TRACKER-001')
    assert device['config_sent'] is True
    assert device['last_config_sent'] is not None
    assert device['last_seen'] is not None

def test_each_location_is_one_sample_and_one_publish(seed, coordinator, mqtt, fake_db):
    seed.linked()
    for i in range(5):
        send(coordinator, 'pets/TRACKER-001/location', {'latitude': 10.0 + i / 1000, 'longitude': 106.0})
    assert len(fake_db.collections['pet_data']) == 5
    assert mqtt.publish_config.call_count == 5

def test_failed_publish_leaves_config_sent_false(seed, coordinator, mqtt, fake_db):
    seed.linked()
    mqtt.publish_config.return_value = False

    send(coordinator, 'pets/TRACKER-001/location', {'latitude': 10.0, 'longitude': 106.0})

    assert len(fake_db.collections['pet_data']) == 1
    assert fake_db.raw('devices', 'TRACKER-001')['config_sent'] is False

def test_inactive_device_triggers_nothing(seed, coordinator, mqtt, scheduler, fake_db):
    seed.user()
    seed.pet()
    seed.device(is_active=False)
    before = dict(fake_db.raw('devices', 'TRACKER-001'))

    send(coordinator, 'pets/TRACKER-001/location', {'latitude': 10.0, 'longitude': 106.0})
    send(coordinator, 'pets/TRACKER-001/status', {'needConfig': True, 'battery': 80})
    send(coordinator, 'pets/TRACKER-001/config', {'type': 'config_request'})
    coordinator.notify_safe_zones_changed('pet-1')
    scheduler.run_all()

    mqtt.publish_config.assert_not_called()
    assert fake_db.raw('devices', 'TRACKER-001') == before
    assert not fake_db.collections.get('pet_data')

def test_unknown_device_location_dropped(coordinator, mqtt, fake_db):
    send(coordinator, 'pets/GHOST/location', {'latitude': 10.0, 'longitude': 106.0})
    mqtt.publish_config.assert_not_called()
    assert not fake_db.collections.get('pet_data')

def test_status_need_config_schedules_delayed_dispatch(seed, coordinator, mqtt, scheduler, fake_db):
    seed.user()
    seed.pet()
    seed.device(config_sent=True)

    send(coordinator, 'pets/TRACKER-001/status', {'needConfig': True, 'battery': 64, 'rssi': -70})

    device = fake_db.raw('devices', 'TRACKER-001')
    assert device['battery_level'] == 64
    assert device['signal_strength'] == -70
    assert [delay for delay, _ in scheduler.pending] == [1.0]
    mqtt.publish_config.assert_not_called()

    scheduler.run_all()
    mqtt.publish_config.assert_called_once()

def test_status_without_need_config_after_sent_does_nothing(seed, coordinator, mqtt, scheduler):
    seed.user()
    seed.pet()
    seed.device(config_sent=True)

    send(coordinator, 'pets/TRACKER-001/status', {'batteryLevel': 90})

    assert scheduler.pending == []
    mqtt.publish_config.assert_not_called()

def test_status_when_config_never_sent_schedules(seed, coordinator, scheduler):
    seed.linked()
    send(coordinator, 'pets/TRACKER-001/status', {'batteryLevel': 90})
    assert len(scheduler.pending) == 1

def test_config_received_records_acknowledgement(seed, coordinator, scheduler, fake_db):
    seed.user()
    seed.pet()
    seed.device(config_sent=True)

    send(coordinator, 'pets/TRACKER-001/status', {'configReceived': True})

    assert fake_db.raw('devices', 'TRACKER-001')['config_acknowledged_at'] is not None
    assert scheduler.pending == []

@pytest.mark.parametrize("payload", [{'type': 'config_request'}, {'configRequest': True}])
def test_config_request_dispatches_immediately(seed, coordinator, mqtt, scheduler, payload):
    seed.linked()
    send(coordinator, 'pets/TRACKER-001/config', payload)
    mqtt.publish_config.assert_called_once()
    assert scheduler.pending == []

def test_config_echo_is_ignored(seed, coordinator, mqtt):
    seed.linked()
    send(coordinator, 'pets/TRACKER-001/config', {'deviceId': 'TRACKER-001', 'petName': 'Bori'})
    send(coordinator, 'pets/TRACKER-001/config', b'')
    mqtt.publish_config.assert_not_called()

@pytest.mark.parametrize("topic, raw", [
    ('pets/TRACKER-001/location', b'{not json'),
    ('pets/TRACKER-001/location', b'\xff\xfe'),
    ('pets/TRACKER-001/location', b'{"latitude": "north"}'),
    ('pets/TRACKER-001/unknown', b'{}'),
    ('other/TRACKER-001/location', b'{}'),
])
def test_malformed_input_dropped(seed, coordinator, mqtt, fake_db, topic, raw):
    seed.linked()
    coordinator.handle_message(topic, raw)
    mqtt.publish_config.assert_not_called()
    assert not fake_db.collections.get('pet_data')

def test_handler_errors_are_isolated(seed, coordinator, mqtt):
    seed.linked()
    coordinator.telemetry_service = MagicMock()
    coordinator.telemetry_service.record_sample.side_effect = RuntimeError("store down")

    send(coordinator, 'pets/TRACKER-001/location', {'latitude': 10.0, 'longitude': 106.0})

    mqtt.publish_config.assert_not_called()

def test_safe_zone_change_schedules_for_each_active_device(seed, coordinator, mqtt, scheduler):
    seed.linked()
    seed.device(device_id='TRACKER-002')
    seed.device(device_id='TRACKER-OLD', is_active=False)

    assert coordinator.notify_safe_zones_changed('pet-1') == 2
    assert all(delay == 1.0 for delay, _ in scheduler.pending)

    scheduler.run_all()
    assert sorted(call.args[0] for call in mqtt.publish_config.call_args_list) == ['TRACKER-001', 'TRACKER-002']

def test_scheduled_dispatch_errors_are_isolated(seed, coordinator, scheduler):
    seed.linked()
    coordinator.config_assembler = MagicMock()
    coordinator.config_assembler.assemble.side_effect = RuntimeError("boom")

    coordinator.trigger_auto_config('TRACKER-001')
    scheduler.run_all()

def test_status_with_overfull_battery_still_requests_config(seed, coordinator, scheduler, fake_db):
    seed.user()
    seed.pet()
    seed.device(config_sent=True)

    send(coordinator, 'pets/TRACKER-001/status', {'needConfig': True, 'battery': 101})

    device = fake_db.raw('devices', 'TRACKER-001')
    assert device['battery_level'] == 100
    assert device['last_seen'] is not None
    assert len(scheduler.pending) == 1
