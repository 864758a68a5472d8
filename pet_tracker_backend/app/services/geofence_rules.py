# app/services/geofence_rules.py
"""
안전 구역(Safe Zone) 목록의 일관성 규칙

Pet 문서의 safe_zones 배열이 변경될 때마다, 누가 변경했는지와 무관하게 적용됩니다.
  1. 반경을 [10, 5000] 미터로 보정 (거부하지 않고 값 자체를 수정)
  2. 개수 상한 초과 시 생성 시각 기준 최신 N개만 유지, 경고 기준 초과 시 경고 로그
  3. 대표(primary) 구역은 최대 1개, 목록이 비어있지 않으면 정확히 1개
"""

import logging
from typing import List, Optional

from app.models.pet import SafeZone, MIN_RADIUS_METERS, MAX_RADIUS_METERS, DEFAULT_RADIUS_METERS

logger = logging.getLogger(__name__)

DEFAULT_WARN_THRESHOLD = 20
DEFAULT_HARD_LIMIT = 30


def clamp_radius(radius) -> float:
    """반경 값을 허용 범위로 보정합니다. 숫자가 아니면 기본 반경을 사용합니다."""
    if isinstance(radius, bool) or not isinstance(radius, (int, float)) or radius != radius:
        return DEFAULT_RADIUS_METERS
    return max(MIN_RADIUS_METERS, min(MAX_RADIUS_METERS, radius))


def trim_to_limit(zones: List[SafeZone], hard_limit: int) -> List[SafeZone]:
    """
    hard_limit 를 넘으면 created_at 기준 최신 hard_limit 개만 남깁니다.
    남은 구역들의 원래 상대 순서는 유지합니다.
    """
    if len(zones) <= hard_limit:
        return list(zones)

    newest = sorted(zones, key=lambda z: z.created_at, reverse=True)[:hard_limit]
    keep_ids = {id(z) for z in newest}
    discarded = [z for z in zones if id(z) not in keep_ids]
    logger.warning(
        f"Safe zone limit exceeded ({len(zones)} > {hard_limit}); "
        f"discarding {len(discarded)} oldest: {[z.zone_id for z in discarded]}"
    )
    return [z for z in zones if id(z) in keep_ids]


def enforce_single_primary(zones: List[SafeZone]) -> List[SafeZone]:
    """처음 만난 primary 만 남기고, primary 가 없으면 가장 먼저 생성된 구역을 primary 로 지정합니다."""
    primary_seen = False
    for zone in zones:
        if zone.is_primary:
            if primary_seen:
                zone.is_primary = False
            primary_seen = True

    if zones and not primary_seen:
        min(zones, key=lambda z: z.created_at).is_primary = True
    return zones


def enforce_safe_zone_rules(zones: List[SafeZone],
                            warn_threshold: int = DEFAULT_WARN_THRESHOLD,
                            hard_limit: int = DEFAULT_HARD_LIMIT,
                            pet_id: Optional[str] = None) -> List[SafeZone]:
    """
    모든 규칙을 적용한 새 목록을 반환합니다. SafeZone 객체는 제자리에서 수정됩니다.
    trim 이후에 primary 규칙을 적용하므로 대표 구역이 정리 과정에서 사라지지 않습니다.
    """
    for zone in zones:
        clamped = clamp_radius(zone.radius)
        if clamped != zone.radius:
            logger.info(f"Clamped safe zone {zone.zone_id} radius {zone.radius} -> {clamped} (pet {pet_id})")
            zone.radius = clamped

    if len(zones) > warn_threshold:
        logger.warning(f"Pet {pet_id} has {len(zones)} safe zones (warning threshold {warn_threshold})")

    result = trim_to_limit(zones, hard_limit)
    return enforce_single_primary(result)


def select_active_zone(zones: List[SafeZone]) -> Optional[SafeZone]:
    """
    디바이스에 전달할 안전 구역을 우선순위로 선택합니다.
    활성+대표 -> 활성 -> 대표 -> 첫 번째 -> 없음
    """
    if not zones:
        return None
    for predicate in (lambda z: z.is_active and z.is_primary,
                      lambda z: z.is_active,
                      lambda z: z.is_primary):
        match = next((z for z in zones if predicate(z)), None)
        if match is not None:
            return match
    return zones[0]
