# app/utils/__init__.py
"""
유틸리티 모듈 패키지

UTC 기준 시간 변환(DateTimeUtils)을 제공합니다.
"""

from .datetime_utils import DateTimeUtils

__all__ = ['DateTimeUtils']
