"""지오코딩 결과 캐시

정규화 주소 → 좌표. 호출자가 인스턴스를 소유한다 (전역 상태 없음).
JSON 파일 영속화는 best-effort: 읽기/쓰기 실패는 경고만 남기고 넘어간다.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from app.models.parcel import LatLng
from app.services.address_parser import normalize_address

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400


class GeocodeCache:
    """TTL 있는 주소 → 좌표 캐시"""

    def __init__(self, path: str | Path | None = None, ttl_days: int = 30) -> None:
        self._path = Path(path) if path else None
        self._ttl_seconds = ttl_days * _SECONDS_PER_DAY
        self._entries: dict[str, dict[str, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: dict[str, float], now: float) -> bool:
        return self._ttl_seconds > 0 and now - entry["cached_at"] > self._ttl_seconds

    def get(self, address: str) -> LatLng | None:
        key = normalize_address(address)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, time.time()):
            del self._entries[key]
            return None
        return LatLng(lat=entry["lat"], lng=entry["lng"])

    def set(self, address: str, coords: LatLng) -> None:
        key = normalize_address(address)
        if not key:
            return
        self._entries[key] = {"lat": coords.lat, "lng": coords.lng, "cached_at": time.time()}

    def clear(self) -> None:
        self._entries.clear()

    def load(self) -> int:
        """파일에서 캐시 로드 (만료 항목 제외). 로드한 항목 수 반환"""
        if self._path is None or not self._path.exists():
            return 0
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("지오코딩 캐시 로드 실패 (%s): %s", self._path, e)
            return 0

        now = time.time()
        loaded = 0
        for key, entry in data.items():
            try:
                normalized = {
                    "lat": float(entry["lat"]),
                    "lng": float(entry["lng"]),
                    "cached_at": float(entry["cached_at"]),
                }
            except (KeyError, TypeError, ValueError):
                continue
            if self._is_expired(normalized, now):
                continue
            self._entries[key] = normalized
            loaded += 1

        logger.info("지오코딩 캐시 로드: %d건", loaded)
        return loaded

    def save(self) -> bool:
        """파일로 캐시 저장. 성공 여부 반환"""
        if self._path is None:
            return False
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._entries, ensure_ascii=False), encoding="utf-8",
            )
        except OSError as e:
            logger.warning("지오코딩 캐시 저장 실패 (%s): %s", self._path, e)
            return False
        return True
