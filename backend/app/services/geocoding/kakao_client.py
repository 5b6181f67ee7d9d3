"""카카오 지오코딩 클라이언트

주소 검색 → (결과 없으면) 키워드 검색 순으로 좌표를 찾는다.
예외를 던지지 않고 GeocodeOutcome(status=...)으로 결과를 돌려준다.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel

from app.config import settings
from app.models.parcel import LatLng
from app.services.geocoding.cache import GeocodeCache

logger = logging.getLogger(__name__)

KAKAO_ADDRESS_URL = "https://dapi.kakao.com/v2/local/search/address.json"
KAKAO_KEYWORD_URL = "https://dapi.kakao.com/v2/local/search/keyword.json"


class GeocodeStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"  # HTTP 429
    ERROR = "error"  # 키 없음, 네트워크/HTTP 오류, 응답 해석 실패


class GeocodeOutcome(BaseModel):
    """지오코딩 1건 결과"""

    status: GeocodeStatus
    coords: LatLng | None = None
    source: str = ""  # "cache" | "address" | "keyword"
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == GeocodeStatus.OK


class _RateLimited(Exception):
    pass


def _first_coords(documents: list[dict[str, Any]]) -> LatLng | None:
    if not documents:
        return None
    doc = documents[0]
    return LatLng(lat=float(doc["y"]), lng=float(doc["x"]))


class KakaoGeocoder:
    """카카오 로컬 API 기반 지오코더"""

    def __init__(
        self,
        api_key: str | None = None,
        cache: GeocodeCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self._api_key = settings.KAKAO_REST_API_KEY if api_key is None else api_key
        self._cache = cache
        self._timeout = settings.GEOCODE_TIMEOUT if timeout is None else timeout

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _search(self, client: httpx.Client, url: str, query: str) -> LatLng | None:
        response = client.get(
            url,
            params={"query": query},
            headers={"Authorization": f"KakaoAK {self._api_key}"},
        )
        if response.status_code == 429:
            raise _RateLimited()
        response.raise_for_status()
        return _first_coords(response.json().get("documents", []))

    def geocode(self, address: str) -> GeocodeOutcome:
        """주소 → 좌표

        Args:
            address: 필지 주소

        Returns:
            GeocodeOutcome (캐시 적중 시 source="cache")
        """
        if not address.strip():
            return GeocodeOutcome(status=GeocodeStatus.NOT_FOUND, message="빈 주소")

        if self._cache is not None:
            cached = self._cache.get(address)
            if cached is not None:
                return GeocodeOutcome(status=GeocodeStatus.OK, coords=cached, source="cache")

        if not self.is_available:
            return GeocodeOutcome(status=GeocodeStatus.ERROR, message="KAKAO_REST_API_KEY 미설정")

        try:
            with httpx.Client(timeout=self._timeout) as client:
                coords = self._search(client, KAKAO_ADDRESS_URL, address)
                source = "address"
                if coords is None:
                    coords = self._search(client, KAKAO_KEYWORD_URL, address)
                    source = "keyword"
        except _RateLimited:
            logger.warning("카카오 지오코딩 요청 한도 초과: %s", address)
            return GeocodeOutcome(status=GeocodeStatus.RATE_LIMITED, message="HTTP 429")
        except httpx.HTTPError as e:
            logger.warning("카카오 지오코딩 실패: %s (%s)", address, e)
            return GeocodeOutcome(status=GeocodeStatus.ERROR, message=str(e))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("카카오 지오코딩 응답 해석 실패: %s (%s)", address, e)
            return GeocodeOutcome(status=GeocodeStatus.ERROR, message=str(e))

        if coords is None:
            logger.info("지오코딩 결과 없음: %s", address)
            return GeocodeOutcome(status=GeocodeStatus.NOT_FOUND)

        if self._cache is not None:
            self._cache.set(address, coords)
        return GeocodeOutcome(status=GeocodeStatus.OK, coords=coords, source=source)
