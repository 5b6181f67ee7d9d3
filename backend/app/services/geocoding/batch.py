"""필지 일괄 지오코딩

- 좌표가 이미 있는 필지는 건너뛴다.
- 입력 필지는 수정하지 않고 좌표가 채워진 새 목록을 반환한다 (순서 유지).
- 결과 없음/오류는 재시도, 요청 한도 초과(429)는 대기 후 재시도.
- threading.Event로 중간 취소 (취소 시점까지의 결과 반환).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from app.config import settings
from app.models.parcel import Parcel
from app.services.geocoding.kakao_client import GeocodeOutcome, GeocodeStatus, KakaoGeocoder

logger = logging.getLogger(__name__)

# (완료 수, 대상 수, 실패 수)
ProgressCallback = Callable[[int, int, int], None]


@dataclass
class BatchGeocodeResult:
    """일괄 지오코딩 결과"""

    parcels: list[Parcel] = field(default_factory=list)
    total: int = 0  # 지오코딩 대상 수 (좌표 없는 필지)
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    failed_addresses: list[str] = field(default_factory=list)


def geocode_with_retry(
    geocoder: KakaoGeocoder,
    address: str,
    max_retries: int,
    rate_limit_backoff: float,
    sleep: Callable[[float], None] = time.sleep,
) -> GeocodeOutcome:
    """재시도 포함 단일 주소 지오코딩"""
    outcome = geocoder.geocode(address)
    for _ in range(max_retries):
        if outcome.ok:
            break
        if outcome.status == GeocodeStatus.RATE_LIMITED:
            sleep(rate_limit_backoff)
        elif outcome.status == GeocodeStatus.ERROR and not geocoder.is_available:
            break
        outcome = geocoder.geocode(address)
    return outcome


def batch_geocode(
    parcels: Sequence[Parcel],
    geocoder: KakaoGeocoder,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    max_retries: int | None = None,
    request_interval: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchGeocodeResult:
    """좌표 없는 필지 일괄 지오코딩

    Args:
        parcels: 대상 필지
        geocoder: 지오코더 (캐시 포함)
        on_progress: 진행 콜백 (완료, 대상, 실패)
        cancel_event: set()되면 다음 필지부터 중단
        max_retries: 재시도 횟수 (기본 settings.GEOCODE_MAX_RETRIES)
        request_interval: 요청 간 대기 (기본 settings.GEOCODE_REQUEST_INTERVAL)
        sleep: 대기 함수 (테스트 주입용)

    Returns:
        BatchGeocodeResult
    """
    retries = settings.GEOCODE_MAX_RETRIES if max_retries is None else max_retries
    interval = settings.GEOCODE_REQUEST_INTERVAL if request_interval is None else request_interval

    result = BatchGeocodeResult(parcels=list(parcels))
    targets = [i for i, p in enumerate(parcels) if p.coords is None]
    result.total = len(targets)

    if not targets:
        return result
    if not geocoder.is_available:
        logger.warning("지오코딩 API 키 없음: 좌표 없는 필지 %d건 그대로 반환", len(targets))
        result.failed = len(targets)
        result.failed_addresses = [parcels[i].address for i in targets]
        return result

    logger.info("일괄 지오코딩 시작: %d건", len(targets))
    done = 0
    for n, idx in enumerate(targets):
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
            logger.info("일괄 지오코딩 취소: %d/%d건 처리", done, len(targets))
            break
        if n > 0 and interval > 0:
            sleep(interval)

        parcel = parcels[idx]
        outcome = geocode_with_retry(
            geocoder, parcel.address, retries, settings.GEOCODE_RATE_LIMIT_BACKOFF, sleep,
        )
        if outcome.ok:
            result.parcels[idx] = parcel.model_copy(update={"coords": outcome.coords})
            result.succeeded += 1
        else:
            result.failed += 1
            result.failed_addresses.append(parcel.address)

        done += 1
        if on_progress is not None:
            on_progress(done, len(targets), result.failed)

    logger.info(
        "일괄 지오코딩 완료: 성공 %d, 실패 %d / 대상 %d",
        result.succeeded, result.failed, result.total,
    )
    return result
