"""추출 1~2단계: 후보 필터 + 먼 리 제외

1. 필터: 추출 가능 + 제외 리 아님 + 면적 하한 이상 (면적 미상은 통과)
2. 먼 리 제외 (공간 필터 활성 시):
   - 기준점(대표필지 중심) 있음 → 기준점과 리 중심 거리의 **중앙값** 초과 리 제외
   - 기준점 없음 → 전체 중심 기준 **평균 + 2σ** 초과 리 제외
   두 규칙은 의도적으로 다르다 (대표필지가 있으면 조사 범위를 그 주변으로 모음).
   명시 임계값(max_ri_distance_km > 0)이 있으면 두 경우 모두 그 값을 쓴다.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Sequence

from app.models.extraction import ExtractionConfig
from app.models.parcel import LatLng, Parcel
from app.services.spatial import find_distant_ris, ri_distances_from

logger = logging.getLogger(__name__)


def exclusion_reason(parcel: Parcel, config: ExtractionConfig) -> str | None:
    """후보 제외 사유 (None이면 통과)

    대표필지 적격성 판정에도 같은 규칙을 쓴다.
    """
    if parcel.sampled_years:
        years = ", ".join(str(y) for y in parcel.sampled_years)
        return f"기채취 필지 ({years}년)"
    if not parcel.is_eligible:
        return "추출 불가 필지"
    if parcel.ri in config.excluded_ris:
        return f"제외 리 ({parcel.ri})"
    if parcel.area is not None and parcel.area < config.min_area_m2:
        return f"면적 미달 ({parcel.area:,.0f}㎡ < {config.min_area_m2:,.0f}㎡)"
    return None


def filter_candidates(parcels: Sequence[Parcel], config: ExtractionConfig) -> list[Parcel]:
    """추출 후보 필터링"""
    candidates = [p for p in parcels if exclusion_reason(p, config) is None]
    logger.info("후보 필터: %d → %d필지", len(parcels), len(candidates))
    return candidates


def find_distant_ris_from_reference(
    candidates: Sequence[Parcel],
    reference: LatLng,
    threshold_km: float | None = None,
) -> list[str]:
    """기준점(대표필지 중심) 기준 먼 리: 자동 임계값은 중앙값"""
    distances = ri_distances_from(reference, candidates)
    if not distances:
        return []

    threshold = threshold_km
    if threshold is None or threshold <= 0:
        threshold = statistics.median(distances.values())

    return [ri for ri, dist in distances.items() if dist > threshold]


def exclude_distant_ris(
    candidates: Sequence[Parcel],
    config: ExtractionConfig,
    reference_centroid: LatLng | None = None,
) -> tuple[list[Parcel], list[str]]:
    """먼 리 제외

    Returns:
        (남은 후보, 제외된 리 목록). 공간 필터 비활성 시 후보 그대로.
    """
    if not config.spatial_enabled:
        return list(candidates), []

    threshold = config.spatial_config.max_ri_distance_km or None
    if reference_centroid is not None:
        distant = find_distant_ris_from_reference(candidates, reference_centroid, threshold)
    else:
        distant = find_distant_ris(candidates, threshold)

    if not distant:
        return list(candidates), []

    distant_set = set(distant)
    kept = [p for p in candidates if p.ri not in distant_set]
    logger.info(
        "먼 리 %d곳 제외 (%s): %d → %d필지",
        len(distant), "대표필지 기준" if reference_centroid else "전체 중심 기준",
        len(candidates), len(kept),
    )
    return kept, distant
