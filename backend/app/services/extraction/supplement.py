"""추출 4단계: 목표 미달 보충

리별 추출 합계가 총 목표에 못 미치면 아직 선택되지 않은 후보에서 채운다.
- 리 순서: 기준점 있음 → 리 중심이 가까운 순 (중심 없는 리는 뒤),
           기준점 없음 → 남은 후보가 많은 순
- 리 내부: 공간 필터 활성 + 좌표 있음 → 밀집도 순위, 아니면 추출 방식 정렬
- 농가당 최대 수와 (공간 필터 활성 시) 같은 리 응집 반경을 지킨다.
- 총 목표에 도달하면 즉시 중단.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from app.models.extraction import ExtractionConfig
from app.models.parcel import LatLng, Parcel
from app.services.geometry import haversine_distance
from app.services.grouping import group_by
from app.services.random_source import Rng, shuffle
from app.services.spatial import calculate_ri_centroids
from app.services.extraction.selector import is_cohesive, order_parcels, rank_with_density

logger = logging.getLogger(__name__)


def order_regions(
    pool_by_ri: dict[str, list[Parcel]],
    reference: LatLng | None = None,
) -> list[str]:
    """보충 대상 리 순서"""
    by_size = sorted(pool_by_ri, key=lambda ri: len(pool_by_ri[ri]), reverse=True)
    if reference is None:
        return by_size

    centroids = calculate_ri_centroids([p for ps in pool_by_ri.values() for p in ps])
    located = sorted(
        (ri for ri in pool_by_ri if ri in centroids),
        key=lambda ri: haversine_distance(reference, centroids[ri]),
    )
    return located + [ri for ri in by_size if ri not in centroids]


def _rank_region(
    parcels: list[Parcel],
    config: ExtractionConfig,
    rng: Rng,
    anchors: Sequence[LatLng],
) -> list[Parcel]:
    if config.spatial_enabled and any(p.coords is not None for p in parcels):
        ranked, without_coords = rank_with_density(parcels, config.spatial_config, rng, anchors)
        return ranked + shuffle(without_coords, rng)
    return order_parcels(parcels, config.extraction_method, rng)


def supplement_underfill(
    selected: Sequence[Parcel],
    candidates: Sequence[Parcel],
    config: ExtractionConfig,
    rng: Rng,
    reference: LatLng | None = None,
    anchors: Sequence[LatLng] = (),
) -> list[Parcel]:
    """부족분 보충

    Args:
        selected: 리별 추출 결과
        candidates: 먼 리 제외 후 후보 전체
        config: 추출 설정 (total_target이 보충 목표)
        rng: 난수 생성기
        reference: 리 순서 기준점 (대표필지 중심)
        anchors: 밀집도 순위의 근접도 기준 좌표

    Returns:
        보충된 선택 목록 (기존 선택이 앞, 순서 유지)
    """
    result = list(selected)
    target = config.total_target
    if len(result) >= target:
        return result

    taken = {p.key for p in result}
    remaining = [p for p in candidates if p.key not in taken]
    if not remaining:
        return result

    pool_by_ri = group_by(remaining, lambda p: p.ri)
    farmer_counts = Counter(p.farmer_id for p in result)
    max_dist = config.spatial_config.max_parcel_distance_km if config.spatial_enabled else 0.0
    before = len(result)

    for ri in order_regions(pool_by_ri, reference):
        if len(result) >= target:
            break
        for parcel in _rank_region(pool_by_ri[ri], config, rng, anchors):
            if len(result) >= target:
                break
            if parcel.key in taken:
                continue
            if farmer_counts[parcel.farmer_id] >= config.max_per_farmer:
                continue
            if config.spatial_enabled and not is_cohesive(parcel, result, max_dist):
                continue
            result.append(parcel)
            taken.add(parcel.key)
            farmer_counts[parcel.farmer_id] += 1

    logger.info("보충: %d → %d필지 (목표 %d)", before, len(result), target)
    return result
