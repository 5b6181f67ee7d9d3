"""공간 분석 유틸리티

중심점, 밀집도, 리 단위 클러스터링, 먼 리(외곽 지역) 탐지.
좌표(coords)가 없는 필지는 모든 계산에서 자연스럽게 빠진다:
좌표 보유율 0%/일부/100% 어느 경우에도 예외 없이 동작해야 한다.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from app.models.parcel import LatLng, Parcel
from app.services.geometry import compute_polygon_centroid, haversine_distance, point_in_polygon
from app.services.grouping import group_by

logger = logging.getLogger(__name__)

# 자동 임계값 경계 비교 허용오차 (km)
# 외곽 리 1곳 + 나머지 동일 거리 구성에서 임계값이 정확히 외곽 거리와 같아지는
# 경우(평균+2σ의 수학적 성질)에 부동소수 반올림 방향과 무관하게 외곽으로 판정한다.
BOUNDARY_EPSILON_KM = 1e-9


@dataclass
class DistantPair:
    """응집 반경을 초과하는 필지 쌍"""

    a: Parcel
    b: Parcel
    dist_km: float


def _with_coords(parcels: Sequence[Parcel]) -> list[Parcel]:
    return [p for p in parcels if p.coords is not None]


def _mean_point(points: Sequence[LatLng]) -> LatLng:
    return LatLng(
        lat=sum(c.lat for c in points) / len(points),
        lng=sum(c.lng for c in points) / len(points),
    )


def calculate_centroid(parcels: Sequence[Parcel]) -> LatLng | None:
    """좌표 있는 필지들의 평균 좌표. 하나도 없으면 None"""
    coord_parcels = _with_coords(parcels)
    if not coord_parcels:
        return None
    return _mean_point([p.coords for p in coord_parcels])


def calculate_ri_centroids(parcels: Sequence[Parcel]) -> dict[str, LatLng]:
    """리별 평균 좌표 (좌표 있는 필지가 없는 리는 제외)"""
    by_ri = group_by(_with_coords(parcels), lambda p: p.ri)
    return {ri: _mean_point([p.coords for p in members]) for ri, members in by_ri.items()}


def calculate_density(
    parcel: Parcel,
    pool: Sequence[Parcel],
    radius_km: float = 1.0,
) -> float:
    """반경 내 이웃 비율로 밀집도 산출 (0~1)

    Args:
        parcel: 대상 필지
        pool: 비교 대상 필지 (좌표 없는 필지, 대상 필지 자신은 제외됨)
        radius_km: 이웃 판정 반경

    Returns:
        이웃 수 / 비교 대상 수. 대상 필지에 좌표가 없으면 0
    """
    if parcel.coords is None:
        return 0.0

    own_key = parcel.key
    others = [p for p in pool if p.coords is not None and p.key != own_key]
    if not others:
        return 0.0

    neighbors = sum(
        1 for p in others if haversine_distance(parcel.coords, p.coords) <= radius_km
    )
    return neighbors / len(others)


def cluster_parcels_in_ri(
    parcels: Sequence[Parcel],
    max_dist_km: float = 0.5,
) -> list[list[Parcel]]:
    """같은 리 안에서 max_dist_km 이내로 연결된 필지 묶음 (BFS 연결 요소)

    서로 다른 리의 필지는 지리적으로 가까워도 같은 클러스터가 되지 않는다.
    클러스터 순서는 입력 순서상 시드 필지의 등장 순서를 따른다.
    """
    coord_parcels = _with_coords(parcels)
    if not coord_parcels:
        return []

    visited: set[int] = set()
    clusters: list[list[Parcel]] = []

    for start_idx, start in enumerate(coord_parcels):
        if start_idx in visited:
            continue

        visited.add(start_idx)
        cluster = [start]
        queue: deque[Parcel] = deque([start])

        while queue:
            current = queue.popleft()
            for idx, candidate in enumerate(coord_parcels):
                if idx in visited or candidate.ri != current.ri:
                    continue
                if haversine_distance(current.coords, candidate.coords) <= max_dist_km:
                    visited.add(idx)
                    cluster.append(candidate)
                    queue.append(candidate)

        clusters.append(cluster)

    return clusters


def outlier_threshold(distances: Sequence[float]) -> float:
    """통계적 외곽 임계값: 평균 + 2 × 표준편차 (모표준편차)"""
    mean = sum(distances) / len(distances)
    variance = sum((d - mean) ** 2 for d in distances) / len(distances)
    return mean + 2 * math.sqrt(variance)


def select_distant_ris(
    ri_distances: Mapping[str, float],
    threshold_km: float | None = None,
) -> list[str]:
    """거리 목록에서 임계값을 넘는 리 선별

    threshold_km가 None 또는 0 이하이면 평균+2σ 자동 임계값을 사용한다.
    """
    if not ri_distances:
        return []

    threshold = threshold_km
    if threshold is None or threshold <= 0:
        values = list(ri_distances.values())
        # 거리가 모두 같으면 (리 1곳 포함) 외곽 리 없음
        if max(values) - min(values) <= BOUNDARY_EPSILON_KM:
            return []
        threshold = outlier_threshold(values)

    return [
        ri for ri, dist in ri_distances.items()
        if dist > threshold - BOUNDARY_EPSILON_KM
    ]


def ri_distances_from(
    reference: LatLng,
    parcels: Sequence[Parcel],
) -> dict[str, float]:
    """각 리 중심점과 기준점 사이 거리 (km)"""
    return {
        ri: haversine_distance(reference, centroid)
        for ri, centroid in calculate_ri_centroids(parcels).items()
    }


def find_distant_ris(
    parcels: Sequence[Parcel],
    threshold_km: float | None = None,
) -> list[str]:
    """전체 중심점에서 멀리 떨어진 리 식별

    Args:
        parcels: 후보 필지 (좌표 없는 필지는 무시)
        threshold_km: 기준 거리. 미지정/0이면 평균 + 2σ 자동 계산

    Returns:
        먼 리 이름 목록
    """
    centroid = calculate_centroid(parcels)
    if centroid is None:
        return []

    distant = select_distant_ris(ri_distances_from(centroid, parcels), threshold_km)
    if distant:
        logger.info("먼 리 감지: %s", ", ".join(distant))
    return distant


def find_distant_pairs(
    parcels: Sequence[Parcel],
    max_dist_km: float,
) -> list[DistantPair]:
    """좌표 있는 필지 중 max_dist_km를 초과하는 모든 쌍 (검증 경고용)"""
    coord_parcels = _with_coords(parcels)
    pairs: list[DistantPair] = []
    for i in range(len(coord_parcels)):
        for j in range(i + 1, len(coord_parcels)):
            a, b = coord_parcels[i], coord_parcels[j]
            dist = haversine_distance(a.coords, b.coords)
            if dist > max_dist_km:
                pairs.append(DistantPair(a=a, b=b, dist_km=dist))
    return pairs


def calculate_average_distance(parcels: Sequence[Parcel]) -> float:
    """좌표 있는 필지 간 평균 거리 (2개 미만이면 0)"""
    coord_parcels = _with_coords(parcels)
    if len(coord_parcels) < 2:
        return 0.0

    total = 0.0
    count = 0
    for i in range(len(coord_parcels)):
        for j in range(i + 1, len(coord_parcels)):
            total += haversine_distance(coord_parcels[i].coords, coord_parcels[j].coords)
            count += 1
    return total / count


def apply_boundary_centroids(
    parcels: Sequence[Parcel],
    boundaries: Mapping[str, Sequence[Sequence[float]]],
) -> list[Parcel]:
    """필지 경계(PNU → (lng, lat) 링)의 무게중심으로 좌표 채우기

    좌표가 이미 있거나 경계가 없는 필지는 그대로 둔다. 새 목록 반환.
    """
    result: list[Parcel] = []
    filled = 0
    for p in parcels:
        ring = boundaries.get(p.pnu) if p.pnu else None
        if p.coords is None and ring:
            result.append(p.model_copy(update={"coords": compute_polygon_centroid(ring)}))
            filled += 1
        else:
            result.append(p)
    if filled:
        logger.info("경계 무게중심으로 좌표 보완: %d필지", filled)
    return result


def parcels_within(
    parcels: Sequence[Parcel],
    ring: Sequence[Sequence[float]],
) -> list[Parcel]:
    """(lng, lat) 폴리곤 안에 있는 필지 (좌표 없는 필지 제외)"""
    return [
        p for p in parcels
        if p.coords is not None and point_in_polygon((p.coords.lng, p.coords.lat), ring)
    ]
