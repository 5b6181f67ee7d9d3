"""추출 3단계: 리 단위 추출

리 하나에서 목표 수만큼 필지를 뽑는다.
- 농가별로 묶어 대표필지 일치 필지를 앞에, 나머지는 추출 방식대로 정렬한 뒤
  농가당 최대 수(max_per_farmer)에서 앞선 리의 선택 수를 뺀 만큼 자른다.
- 대표필지 일치 필지가 풀에 있으면 먼저 선택하고, 나머지를 채운다.
- 공간 필터 활성 + 좌표 있음 → 밀집도 가중 추출, 아니면 정렬 순 슬라이스.

밀집도 가중 추출 (extract_with_density):
  클러스터링 → 클러스터 순위 (대표필지 근접 순, 없으면 크기 순)
  → 클러스터 내 점수 = 기본점수 × w + 난수 × (1 - w)
     기본점수: 대표필지 좌표 있음 → (근접도 + 밀집도) / 2, 없음 → 밀집도
  → 대표필지 좌표가 없을 때만 응집 반경 하드 필터
  → 좌표 없는 필지는 마지막에 셔플해서 부족분만 채움
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from app.models.extraction import ExtractionConfig, ExtractionMethod, SpatialConfig
from app.models.parcel import LatLng, Parcel
from app.services.geometry import haversine_distance
from app.services.grouping import group_by
from app.services.random_source import Rng, shuffle
from app.services.spatial import calculate_density, cluster_parcels_in_ri

# 근접도 1 / (거리 + 0.1km): 대표필지 바로 위 필지의 발산 방지
PROXIMITY_SMOOTHING_KM = 0.1


@dataclass
class PriorityIndex:
    """대표필지 우선순위 조회 (키/PNU/좌표)"""

    keys: set[tuple[str, str]] = field(default_factory=set)
    pnus: set[str] = field(default_factory=set)
    coords: list[LatLng] = field(default_factory=list)

    @classmethod
    def from_parcels(cls, parcels: Sequence[Parcel]) -> PriorityIndex:
        return cls(
            keys={p.key for p in parcels},
            pnus={p.pnu for p in parcels if p.pnu},
            coords=[p.coords for p in parcels if p.coords is not None],
        )

    @property
    def is_empty(self) -> bool:
        return not self.keys and not self.pnus

    def matches(self, parcel: Parcel) -> bool:
        if parcel.pnu and parcel.pnu in self.pnus:
            return True
        return parcel.key in self.keys


def order_parcels(
    parcels: Sequence[Parcel],
    method: ExtractionMethod,
    rng: Rng,
) -> list[Parcel]:
    """추출 방식별 정렬 (random은 셔플, 나머지는 안정 정렬)"""
    if method == ExtractionMethod.AREA:
        return sorted(parcels, key=lambda p: (p.area is None, -(p.area or 0.0)))
    if method == ExtractionMethod.FARMER_ID:
        return sorted(parcels, key=lambda p: (p.farmer_id, p.parcel_id))
    return shuffle(parcels, rng)


def nearest_anchor_km(point: LatLng, anchors: Sequence[LatLng]) -> float:
    """가장 가까운 기준 좌표까지 거리"""
    return min(haversine_distance(point, a) for a in anchors)


def is_cohesive(
    parcel: Parcel,
    selected: Sequence[Parcel],
    max_dist_km: float,
) -> bool:
    """같은 리의 기선택 필지 중 하나라도 반경 내에 있는지

    좌표가 없거나, 같은 리에 좌표 있는 기선택 필지가 없으면 통과.
    """
    if parcel.coords is None:
        return True
    same_ri = [s for s in selected if s.ri == parcel.ri and s.coords is not None]
    if not same_ri:
        return True
    return any(haversine_distance(s.coords, parcel.coords) <= max_dist_km for s in same_ri)


def _score_cluster(
    cluster: list[Parcel],
    density_pool: list[Parcel],
    spatial: SpatialConfig,
    rng: Rng,
    anchors: Sequence[LatLng],
) -> list[Parcel]:
    weight = spatial.density_weight
    radius = spatial.max_parcel_distance_km
    densities = [calculate_density(p, density_pool, radius) for p in cluster]

    if anchors:
        proximity = [
            1.0 / (nearest_anchor_km(p.coords, anchors) + PROXIMITY_SMOOTHING_KM)
            for p in cluster
        ]
        top = max(proximity)
        base = [(prox / top + dens) / 2 for prox, dens in zip(proximity, densities)]
    else:
        base = densities

    scored = [
        (b * weight + rng() * (1 - weight), idx, parcel)
        for idx, (b, parcel) in enumerate(zip(base, cluster))
    ]
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [parcel for _, _, parcel in scored]


def rank_with_density(
    pool: Sequence[Parcel],
    spatial: SpatialConfig,
    rng: Rng,
    anchors: Sequence[LatLng] = (),
) -> tuple[list[Parcel], list[Parcel]]:
    """밀집도 가중 순위

    Returns:
        (좌표 있는 필지 순위 목록, 좌표 없는 필지 목록: 정렬 안 됨)
    """
    with_coords = [p for p in pool if p.coords is not None]
    without_coords = [p for p in pool if p.coords is None]

    clusters = cluster_parcels_in_ri(with_coords, spatial.max_parcel_distance_km)
    if anchors:
        clusters.sort(key=lambda c: min(nearest_anchor_km(p.coords, anchors) for p in c))
    else:
        clusters.sort(key=len, reverse=True)

    ranked: list[Parcel] = []
    for cluster in clusters:
        ranked.extend(_score_cluster(cluster, with_coords, spatial, rng, anchors))
    return ranked, without_coords


def extract_with_density(
    pool: Sequence[Parcel],
    target: int,
    spatial: SpatialConfig,
    rng: Rng,
    anchors: Sequence[LatLng] = (),
    already_selected: Sequence[Parcel] = (),
) -> list[Parcel]:
    """밀집도 기반 가중 추출

    Args:
        pool: 후보 (한 리)
        target: 뽑을 수
        spatial: 공간 설정
        rng: 난수 생성기
        anchors: 대표필지 좌표 (있으면 근접도 가점 + 응집 필터 완화)
        already_selected: 응집 판정에 포함할 기선택 필지
    """
    if target <= 0:
        return []

    ranked, without_coords = rank_with_density(pool, spatial, rng, anchors)
    selected: list[Parcel] = []

    for parcel in ranked:
        if len(selected) >= target:
            break
        if not anchors and not is_cohesive(
            parcel, [*already_selected, *selected], spatial.max_parcel_distance_km
        ):
            continue
        selected.append(parcel)

    if len(selected) < target:
        for parcel in shuffle(without_coords, rng):
            if len(selected) >= target:
                break
            selected.append(parcel)

    return selected


def _draw(
    pool: Sequence[Parcel],
    count: int,
    config: ExtractionConfig,
    rng: Rng,
    anchors: Sequence[LatLng],
    already_selected: Sequence[Parcel] = (),
) -> list[Parcel]:
    """밀집도 추출 또는 정렬 순 슬라이스"""
    if count <= 0 or not pool:
        return []
    if config.spatial_enabled and any(p.coords is not None for p in pool):
        return extract_with_density(
            pool, count, config.spatial_config, rng, anchors, already_selected,
        )
    return order_parcels(pool, config.extraction_method, rng)[:count]


def build_farmer_capped_pool(
    parcels: Sequence[Parcel],
    config: ExtractionConfig,
    rng: Rng,
    priority: PriorityIndex | None = None,
    farmer_counts: Mapping[str, int] | None = None,
) -> list[Parcel]:
    """농가별 정렬(대표필지 일치 우선) 후 농가당 남은 한도로 자른 풀

    farmer_counts: 다른 리에서 이미 선택된 농가별 수 (한도는 리를 넘어 공유)
    """
    use_priority = priority is not None and not priority.is_empty
    used = farmer_counts or {}
    pool: list[Parcel] = []
    for farmer_id, farmer_parcels in group_by(parcels, lambda p: p.farmer_id).items():
        cap = config.max_per_farmer - used.get(farmer_id, 0)
        if cap <= 0:
            continue
        if use_priority:
            first = [p for p in farmer_parcels if priority.matches(p)]
            rest = [p for p in farmer_parcels if not priority.matches(p)]
            ordered = first + order_parcels(rest, config.extraction_method, rng)
        else:
            ordered = order_parcels(farmer_parcels, config.extraction_method, rng)
        pool.extend(ordered[:cap])
    return pool


def extract_from_ri(
    parcels: Sequence[Parcel],
    target: int,
    config: ExtractionConfig,
    rng: Rng,
    priority: PriorityIndex | None = None,
    farmer_counts: Mapping[str, int] | None = None,
) -> list[Parcel]:
    """리 하나에서 목표 수만큼 추출"""
    if target <= 0 or not parcels:
        return []

    pool = build_farmer_capped_pool(parcels, config, rng, priority, farmer_counts)
    anchors = priority.coords if priority is not None else []

    if priority is not None and not priority.is_empty:
        prioritized = [p for p in pool if priority.matches(p)]
        if prioritized:
            selected = prioritized[:target]
            rest = [p for p in pool if not priority.matches(p)]
            selected.extend(
                _draw(rest, target - len(selected), config, rng, anchors, selected)
            )
            return selected

    return _draw(pool, target, config, rng, anchors)
