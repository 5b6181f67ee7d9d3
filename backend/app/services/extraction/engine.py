"""추출 엔진

후보 필터 → 먼 리 제외 → 리별 추출 → (초과분 정리) → 보충 → 지목 비율 재조정
→ 선택 마킹 → 통계 → 검증

입력 필지는 수정하지 않는다. 선택된 필지는 is_selected=True 사본으로 반환된다.
같은 입력 + 같은 설정(시드 포함) → 같은 결과.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from app.models.extraction import ExtractionConfig, ExtractionResult, UnderfillPolicy
from app.models.parcel import LatLng, Parcel
from app.services.grouping import group_by
from app.services.random_source import Rng, create_rng, resolve_seed
from app.services.extraction.filters import exclude_distant_ris, filter_candidates
from app.services.extraction.rebalance import rebalance_categories
from app.services.extraction.selector import PriorityIndex, extract_from_ri
from app.services.extraction.stats import generate_farmer_stats, generate_ri_stats
from app.services.extraction.supplement import supplement_underfill
from app.services.extraction.validator import validate_extraction

logger = logging.getLogger(__name__)


def trim_overfill(
    selected_by_ri: dict[str, list[Parcel]],
    total: int,
    priority: PriorityIndex | None = None,
) -> list[Parcel]:
    """리별 목표 합이 총 목표를 넘으면 가장 많이 뽑힌 리부터 하나씩 덜어낸다

    각 리에서 가장 늦게 뽑힌 비우선 필지를 먼저 뺀다.
    """
    buckets = {ri: list(ps) for ri, ps in selected_by_ri.items()}
    count = sum(len(ps) for ps in buckets.values())

    while count > total:
        ri = max(buckets, key=lambda r: len(buckets[r]))
        bucket = buckets[ri]
        drop = len(bucket) - 1
        if priority is not None:
            for idx in range(len(bucket) - 1, -1, -1):
                if not priority.matches(bucket[idx]):
                    drop = idx
                    break
        bucket.pop(drop)
        count -= 1

    return [p for ps in buckets.values() for p in ps]


class ExtractionEngine:
    """공익직불제 필지 추출 엔진"""

    def extract(
        self,
        parcels: Sequence[Parcel],
        config: ExtractionConfig,
        reference_centroid: LatLng | None = None,
        priority: PriorityIndex | None = None,
    ) -> ExtractionResult:
        """추출 실행

        Args:
            parcels: 추출 가능 여부가 마킹된 마스터 필지
            config: 추출 설정
            reference_centroid: 대표필지 중심 (먼 리 판정/보충 리 순서 기준)
            priority: 대표필지 우선순위 (일치 필지 우선 선택 + 근접도 가점)

        Returns:
            ExtractionResult
        """
        seed = resolve_seed(config.random_seed)
        rng = create_rng(seed)
        logger.info(
            "추출 시작: %d필지, 목표 %d, 시드 %d", len(parcels), config.total_target, seed,
        )

        candidates = filter_candidates(parcels, config)
        candidates, distant_ris = exclude_distant_ris(candidates, config, reference_centroid)

        selected = self._select(candidates, config, rng, reference_centroid, priority)

        marked = [p.model_copy(update={"is_selected": True}) for p in selected]
        ri_stats = generate_ri_stats(parcels, marked, config, distant_ris)
        farmer_stats = generate_farmer_stats(parcels, marked)
        validation = validate_extraction(marked, config, ri_stats)

        logger.info(
            "추출 완료: %d필지 선택 (리 %d곳) | 오류 %d, 경고 %d",
            len(marked), len({p.ri for p in marked}),
            len(validation.errors), len(validation.warnings),
        )

        return ExtractionResult(
            selected_parcels=marked,
            ri_stats=ri_stats,
            farmer_stats=farmer_stats,
            validation=validation,
            seed=seed,
            target_total=config.total_target,
            excluded_distant_ris=distant_ris,
        )

    def _select(
        self,
        candidates: list[Parcel],
        config: ExtractionConfig,
        rng: Rng,
        reference_centroid: LatLng | None,
        priority: PriorityIndex | None,
    ) -> list[Parcel]:
        selected_by_ri: dict[str, list[Parcel]] = {}
        farmer_counts: Counter[str] = Counter()
        for ri, ri_parcels in group_by(candidates, lambda p: p.ri).items():
            picked = extract_from_ri(
                ri_parcels, config.target_for(ri), config, rng, priority, farmer_counts,
            )
            if picked:
                selected_by_ri[ri] = picked
                farmer_counts.update(p.farmer_id for p in picked)

        selected = trim_overfill(selected_by_ri, config.total_target, priority)
        logger.info("리별 추출: %d곳 → %d필지", len(selected_by_ri), len(selected))

        anchors = priority.coords if priority is not None else []
        if (
            config.underfill_policy == UnderfillPolicy.SUPPLEMENT
            and len(selected) < config.total_target
        ):
            selected = supplement_underfill(
                selected, candidates, config, rng, reference_centroid, anchors,
            )

        if config.enable_land_category_filter and config.land_category_ratios:
            taken = {p.key for p in selected}
            selected = rebalance_categories(
                selected,
                [p for p in candidates if p.key not in taken],
                config.land_category_ratios,
                config.total_target,
                config.max_per_farmer,
                rng,
            )

        return selected


def extract_parcels(
    parcels: Sequence[Parcel],
    config: ExtractionConfig,
    reference_centroid: LatLng | None = None,
    priority: PriorityIndex | None = None,
) -> ExtractionResult:
    """ExtractionEngine().extract() 단축 함수"""
    return ExtractionEngine().extract(parcels, config, reference_centroid, priority)
