"""추출 5단계: 지목 비율 재조정

목표 = floor(총 목표 × 비율 / 비율 합), 마지막 지목이 나머지를 흡수한다.
1. 초과 지목: 셔플 후 목표 수만 남기고 잘라낸다 (비율 표에 없는 지목은 전부 제외)
2. 부족 지목: 같은 지목의 미선택 후보 → 잘라낸 필지 순으로 채운다
   (농가당 최대 수 유지)
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Mapping, Sequence

from app.models.parcel import Parcel
from app.services.grouping import group_by
from app.services.random_source import Rng, shuffle

logger = logging.getLogger(__name__)

_FLOOR_EPSILON = 1e-9


def compute_category_targets(ratios: Mapping[str, float], total: int) -> dict[str, int]:
    """지목별 목표 수 (비율 0 이하 지목은 제외, 합계 = total)"""
    positive = [(cat, r) for cat, r in ratios.items() if r > 0]
    ratio_sum = sum(r for _, r in positive)
    if not positive or ratio_sum <= 0:
        return {}

    targets: dict[str, int] = {}
    assigned = 0
    for cat, ratio in positive[:-1]:
        count = math.floor(total * ratio / ratio_sum + _FLOOR_EPSILON)
        targets[cat] = count
        assigned += count
    targets[positive[-1][0]] = max(0, total - assigned)
    return targets


def rebalance_categories(
    selected: Sequence[Parcel],
    remainder: Sequence[Parcel],
    ratios: Mapping[str, float],
    total: int,
    max_per_farmer: int,
    rng: Rng,
) -> list[Parcel]:
    """지목 비율 재조정

    Args:
        selected: 현재 선택
        remainder: 보충용 후보 (선택되지 않은 후보)
        ratios: 지목 → 비율
        total: 총 목표
        max_per_farmer: 농가당 최대 수
        rng: 난수 생성기
    """
    targets = compute_category_targets(ratios, total)
    if not targets:
        return list(selected)

    kept_ids: set[int] = set()
    trimmed: list[Parcel] = []
    for cat, members in group_by(selected, lambda p: p.land_category).items():
        target = targets.get(cat, 0)
        if len(members) > target:
            shuffled = shuffle(members, rng)
            kept_ids.update(id(p) for p in shuffled[:target])
            trimmed.extend(shuffled[target:])
        else:
            kept_ids.update(id(p) for p in members)

    result = [p for p in selected if id(p) in kept_ids]

    counts = Counter(p.land_category for p in result)
    farmer_counts = Counter(p.farmer_id for p in result)
    selected_keys = {p.key for p in selected}
    taken = {p.key for p in result}
    remainder_by_cat = group_by(
        [p for p in remainder if p.key not in selected_keys], lambda p: p.land_category,
    )
    trimmed_by_cat = group_by(trimmed, lambda p: p.land_category)

    for cat, target in targets.items():
        deficit = target - counts[cat]
        if deficit <= 0:
            continue
        sources = (shuffle(remainder_by_cat.get(cat, []), rng), trimmed_by_cat.get(cat, []))
        for source in sources:
            for parcel in source:
                if deficit <= 0:
                    break
                if parcel.key in taken or farmer_counts[parcel.farmer_id] >= max_per_farmer:
                    continue
                result.append(parcel)
                taken.add(parcel.key)
                farmer_counts[parcel.farmer_id] += 1
                deficit -= 1
        if deficit > 0:
            logger.warning("지목 '%s' 목표 %d 중 %d건 부족", cat, target, deficit)

    logger.info(
        "지목 비율 재조정: %d → %d필지 (잘라냄 %d)", len(selected), len(result), len(trimmed),
    )
    return result
