"""리/농가별 통계"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from app.models.extraction import ExtractionConfig, FarmerStat, RiStat
from app.models.parcel import Parcel
from app.services.grouping import group_by
from app.services.extraction.filters import exclusion_reason


def generate_ri_stats(
    parcels: Sequence[Parcel],
    selected: Sequence[Parcel],
    config: ExtractionConfig,
    inactive_ris: Iterable[str] = (),
) -> list[RiStat]:
    """입력 전체의 리별 통계

    eligible_count는 후보 필터(기채취/제외 리/면적 하한)를 통과한 필지 수.
    제외 리와 먼 리로 빠진 리(inactive_ris)는 목표 0으로 기록한다.
    """
    inactive = set(config.excluded_ris) | set(inactive_ris)
    selected_counts = Counter(p.ri for p in selected)

    return [
        RiStat(
            ri=ri,
            total_count=len(members),
            eligible_count=sum(1 for p in members if exclusion_reason(p, config) is None),
            selected_count=selected_counts.get(ri, 0),
            target_count=0 if ri in inactive else config.target_for(ri),
        )
        for ri, members in group_by(parcels, lambda p: p.ri).items()
    ]


def generate_farmer_stats(
    parcels: Sequence[Parcel],
    selected: Sequence[Parcel],
) -> list[FarmerStat]:
    """선택된 농가별 통계 (total_parcels는 입력 전체 기준)"""
    totals = Counter(p.farmer_id for p in parcels)
    stats = []
    for farmer_id, members in group_by(selected, lambda p: p.farmer_id).items():
        name = next((p.farmer_name for p in members if p.farmer_name), "")
        stats.append(FarmerStat(
            farmer_id=farmer_id,
            farmer_name=name,
            total_parcels=max(totals.get(farmer_id, 0), len(members)),
            selected_parcels=len(members),
        ))
    return stats
