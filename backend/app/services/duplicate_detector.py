"""기채취 중복 감지 + 추출 가능 여부 마킹

2026 마스터 - 2024 기채취 - 2025 기채취 = 추출 대상

매칭 전략 (우선순위):
0. PNU: 양쪽 모두 PNU가 있을 때 (주소 표기가 달라도 확정 매칭)
1. (농가번호, 필지번호) 복합 키: 연도별 셋
2. 정규화 주소 단독: 전 연도 공용 셋 (주소만 일치하는 건은 집계만 하고
   연도 플래그에는 반영하지 않음. 서로 다른 농가의 주소 충돌 가능성 때문)
3. (농가번호, 정규화 주소): 연도별 셋

연도 Y 중복 = Y의 0 / 1 / 3단계 중 하나라도 매칭.
기채취 풀은 읽기만 하고 수정하지 않는다.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from app.models.parcel import Parcel
from app.services.address_parser import normalize_address

logger = logging.getLogger(__name__)


@dataclass
class SampledKeySets:
    """연도별 기채취 키 셋"""

    pnu: set[str] = field(default_factory=set)
    farmer_parcel: set[tuple[str, str]] = field(default_factory=set)
    farmer_address: set[tuple[str, str]] = field(default_factory=set)


@dataclass
class DuplicateResult:
    """중복 감지 결과"""

    duplicate_keys: dict[int, set[str]] = field(default_factory=dict)  # 연도 → 추적 키
    eligible_count: int = 0
    address_only_count: int = 0  # 주소만 일치 (연도 플래그 미반영, 확인 필요)
    address_only_keys: set[str] = field(default_factory=set)

    def duplicate_count(self, year: int) -> int:
        return len(self.duplicate_keys.get(year, set()))


def tracking_key(parcel: Parcel) -> str:
    """필지 추적 키 (PNU 우선, 없으면 농가번호+필지번호)"""
    if parcel.pnu:
        return f"pnu:{parcel.pnu}"
    return f"id:{parcel.farmer_id}__{parcel.parcel_id}"


def build_sampled_key_sets(parcels: Sequence[Parcel]) -> SampledKeySets:
    """기채취 풀 → 키 셋"""
    keys = SampledKeySets()
    for p in parcels:
        if p.pnu:
            keys.pnu.add(p.pnu)
        if p.farmer_id and p.parcel_id:
            keys.farmer_parcel.add((p.farmer_id, p.parcel_id))
        norm = normalize_address(p.address)
        if p.farmer_id and norm:
            keys.farmer_address.add((p.farmer_id, norm))
    return keys


def build_shared_address_set(sampled_by_year: Mapping[int, Sequence[Parcel]]) -> set[str]:
    """2단계용 정규화 주소 셋 (전 연도 공용)"""
    addresses: set[str] = set()
    for parcels in sampled_by_year.values():
        for p in parcels:
            norm = normalize_address(p.address)
            if norm:
                addresses.add(norm)
    return addresses


def is_matched(parcel: Parcel, keys: SampledKeySets) -> bool:
    """마스터 필지가 해당 연도 기채취 셋에 매칭되는지 (0/1/3단계)"""
    if parcel.pnu and parcel.pnu in keys.pnu:
        return True
    if (parcel.farmer_id, parcel.parcel_id) in keys.farmer_parcel:
        return True
    norm = normalize_address(parcel.address)
    return bool(norm) and (parcel.farmer_id, norm) in keys.farmer_address


def _matched_years(
    parcel: Parcel,
    year_keys: Mapping[int, SampledKeySets],
) -> list[int]:
    return sorted(year for year, keys in year_keys.items() if is_matched(parcel, keys))


def find_duplicates(
    master: Sequence[Parcel],
    sampled_by_year: Mapping[int, Sequence[Parcel]],
) -> DuplicateResult:
    """중복 필지 감지

    Args:
        master: 올해 마스터 후보 풀
        sampled_by_year: {연도: 해당 연도 기채취 필지}

    Returns:
        DuplicateResult
    """
    year_keys = {year: build_sampled_key_sets(ps) for year, ps in sampled_by_year.items()}
    shared_addresses = build_shared_address_set(sampled_by_year)

    logger.info(
        "[중복감지] 마스터: %d | %s",
        len(master),
        " | ".join(
            f"{year} ID: {len(k.farmer_parcel)}, PNU: {len(k.pnu)}"
            for year, k in year_keys.items()
        ),
    )

    result = DuplicateResult(duplicate_keys={year: set() for year in year_keys})
    for parcel in master:
        key = tracking_key(parcel)
        years = _matched_years(parcel, year_keys)
        for year in years:
            result.duplicate_keys[year].add(key)
        if years:
            continue
        result.eligible_count += 1
        if normalize_address(parcel.address) in shared_addresses:
            result.address_only_keys.add(key)

    result.address_only_count = len(result.address_only_keys)

    logger.info(
        "[중복감지] %s | 추출가능: %d | 주소만 일치: %d",
        " | ".join(f"{y} 중복: {result.duplicate_count(y)}" for y in year_keys),
        result.eligible_count,
        result.address_only_count,
    )
    if result.address_only_count:
        logger.warning(
            "주소만 일치하는 필지 %d건: 농가번호/필지번호가 달라 추출 가능으로 분류됨",
            result.address_only_count,
        )
    return result


def mark_eligibility(
    master: Sequence[Parcel],
    sampled_by_year: Mapping[int, Sequence[Parcel]],
) -> list[Parcel]:
    """마스터 필지에 sampled_years / is_eligible 마킹 (새 레코드 반환)

    필지별로 직접 매칭 연도를 계산하므로 추적 키가 겹치는 필지끼리
    플래그가 섞이지 않는다.
    """
    year_keys = {year: build_sampled_key_sets(ps) for year, ps in sampled_by_year.items()}

    marked: list[Parcel] = []
    for parcel in master:
        years = _matched_years(parcel, year_keys)
        marked.append(parcel.model_copy(update={
            "sampled_years": years,
            "is_eligible": not years,
        }))
    return marked
