"""대표필지 병합

대표필지(필수 포함 풀)와 공익직불제 추출을 하나의 결과로 합친다.

1. 적격성 분류: 본 추출과 같은 규칙 (기채취/제외 리/면적 하한)
2. 적격 대표필지 보강: 마스터에서 PNU → (농가번호, 필지번호) → 농가번호 순으로 찾아
   소유자 필드는 덮어쓰고, 나머지 필드와 raw_data는 비어 있을 때만 채운다.
3. 공익직불제 추출: 목표 = 공익직불제 목표, 기준점 = 대표필지 중심,
   대표필지 일치 필지 우선 + 대표필지 좌표 근접도 가점
4. 병합: 대표필지가 앞, 공익직불제 선택이 뒤. 겹침은 집계만 한다.
5. 탈락 대표필지 1건당 대체 필지 1건 (대표필지 중심에 가까운 순)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from app.models.extraction import (
    ExcludedRepresentative,
    ExtractionConfig,
    ExtractionResult,
    RepresentativeReport,
    ValidationMessage,
)
from app.models.parcel import UNCLASSIFIED, LatLng, Parcel, ParcelCategory
from app.services.geometry import haversine_distance
from app.services.random_source import create_rng, resolve_seed, shuffle
from app.services.spatial import calculate_centroid
from app.services.extraction.engine import ExtractionEngine
from app.services.extraction.filters import exclusion_reason, filter_candidates
from app.services.extraction.selector import PriorityIndex
from app.services.extraction.stats import generate_farmer_stats

logger = logging.getLogger(__name__)

# 마스터 값으로 항상 덮어쓰는 소유자 필드
OWNER_FIELDS = ("farmer_id", "farmer_name", "farmer_address")

# 비어 있을 때만 마스터 값으로 채우는 필드
FILL_FIELDS = (
    "pnu", "main_lot_num", "sub_lot_num", "address", "sido", "sigungu",
    "eubmyeondong", "coords", "area", "crop_type",
    "land_category_official", "land_category_actual",
)

# 대체 필지 난수 스트림 분리용
_SUBSTITUTE_SEED_SALT = 0x9E3779B9


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


class MasterIndex:
    """대표필지 → 마스터 필지 조회"""

    def __init__(self, master: Sequence[Parcel]) -> None:
        self._by_pnu: dict[str, Parcel] = {}
        self._by_key: dict[tuple[str, str], Parcel] = {}
        self._by_farmer: dict[str, Parcel] = {}
        for p in master:
            if p.pnu:
                self._by_pnu.setdefault(p.pnu, p)
            self._by_key.setdefault(p.key, p)
            self._by_farmer.setdefault(p.farmer_id, p)

    def lookup(self, rep: Parcel) -> Parcel | None:
        if rep.pnu and rep.pnu in self._by_pnu:
            return self._by_pnu[rep.pnu]
        if rep.key in self._by_key:
            return self._by_key[rep.key]
        return self._by_farmer.get(rep.farmer_id)


def enrich_representative(rep: Parcel, source: Parcel | None) -> Parcel:
    """마스터 필지 정보로 대표필지 보강 (새 레코드 반환)"""
    if source is None:
        return rep.model_copy()

    update: dict[str, Any] = {}
    for name in OWNER_FIELDS:
        value = getattr(source, name)
        if not _is_blank(value):
            update[name] = value
    for name in FILL_FIELDS:
        if _is_blank(getattr(rep, name)) and not _is_blank(getattr(source, name)):
            update[name] = getattr(source, name)
    if rep.ri == UNCLASSIFIED and source.ri != UNCLASSIFIED:
        update["ri"] = source.ri

    raw = dict(rep.raw_data)
    for k, v in source.raw_data.items():
        if _is_blank(raw.get(k)):
            raw[k] = v
    update["raw_data"] = raw
    return rep.model_copy(update=update)


def classify_representatives(
    reps: Sequence[Parcel],
    config: ExtractionConfig,
) -> tuple[list[Parcel], list[ExcludedRepresentative]]:
    """적격/탈락 분류 (본 추출과 같은 규칙)"""
    eligible: list[Parcel] = []
    excluded: list[ExcludedRepresentative] = []
    for rep in reps:
        reason = exclusion_reason(rep, config)
        if reason is None:
            eligible.append(rep)
        else:
            excluded.append(ExcludedRepresentative(
                farmer_id=rep.farmer_id, parcel_id=rep.parcel_id, reason=reason,
            ))
    return eligible, excluded


def public_payment_target(config: ExtractionConfig, representative_count: int) -> int:
    """공익직불제 목표 (미지정이면 총 목표 - 대표필지 수)"""
    if config.public_payment_target is not None:
        return config.public_payment_target
    return max(0, config.total_target - representative_count)


def _is_taken(parcel: Parcel, keys: set[tuple[str, str]], pnus: set[str]) -> bool:
    return parcel.key in keys or bool(parcel.pnu and parcel.pnu in pnus)


def pick_substitutes(
    pool: Sequence[Parcel],
    count: int,
    reference: LatLng | None,
    seed: int,
) -> list[Parcel]:
    """대체 필지: 기준점에 가까운 순, 좌표 없는 필지는 셔플 후 뒤에"""
    if count <= 0 or not pool:
        return []

    rng = create_rng(seed ^ _SUBSTITUTE_SEED_SALT)
    with_coords = [p for p in pool if p.coords is not None]
    without_coords = [p for p in pool if p.coords is None]

    if reference is not None:
        ranked = sorted(with_coords, key=lambda p: haversine_distance(reference, p.coords))
    else:
        ranked = shuffle(with_coords, rng)
    ranked.extend(shuffle(without_coords, rng))
    return ranked[:count]


class RepresentativeReconciler:
    """대표필지 + 공익직불제 통합 추출"""

    def __init__(self, engine: ExtractionEngine | None = None) -> None:
        self._engine = engine or ExtractionEngine()

    def reconcile(
        self,
        master: Sequence[Parcel],
        representatives: Sequence[Parcel],
        config: ExtractionConfig,
    ) -> ExtractionResult:
        """대표필지 병합 추출

        Args:
            master: 추출 가능 여부가 마킹된 마스터 필지
            representatives: 추출 가능 여부가 마킹된 대표필지
            config: 추출 설정 (total_target = 대표필지 포함 총 목표)

        Returns:
            대표필지가 앞에 오는 병합 결과 (representative_report 포함)
        """
        seed = resolve_seed(config.random_seed)

        eligible, excluded = classify_representatives(representatives, config)
        index = MasterIndex(master)
        enriched = [enrich_representative(rep, index.lookup(rep)) for rep in eligible]

        target = public_payment_target(config, len(representatives))
        general_config = config.model_copy(update={"total_target": target, "random_seed": seed})
        reference = calculate_centroid(enriched)
        priority = PriorityIndex.from_parcels(enriched)

        logger.info(
            "대표필지 %d건 (적격 %d, 탈락 %d) | 공익직불제 목표 %d",
            len(representatives), len(enriched), len(excluded), target,
        )
        general = self._engine.extract(master, general_config, reference, priority)

        rep_selected = [
            p.model_copy(update={
                "parcel_category": ParcelCategory.REPRESENTATIVE, "is_selected": True,
            })
            for p in enriched
        ]
        overlap = sum(1 for p in general.selected_parcels if priority.matches(p))

        taken_keys = {p.key for p in rep_selected} | {p.key for p in general.selected_parcels}
        taken_pnus = {p.pnu for p in rep_selected if p.pnu}
        taken_pnus |= {p.pnu for p in general.selected_parcels if p.pnu}
        pool = [
            p for p in filter_candidates(master, config)
            if not _is_taken(p, taken_keys, taken_pnus)
        ]
        substitutes = [
            p.model_copy(update={
                "parcel_category": ParcelCategory.REPRESENTATIVE, "is_selected": True,
            })
            for p in pick_substitutes(pool, len(excluded), reference, seed)
        ]
        shortfall = len(excluded) - len(substitutes)

        selected = rep_selected + substitutes + general.selected_parcels
        validation = general.validation.model_copy(deep=True)
        if overlap:
            validation.warnings.append(ValidationMessage(
                code="REPRESENTATIVE_OVERLAP",
                message=f"대표필지와 겹치는 공익직불제 선택 {overlap}건",
            ))
        if shortfall:
            validation.warnings.append(ValidationMessage(
                code="REPRESENTATIVE_SHORTFALL",
                message=f"탈락 대표필지 {len(excluded)}건 중 {shortfall}건 대체 불가",
            ))
        validation.is_valid = not validation.errors

        if excluded:
            logger.warning(
                "대표필지 탈락 %d건 → 대체 %d건, 부족 %d건",
                len(excluded), len(substitutes), shortfall,
            )

        return general.model_copy(update={
            "selected_parcels": selected,
            "farmer_stats": generate_farmer_stats(master, selected),
            "validation": validation,
            "seed": seed,
            "representative_report": RepresentativeReport(
                total=len(representatives),
                eligible=len(enriched),
                excluded=excluded,
                substituted=len(substitutes),
                shortfall=shortfall,
                overlap=overlap,
            ),
        })


def reconcile_representatives(
    master: Sequence[Parcel],
    representatives: Sequence[Parcel],
    config: ExtractionConfig,
) -> ExtractionResult:
    """RepresentativeReconciler().reconcile() 단축 함수"""
    return RepresentativeReconciler().reconcile(master, representatives, config)
