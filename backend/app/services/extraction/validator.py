"""추출 결과 검증

오류 (is_valid=False):
  TOTAL_MISMATCH       총 선택 수가 목표와 10 초과 차이
  FARMER_OVER_LIMIT    농가당 최대 수 초과
  SAMPLED_INCLUDED     기채취 필지 포함
  EXCLUDED_RI_INCLUDED 제외 리 필지 포함
  AREA_BELOW_MIN       면적 하한 미달 필지 포함
경고:
  TOTAL_MISMATCH       목표와 10 이하 차이
  RI_UNDERFILL         공급이 충분했는데 목표 미달인 리
  DISTANT_PARCELS      응집 반경 초과 필지 쌍 (공간 필터 활성 시, 전체 선택 대상)
  CATEGORY_RATIO_DRIFT 지목 비율이 목표 비율과 5%p 초과 차이
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from app.models.extraction import (
    ExtractionConfig,
    RiStat,
    ValidationMessage,
    ValidationResult,
)
from app.models.parcel import Parcel
from app.services.spatial import find_distant_pairs

TOTAL_MISMATCH_TOLERANCE = 10
CATEGORY_DRIFT_TOLERANCE_PCT = 5.0
MAX_DETAIL_ITEMS = 5


def _preview(items: Sequence[str]) -> str:
    head = ", ".join(items[:MAX_DETAIL_ITEMS])
    if len(items) > MAX_DETAIL_ITEMS:
        return f"{head} 외 {len(items) - MAX_DETAIL_ITEMS}건"
    return head


def _check_total(selected: Sequence[Parcel], target: int, result: ValidationResult) -> None:
    diff = abs(len(selected) - target)
    if diff == 0:
        return
    msg = ValidationMessage(
        code="TOTAL_MISMATCH",
        message=f"총 선택 {len(selected)}건 / 목표 {target}건 (차이 {diff})",
    )
    if diff > TOTAL_MISMATCH_TOLERANCE:
        result.errors.append(msg)
    else:
        result.warnings.append(msg)


def _check_farmer_limit(
    selected: Sequence[Parcel], max_per_farmer: int, result: ValidationResult,
) -> None:
    over = [
        f"{farmer_id}({count})"
        for farmer_id, count in Counter(p.farmer_id for p in selected).items()
        if count > max_per_farmer
    ]
    if over:
        result.errors.append(ValidationMessage(
            code="FARMER_OVER_LIMIT",
            message=f"농가당 최대 {max_per_farmer}필지 초과 농가 {len(over)}곳",
            details=_preview(over),
        ))


def _check_sampled(selected: Sequence[Parcel], result: ValidationResult) -> None:
    sampled = [
        f"{p.farmer_id}/{p.parcel_id}"
        for p in selected
        if p.sampled_years or not p.is_eligible
    ]
    if sampled:
        result.errors.append(ValidationMessage(
            code="SAMPLED_INCLUDED",
            message=f"기채취 필지 {len(sampled)}건 포함",
            details=_preview(sampled),
        ))


def _check_excluded_ris(
    selected: Sequence[Parcel], config: ExtractionConfig, result: ValidationResult,
) -> None:
    excluded = set(config.excluded_ris)
    hits = sorted({p.ri for p in selected if p.ri in excluded})
    if hits:
        result.errors.append(ValidationMessage(
            code="EXCLUDED_RI_INCLUDED",
            message=f"제외 리 필지 포함 ({len(hits)}개 리)",
            details=_preview(hits),
        ))


def _check_area(
    selected: Sequence[Parcel], config: ExtractionConfig, result: ValidationResult,
) -> None:
    small = [
        f"{p.farmer_id}/{p.parcel_id}"
        for p in selected
        if p.area is not None and p.area < config.min_area_m2
    ]
    if small:
        result.errors.append(ValidationMessage(
            code="AREA_BELOW_MIN",
            message=f"면적 {config.min_area_m2:,.0f}㎡ 미만 필지 {len(small)}건 포함",
            details=_preview(small),
        ))


def _check_ri_underfill(ri_stats: Sequence[RiStat], result: ValidationResult) -> None:
    for stat in ri_stats:
        if stat.target_count <= 0:
            continue
        if stat.selected_count < stat.target_count <= stat.eligible_count:
            result.warnings.append(ValidationMessage(
                code="RI_UNDERFILL",
                message=f"{stat.ri}: {stat.selected_count}/{stat.target_count}건 선택",
                details=f"추출 가능 {stat.eligible_count}건",
            ))


def _check_distant_pairs(
    selected: Sequence[Parcel], config: ExtractionConfig, result: ValidationResult,
) -> None:
    if not config.spatial_enabled:
        return
    max_dist = config.spatial_config.max_parcel_distance_km
    pairs = find_distant_pairs(selected, max_dist)
    if not pairs:
        return
    farthest = max(pairs, key=lambda pair: pair.dist_km)
    result.warnings.append(ValidationMessage(
        code="DISTANT_PARCELS",
        message=f"{max_dist}km 초과 필지 쌍 {len(pairs)}건",
        details=(
            f"최대 {farthest.dist_km:.2f}km "
            f"({farthest.a.ri} {farthest.a.parcel_id} ↔ {farthest.b.ri} {farthest.b.parcel_id})"
        ),
    ))


def _check_category_ratio(
    selected: Sequence[Parcel], config: ExtractionConfig, result: ValidationResult,
) -> None:
    if not config.enable_land_category_filter or not selected:
        return
    ratios = {cat: r for cat, r in config.land_category_ratios.items() if r > 0}
    ratio_sum = sum(ratios.values())
    if ratio_sum <= 0:
        return

    counts = Counter(p.land_category for p in selected)
    for cat, ratio in ratios.items():
        expected_pct = ratio / ratio_sum * 100
        actual_pct = counts.get(cat, 0) / len(selected) * 100
        if abs(actual_pct - expected_pct) > CATEGORY_DRIFT_TOLERANCE_PCT:
            result.warnings.append(ValidationMessage(
                code="CATEGORY_RATIO_DRIFT",
                message=f"지목 '{cat}' 비율 {actual_pct:.1f}% (목표 {expected_pct:.1f}%)",
            ))


def validate_extraction(
    selected: Sequence[Parcel],
    config: ExtractionConfig,
    ri_stats: Sequence[RiStat] = (),
    target_total: int | None = None,
) -> ValidationResult:
    """추출 결과 검증

    Args:
        selected: 선택 필지
        config: 추출 설정
        ri_stats: 리별 통계 (목표 미달 경고용)
        target_total: 총 목표 (기본값 config.total_target)
    """
    result = ValidationResult()
    target = config.total_target if target_total is None else target_total

    _check_total(selected, target, result)
    _check_farmer_limit(selected, config.max_per_farmer, result)
    _check_sampled(selected, result)
    _check_excluded_ris(selected, config, result)
    _check_area(selected, config, result)
    _check_ri_underfill(ri_stats, result)
    _check_distant_pairs(selected, config, result)
    _check_category_ratio(selected, config, result)

    result.is_valid = not result.errors
    return result
