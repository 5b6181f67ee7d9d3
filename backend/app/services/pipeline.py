"""분석 → 추출 파이프라인 오케스트레이터

분석: 마스터/대표필지에 기채취 여부 마킹 + 중복 감지 + 분포 통계
추출: 대표필지가 있으면 병합 추출, 없으면 공익직불제 단독 추출
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from app.models.extraction import ExtractionConfig, ExtractionResult
from app.models.parcel import Parcel
from app.services.duplicate_detector import DuplicateResult, find_duplicates, mark_eligibility
from app.services.extraction.engine import ExtractionEngine
from app.services.representative import RepresentativeReconciler

logger = logging.getLogger(__name__)


class Statistics(BaseModel):
    """분석 통계"""

    total_parcels: int = 0
    eligible_parcels: int = 0
    sampled_by_year: dict[int, int] = Field(default_factory=dict)  # 연도 → 중복 필지 수
    address_only_count: int = 0
    with_coords: int = 0
    representative_total: int = 0
    representative_eligible: int = 0
    ri_distribution: dict[str, int] = Field(default_factory=dict)  # 추출 가능 필지 기준
    land_category_distribution: dict[str, int] = Field(default_factory=dict)  # 추출 가능 필지 기준


@dataclass
class AnalysisResult:
    """분석 결과"""

    parcels: list[Parcel] = field(default_factory=list)
    representatives: list[Parcel] = field(default_factory=list)
    duplicates: DuplicateResult = field(default_factory=DuplicateResult)
    statistics: Statistics = field(default_factory=Statistics)


@dataclass
class ExtractionRun:
    """추출 실행 결과 (result와 error 중 하나만 채워짐)"""

    result: ExtractionResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def default_land_category_ratios(distribution: Mapping[str, int]) -> dict[str, float]:
    """지목 분포 → 기본 비율(%, 소수 첫째 자리)"""
    total = sum(distribution.values())
    if total == 0:
        return {}
    return {cat: round(count / total * 100, 1) for cat, count in distribution.items()}


def build_statistics(
    parcels: Sequence[Parcel],
    representatives: Sequence[Parcel],
    duplicates: DuplicateResult,
) -> Statistics:
    eligible = [p for p in parcels if p.is_eligible]
    return Statistics(
        total_parcels=len(parcels),
        eligible_parcels=len(eligible),
        sampled_by_year={year: duplicates.duplicate_count(year) for year in duplicates.duplicate_keys},
        address_only_count=duplicates.address_only_count,
        with_coords=sum(1 for p in parcels if p.coords is not None),
        representative_total=len(representatives),
        representative_eligible=sum(1 for p in representatives if p.is_eligible),
        ri_distribution=dict(Counter(p.ri for p in eligible)),
        land_category_distribution=dict(Counter(p.land_category for p in eligible)),
    )


class SamplingPipeline:
    """토양 시료 채취 필지 선정 파이프라인"""

    def __init__(
        self,
        engine: ExtractionEngine | None = None,
        reconciler: RepresentativeReconciler | None = None,
    ) -> None:
        self._engine = engine or ExtractionEngine()
        self._reconciler = reconciler or RepresentativeReconciler(self._engine)

    def analyze(
        self,
        master: Sequence[Parcel],
        sampled_by_year: Mapping[int, Sequence[Parcel]],
        representatives: Sequence[Parcel] = (),
    ) -> AnalysisResult:
        """기채취 대조 분석

        Args:
            master: 올해 마스터 필지
            sampled_by_year: {연도: 기채취 필지}
            representatives: 대표필지 (없으면 빈 목록)

        Returns:
            AnalysisResult (마킹된 새 필지 목록 + 중복 감지 + 통계)
        """
        duplicates = find_duplicates(master, sampled_by_year)
        parcels = mark_eligibility(master, sampled_by_year)
        reps = mark_eligibility(representatives, sampled_by_year)
        stats = build_statistics(parcels, reps, duplicates)

        logger.info(
            "분석 완료: 마스터 %d, 추출 가능 %d, 좌표 %d, 대표필지 %d (적격 %d)",
            stats.total_parcels, stats.eligible_parcels, stats.with_coords,
            stats.representative_total, stats.representative_eligible,
        )
        return AnalysisResult(
            parcels=parcels, representatives=reps, duplicates=duplicates, statistics=stats,
        )

    def run_extraction(
        self,
        parcels: Sequence[Parcel],
        config: ExtractionConfig,
        representatives: Sequence[Parcel] = (),
    ) -> ExtractionRun:
        """추출 실행: 예외를 던지지 않고 ExtractionRun.error로 돌려준다"""
        try:
            if representatives:
                result = self._reconciler.reconcile(parcels, representatives, config)
            else:
                result = self._engine.extract(parcels, config)
        except Exception as e:
            logger.error("추출 실패: %s", e, exc_info=True)
            return ExtractionRun(error=f"추출 실패: {e}")
        return ExtractionRun(result=result)
