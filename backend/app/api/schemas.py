"""API 요청/응답 스키마

내부 모델(Parcel, ExtractionResult 등)을 요청/응답으로 감싼다.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.config import settings
from app.models.extraction import ExtractionConfig, ExtractionResult
from app.models.parcel import Parcel, ParcelCategory
from app.services.column_mapper import ColumnMapping
from app.services.pipeline import AnalysisResult, Statistics, default_land_category_ratios


def default_extraction_config() -> ExtractionConfig:
    """환경설정 기본값으로 만든 추출 설정"""
    return ExtractionConfig(
        total_target=settings.DEFAULT_TOTAL_TARGET,
        per_ri_target=settings.DEFAULT_PER_RI_TARGET,
        min_per_farmer=settings.DEFAULT_MIN_PER_FARMER,
        max_per_farmer=settings.DEFAULT_MAX_PER_FARMER,
        min_area_m2=settings.MIN_PARCEL_AREA_M2,
    )


# ── 컬럼 매핑 ──────────────────────────────────────────────────


class ColumnMappingRequest(BaseModel):
    """원본 행 → 필지 변환 요청"""

    rows: list[dict[str, Any]]
    mapping: ColumnMapping | None = None  # None = 헤더 자동 매칭
    file_source: str = ""
    year: int | None = None  # 기채취 파일이면 채취 연도
    category: ParcelCategory = ParcelCategory.PUBLIC_PAYMENT


class ColumnMappingResponse(BaseModel):
    """변환 결과"""

    mapping: ColumnMapping
    parcels: list[Parcel]
    total: int


# ── 기채취 분석 ────────────────────────────────────────────────


class EligibilityRequest(BaseModel):
    """기채취 대조 요청"""

    master: list[Parcel]
    sampled_by_year: dict[int, list[Parcel]] = Field(default_factory=dict)
    representatives: list[Parcel] = Field(default_factory=list)


class EligibilityResponse(BaseModel):
    """기채취 대조 응답"""

    parcels: list[Parcel]
    representatives: list[Parcel]
    statistics: Statistics
    address_only_keys: list[str] = Field(default_factory=list)
    default_land_category_ratios: dict[str, float] = Field(default_factory=dict)


def analysis_to_response(analysis: AnalysisResult) -> EligibilityResponse:
    return EligibilityResponse(
        parcels=analysis.parcels,
        representatives=analysis.representatives,
        statistics=analysis.statistics,
        address_only_keys=sorted(analysis.duplicates.address_only_keys),
        default_land_category_ratios=default_land_category_ratios(
            analysis.statistics.land_category_distribution,
        ),
    )


# ── 추출 ──────────────────────────────────────────────────────


class ExtractionRequest(BaseModel):
    """추출 요청 (필지는 기채취 마킹이 끝난 상태)"""

    parcels: list[Parcel]
    representatives: list[Parcel] = Field(default_factory=list)
    config: ExtractionConfig = Field(default_factory=default_extraction_config)


class ExtractionResponse(BaseModel):
    """추출 응답"""

    selected_count: int
    seed: int
    is_valid: bool
    result: ExtractionResult


def result_to_response(result: ExtractionResult) -> ExtractionResponse:
    return ExtractionResponse(
        selected_count=len(result.selected_parcels),
        seed=result.seed,
        is_valid=result.validation.is_valid,
        result=result,
    )
