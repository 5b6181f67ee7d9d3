"""시료 채취 필지 선정 API 라우터

엔드포인트:
- POST /api/v1/parcels/mapping: 원본 행 → 필지 변환 (컬럼 매핑)
- POST /api/v1/eligibility     : 기채취 대조 + 분포 통계
- POST /api/v1/extractions     : 필지 추출 (대표필지 병합 포함)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_pipeline
from app.api.schemas import (
    ColumnMappingRequest,
    ColumnMappingResponse,
    EligibilityRequest,
    EligibilityResponse,
    ExtractionRequest,
    ExtractionResponse,
    analysis_to_response,
    result_to_response,
)
from app.services.column_mapper import (
    ColumnMappingError,
    apply_column_mapping,
    build_initial_mapping,
)
from app.services.pipeline import SamplingPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["sampling"])


@router.post("/parcels/mapping", response_model=ColumnMappingResponse)
def map_columns(request: ColumnMappingRequest):
    """원본 행을 필지로 변환

    mapping을 생략하면 첫 행의 헤더로 자동 매칭한다.
    """
    headers = list(request.rows[0].keys()) if request.rows else []
    mapping = request.mapping or build_initial_mapping(headers)

    try:
        parcels = apply_column_mapping(
            request.rows,
            mapping,
            file_source=request.file_source,
            year=request.year,
            category=request.category,
        )
    except ColumnMappingError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return ColumnMappingResponse(mapping=mapping, parcels=parcels, total=len(parcels))


@router.post("/eligibility", response_model=EligibilityResponse)
def check_eligibility(
    request: EligibilityRequest,
    pipeline: SamplingPipeline = Depends(get_pipeline),
):
    """기채취 대조 분석"""
    analysis = pipeline.analyze(
        request.master, request.sampled_by_year, request.representatives,
    )
    return analysis_to_response(analysis)


@router.post("/extractions", response_model=ExtractionResponse)
def run_extraction(
    request: ExtractionRequest,
    pipeline: SamplingPipeline = Depends(get_pipeline),
):
    """필지 추출

    추출 중 예기치 못한 오류는 500으로 반환한다.
    """
    run = pipeline.run_extraction(request.parcels, request.config, request.representatives)
    if run.error is not None:
        raise HTTPException(status_code=500, detail=run.error)
    return result_to_response(run.result)
