"""추출 설정/결과 모델

ExtractionConfig: 추출 1회를 제어하는 불변 입력
ExtractionResult: 추출 1회의 산출물 (선택 필지 + 리/농가 통계 + 검증 결과)
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from app.models.parcel import Parcel


class ExtractionMethod(str, Enum):
    """추출 방식 (random 외에는 사전 정렬 변형)"""

    RANDOM = "random"
    AREA = "area"  # 면적 큰 순
    FARMER_ID = "farmer_id"  # 농가번호 순


class UnderfillPolicy(str, Enum):
    """리 목표 미달 시 처리"""

    SUPPLEMENT = "supplement"  # 다른 리에서 보충
    SKIP = "skip"  # 부족분 그대로 수용


class SpatialConfig(BaseModel):
    """공간 필터 설정"""

    enable_spatial_filter: bool = True  # False면 단순 셔플
    max_ri_distance_km: float = Field(default=0.0, ge=0)  # 0 = 자동 임계값
    max_parcel_distance_km: float = Field(default=1.0, gt=0)  # 선택 필지 간 응집 반경
    density_weight: float = Field(default=0.7, ge=0, le=1)  # 0=밀집도 무시, 1=항상 밀집도 우선


class ExtractionConfig(BaseModel):
    """추출 설정"""

    total_target: int = Field(default=700, ge=0)
    public_payment_target: int | None = Field(default=None, ge=0)  # None = total - 대표필지 수
    per_ri_target: int = Field(default=10, ge=0)
    min_per_farmer: int = Field(default=1, ge=0)
    max_per_farmer: int = Field(default=2, ge=1)
    extraction_method: ExtractionMethod = ExtractionMethod.RANDOM
    underfill_policy: UnderfillPolicy = UnderfillPolicy.SUPPLEMENT
    random_seed: int | None = None  # None = 현재 시각(ms)으로 시드
    excluded_ris: list[str] = Field(default_factory=list)
    ri_target_overrides: dict[str, int] = Field(default_factory=dict)
    land_category_ratios: dict[str, float] = Field(default_factory=dict)  # 지목 → 비율(%)
    enable_land_category_filter: bool = False
    min_area_m2: float = Field(default=100.0, ge=0)
    spatial_config: SpatialConfig | None = None

    @model_validator(mode="after")
    def _check_farmer_caps(self) -> ExtractionConfig:
        if self.min_per_farmer > self.max_per_farmer:
            raise ValueError(
                f"min_per_farmer({self.min_per_farmer})가 "
                f"max_per_farmer({self.max_per_farmer})보다 큽니다"
            )
        return self

    def target_for(self, ri: str) -> int:
        """리별 목표 (개별 설정 우선)"""
        return self.ri_target_overrides.get(ri, self.per_ri_target)

    @property
    def spatial_enabled(self) -> bool:
        return bool(self.spatial_config and self.spatial_config.enable_spatial_filter)


class RiStat(BaseModel):
    """리별 통계"""

    ri: str
    total_count: int
    eligible_count: int
    selected_count: int
    target_count: int


class FarmerStat(BaseModel):
    """농가별 통계"""

    farmer_id: str
    farmer_name: str = ""
    total_parcels: int  # 입력 전체에서 이 농가의 필지 수
    selected_parcels: int


class ValidationMessage(BaseModel):
    """검증 메시지"""

    code: str  # 예: "TOTAL_MISMATCH", "RI_UNDERFILL"
    message: str
    details: str = ""


class ValidationResult(BaseModel):
    """검증 결과 (errors가 비어 있으면 유효)"""

    is_valid: bool = True
    warnings: list[ValidationMessage] = Field(default_factory=list)
    errors: list[ValidationMessage] = Field(default_factory=list)


class ExcludedRepresentative(BaseModel):
    """적격성 탈락 대표필지"""

    farmer_id: str
    parcel_id: str
    reason: str


class RepresentativeReport(BaseModel):
    """대표필지 병합 보고"""

    total: int = 0
    eligible: int = 0
    excluded: list[ExcludedRepresentative] = Field(default_factory=list)
    substituted: int = 0  # 탈락분 대체 필지 수
    shortfall: int = 0  # 대체 필지를 찾지 못한 수
    overlap: int = 0  # 공익직불제 추출 결과와 겹치는 대표필지 수


class ExtractionResult(BaseModel):
    """추출 결과"""

    selected_parcels: list[Parcel] = Field(default_factory=list)
    ri_stats: list[RiStat] = Field(default_factory=list)
    farmer_stats: list[FarmerStat] = Field(default_factory=list)
    validation: ValidationResult = Field(default_factory=ValidationResult)
    seed: int = 0  # 실제 사용된 시드 (재현용)
    target_total: int | None = None  # 검증 기준 총 목표 (대표필지 병합 시 공익직불제 목표, 0 가능)
    excluded_distant_ris: list[str] = Field(default_factory=list)
    representative_report: RepresentativeReport | None = None
