"""필지 데이터 모델

엑셀 행을 컬럼 매핑한 결과를 정규화한 Pydantic 모델.
추출 엔진은 이 모델을 절대 제자리에서 수정하지 않는다 (model_copy로 새 레코드 생성).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

UNCLASSIFIED = "미분류"  # 리/지목을 알 수 없을 때의 버킷


class LatLng(BaseModel):
    """위경도 좌표"""

    lat: float
    lng: float


class ParcelCategory(str, Enum):
    """필지 출처 구분"""

    PUBLIC_PAYMENT = "public-payment"  # 공익직불제 (일반 후보 풀)
    REPRESENTATIVE = "representative"  # 대표필지 (필수 포함 풀)


class Parcel(BaseModel):
    """조사 대상 필지 1건"""

    # 식별자
    farmer_id: str  # 경영체(농가)번호
    parcel_id: str  # 필지번호 (본번-부번 조합일 수 있음)
    farmer_name: str = ""
    main_lot_num: str = ""  # 본번
    sub_lot_num: str = ""  # 부번
    pnu: str = ""  # 필지고유번호 (19자리, 있으면 파일 간 매칭에 우선 사용)

    # 위치
    address: str = ""  # 필지 주소
    farmer_address: str = ""  # 경영체 주소
    sido: str = ""
    sigungu: str = ""
    eubmyeondong: str = ""
    ri: str = UNCLASSIFIED  # 리: 추출 전 과정의 지역 그룹 키
    coords: LatLng | None = None  # None = 아직 지오코딩 안 됨

    # 속성
    area: float | None = None  # 면적 (㎡)
    crop_type: str = ""
    land_category_official: str = ""  # 공부지목
    land_category_actual: str = ""  # 실지목

    # 채취 이력 / 파생 플래그
    sampled_years: list[int] = Field(default_factory=list)
    is_eligible: bool = True
    is_selected: bool = False
    parcel_category: ParcelCategory = ParcelCategory.PUBLIC_PAYMENT

    file_source: str = ""
    raw_data: dict[str, Any] = Field(default_factory=dict)  # 매핑되지 않은 원본 컬럼

    @property
    def key(self) -> tuple[str, str]:
        """선택 단위 식별 키 (farmer_id, parcel_id)"""
        return (self.farmer_id, self.parcel_id)

    @property
    def land_category(self) -> str:
        """비율 조정용 지목 (실지목 → 공부지목 → 미분류)"""
        return self.land_category_actual or self.land_category_official or UNCLASSIFIED
