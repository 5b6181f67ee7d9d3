"""컬럼 매핑: 엑셀 원본 행(dict) → Parcel

파일 파싱은 호출자 책임이다. 이 모듈은 헤더 → 시스템 필드 자동 매칭과
매핑 적용(행 → Parcel 변환)만 담당한다.

원본 행은 자유 형식 dict이므로 필드 조회는 `first_non_empty()` 하나로 통일한다
(여러 후보 키 중 처음으로 값이 있는 키를 사용).

사용:
    mapping = build_initial_mapping(headers)
    parcels = apply_column_mapping(rows, mapping, file_source="2026_마스터.xlsx")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel

from app.models.parcel import UNCLASSIFIED, Parcel, ParcelCategory
from app.services.address_parser import (
    format_lot_number,
    parse_eubmyeondong,
    parse_ri,
    parse_sido,
    parse_sigungu,
)

logger = logging.getLogger(__name__)


class ColumnMappingError(Exception):
    """필수 필드 매핑 누락"""


class ColumnMapping(BaseModel):
    """시스템 필드 → 원본 헤더명 (빈 문자열 = 미매핑)"""

    farmer_id: str = ""
    farmer_name: str = ""
    parcel_id: str = ""
    main_lot_num: str = ""  # 본번 (분리형)
    sub_lot_num: str = ""  # 부번 (분리형)
    parcel_id_mode: Literal["single", "split"] = "single"
    address: str = ""
    farmer_address: str = ""
    sido: str = ""
    sigungu: str = ""
    eubmyeondong: str = ""
    ri: str = ""
    area: str = ""
    crop_type: str = ""
    land_category_official: str = ""
    land_category_actual: str = ""
    pnu: str = ""

    def mapped_headers(self) -> set[str]:
        return {
            v for k, v in self.model_dump().items()
            if k != "parcel_id_mode" and v
        }


@dataclass(frozen=True)
class SystemField:
    """자동 매칭용 시스템 필드 정의"""

    key: str
    label: str
    required: bool
    keywords: tuple[str, ...]


SYSTEM_FIELDS: list[SystemField] = [
    SystemField("farmer_id", "농가번호", True, ("농가번호", "경영체번호", "농가id", "농가 번호", "농가코드")),
    SystemField("farmer_name", "농가명", False, ("농가명", "경영체명", "농가 이름", "농가이름", "성명", "이름")),
    SystemField("parcel_id", "필지번호", True, ("필지번호", "필지 번호", "필지id", "필지코드", "지번")),
    SystemField("pnu", "PNU", False, ("pnu", "필지고유번호", "고유번호")),
    SystemField("farmer_address", "경영체 주소", False, ("경영체주소", "농가주소", "주민등록주소")),
    SystemField("address", "주소", True, ("필지주소", "주소", "소재지", "지번주소", "소재")),
    SystemField("sido", "시도", False, ("시도", "시/도")),
    SystemField("ri", "리명", False, ("리명", "리 명", "마을", "법정리", "행정리")),
    SystemField("sigungu", "시군구", False, ("시군구", "시/군/구", "시군", "군구")),
    SystemField("eubmyeondong", "읍면동", False, ("읍면동", "읍/면/동", "읍면", "면동")),
    SystemField("area", "면적", False, ("면적", "넓이", "재배면적", "경작면적", "규모")),
    SystemField("crop_type", "작물", False, ("작물", "작목", "품목", "품종", "재배작물")),
    SystemField("land_category_official", "공부지목", False, ("공부지목", "공부상지목")),
    SystemField("land_category_actual", "실지목", False, ("실지목", "실제지목", "현황지목")),
]

REQUIRED_FIELDS = ("farmer_id", "parcel_id", "address")

_EMPTY_MARKERS = frozenset({"", "none", "nan", "null"})


def _squash(text: str) -> str:
    return "".join(text.split()).lower()


def auto_match(headers: Sequence[str], keywords: Iterable[str]) -> str:
    """헤더 중 키워드를 포함하는 첫 헤더 (공백/대소문자 무시)"""
    keywords = list(keywords)
    for header in headers:
        squashed = _squash(header)
        for kw in keywords:
            if _squash(kw) in squashed:
                return header
    return ""


def build_initial_mapping(
    headers: Sequence[str],
    existing: ColumnMapping | None = None,
) -> ColumnMapping:
    """기존 매핑을 유지하면서 비어 있는 필드만 자동 매칭

    한 헤더는 한 필드에만 배정한다 (SYSTEM_FIELDS 순서 우선).
    """
    values = (existing or ColumnMapping()).model_dump()
    used = {v for k, v in values.items() if k != "parcel_id_mode" and v}

    for field in SYSTEM_FIELDS:
        if values.get(field.key):
            continue
        available = [h for h in headers if h not in used]
        matched = auto_match(available, field.keywords)
        if matched:
            values[field.key] = matched
            used.add(matched)

    return ColumnMapping(**values)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip().lower() in _EMPTY_MARKERS


def first_non_empty(row: Mapping[str, Any], keys: Iterable[str]) -> str:
    """후보 키 중 값이 비어 있지 않은 첫 값 (문자열, 앞뒤 공백 제거)"""
    for key in keys:
        if not key:
            continue
        value = row.get(key)
        if not _is_empty(value):
            return str(value).strip()
    return ""


def normalize_id(value: str) -> str:
    """식별자 정규화: 공백 제거 + 선행 0 제거 (전부 0이면 원본 유지)"""
    trimmed = value.strip()
    return trimmed.lstrip("0") or trimmed


def parse_area(value: str) -> float | None:
    """면적 문자열 → ㎡ (쉼표 허용, 해석 불가/0 이하 → None)"""
    if not value:
        return None
    try:
        area = float(value.replace(",", ""))
    except ValueError:
        return None
    return area if area > 0 else None


def validate_mapping(mapping: ColumnMapping) -> None:
    """필수 필드 매핑 확인

    Raises:
        ColumnMappingError: 필수 필드 누락
    """
    missing = []
    for key in REQUIRED_FIELDS:
        if key == "parcel_id" and mapping.parcel_id_mode == "split":
            if not mapping.main_lot_num:
                missing.append("main_lot_num")
            continue
        if not getattr(mapping, key):
            missing.append(key)
    if missing:
        raise ColumnMappingError(f"필수 필드 매핑 누락: {', '.join(missing)}")


def _row_to_parcel(
    row: Mapping[str, Any],
    mapping: ColumnMapping,
    file_source: str,
    year: int | None,
    category: ParcelCategory,
    extra_headers: Sequence[str],
) -> Parcel:
    address = first_non_empty(row, [mapping.address])

    if mapping.parcel_id_mode == "split":
        main_lot = first_non_empty(row, [mapping.main_lot_num])
        sub_lot = first_non_empty(row, [mapping.sub_lot_num])
        is_san = main_lot.startswith("산")
        parcel_id = format_lot_number(main_lot, sub_lot, is_san)
    else:
        main_lot = first_non_empty(row, [mapping.main_lot_num])
        sub_lot = first_non_empty(row, [mapping.sub_lot_num])
        parcel_id = normalize_id(first_non_empty(row, [mapping.parcel_id]))

    ri = first_non_empty(row, [mapping.ri]) or parse_ri(address)

    return Parcel(
        farmer_id=normalize_id(first_non_empty(row, [mapping.farmer_id])),
        farmer_name=first_non_empty(row, [mapping.farmer_name]),
        parcel_id=parcel_id,
        main_lot_num=main_lot,
        sub_lot_num=sub_lot,
        pnu=first_non_empty(row, [mapping.pnu]),
        address=address,
        farmer_address=first_non_empty(row, [mapping.farmer_address]),
        sido=first_non_empty(row, [mapping.sido]) or parse_sido(address),
        sigungu=first_non_empty(row, [mapping.sigungu]) or parse_sigungu(address),
        eubmyeondong=first_non_empty(row, [mapping.eubmyeondong]) or parse_eubmyeondong(address),
        ri=ri or UNCLASSIFIED,
        area=parse_area(first_non_empty(row, [mapping.area])),
        crop_type=first_non_empty(row, [mapping.crop_type]),
        land_category_official=first_non_empty(row, [mapping.land_category_official]),
        land_category_actual=first_non_empty(row, [mapping.land_category_actual]),
        sampled_years=[year] if year is not None else [],
        is_eligible=True,
        is_selected=False,
        parcel_category=category,
        file_source=file_source,
        raw_data={h: row[h] for h in extra_headers if not _is_empty(row.get(h))},
    )


def apply_column_mapping(
    rows: Sequence[Mapping[str, Any]],
    mapping: ColumnMapping,
    file_source: str,
    year: int | None = None,
    category: ParcelCategory = ParcelCategory.PUBLIC_PAYMENT,
) -> list[Parcel]:
    """원본 행 목록 → Parcel 목록

    Args:
        rows: 시트 행 (헤더 → 셀 값)
        mapping: 컬럼 매핑
        file_source: 원본 파일명
        year: 기채취 파일이면 채취 연도 (sampled_years에 기록)
        category: 필지 출처 구분

    Returns:
        Parcel 목록 (농가번호/필지번호/주소가 모두 빈 행은 제외)

    Raises:
        ColumnMappingError: 필수 필드 매핑 누락
    """
    validate_mapping(mapping)
    mapped = mapping.mapped_headers()

    parcels: list[Parcel] = []
    skipped = 0
    for row in rows:
        extra_headers = [h for h in row.keys() if h not in mapped]
        parcel = _row_to_parcel(row, mapping, file_source, year, category, extra_headers)
        if not (parcel.farmer_id or parcel.parcel_id or parcel.address):
            skipped += 1
            continue
        parcels.append(parcel)

    logger.info(
        "컬럼 매핑 완료 [%s]: %d행 → %d필지 (빈 행 %d건 제외)",
        file_source, len(rows), len(parcels), skipped,
    )
    return parcels
