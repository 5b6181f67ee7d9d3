"""컬럼 매핑 테스트"""

import pytest

from app.models.parcel import UNCLASSIFIED, ParcelCategory
from app.services.column_mapper import (
    ColumnMapping,
    ColumnMappingError,
    apply_column_mapping,
    auto_match,
    build_initial_mapping,
    first_non_empty,
    normalize_id,
    parse_area,
)

HEADERS = ["농가번호", "농가명", "필지번호", "필지주소", "면적", "실지목", "비고"]


def _make_row(**overrides) -> dict:
    row = {
        "농가번호": "0012",
        "농가명": "홍길동",
        "필지번호": "402-1",
        "필지주소": "경상북도 봉화군 봉화읍 적덕리 402-1",
        "면적": "1,234",
        "실지목": "답",
        "비고": "메모",
    }
    row.update(overrides)
    return row


class TestAutoMatch:
    """헤더 자동 매칭"""

    def test_initial_mapping(self) -> None:
        mapping = build_initial_mapping(HEADERS)
        assert mapping.farmer_id == "농가번호"
        assert mapping.farmer_name == "농가명"
        assert mapping.parcel_id == "필지번호"
        assert mapping.address == "필지주소"
        assert mapping.area == "면적"
        assert mapping.land_category_actual == "실지목"
        assert mapping.land_category_official == ""
        assert mapping.ri == ""

    def test_whitespace_and_case_ignored(self) -> None:
        assert auto_match(["  PNU 코드 "], ["pnu"]) == "  PNU 코드 "

    def test_existing_mapping_kept(self) -> None:
        existing = ColumnMapping(address="비고")
        mapping = build_initial_mapping(HEADERS, existing)
        assert mapping.address == "비고"

    def test_header_used_once(self) -> None:
        """'경영체주소'는 경영체 주소에만 배정되고 필지 주소로 재사용되지 않음"""
        mapping = build_initial_mapping(["경영체번호", "필지번호", "경영체주소"])
        assert mapping.farmer_address == "경영체주소"
        assert mapping.address == ""


class TestHelpers:
    """변환 헬퍼"""

    def test_first_non_empty(self) -> None:
        row = {"a": "", "b": None, "c": "nan", "d": " 값 "}
        assert first_non_empty(row, ["a", "b", "c", "d"]) == "값"
        assert first_non_empty(row, ["a", ""]) == ""

    def test_normalize_id(self) -> None:
        assert normalize_id(" 0012 ") == "12"
        assert normalize_id("000") == "000"
        assert normalize_id("A01") == "A01"

    def test_parse_area(self) -> None:
        assert parse_area("1,234.5") == 1234.5
        assert parse_area("") is None
        assert parse_area("abc") is None
        assert parse_area("0") is None


class TestApplyMapping:
    """행 → 필지 변환"""

    def test_single_mode(self) -> None:
        mapping = build_initial_mapping(HEADERS)
        parcels = apply_column_mapping([_make_row()], mapping, file_source="2026.xlsx")

        assert len(parcels) == 1
        p = parcels[0]
        assert p.farmer_id == "12"
        assert p.parcel_id == "402-1"
        assert p.ri == "적덕리"
        assert p.sido == "경상북도"
        assert p.sigungu == "봉화군"
        assert p.eubmyeondong == "봉화읍"
        assert p.area == 1234.0
        assert p.land_category == "답"
        assert p.raw_data == {"비고": "메모"}
        assert p.file_source == "2026.xlsx"
        assert p.sampled_years == []
        assert p.parcel_category == ParcelCategory.PUBLIC_PAYMENT

    def test_sampled_year_recorded(self) -> None:
        mapping = build_initial_mapping(HEADERS)
        parcels = apply_column_mapping([_make_row()], mapping, "2024.xlsx", year=2024)
        assert parcels[0].sampled_years == [2024]

    def test_split_mode(self) -> None:
        mapping = ColumnMapping(
            farmer_id="농가번호", address="주소",
            main_lot_num="본번", sub_lot_num="부번", parcel_id_mode="split",
        )
        rows = [
            {"농가번호": "1", "주소": "봉화군 적덕리", "본번": "402", "부번": "1"},
            {"농가번호": "2", "주소": "봉화군 적덕리", "본번": "산12", "부번": ""},
            {"농가번호": "3", "주소": "봉화군 적덕리", "본번": "77", "부번": "0"},
        ]
        parcels = apply_column_mapping(rows, mapping, "x.xlsx")
        assert [p.parcel_id for p in parcels] == ["402-1", "산12", "77"]

    def test_unparsable_ri_unclassified(self) -> None:
        mapping = build_initial_mapping(HEADERS)
        parcels = apply_column_mapping([_make_row(필지주소="주소불명")], mapping, "x.xlsx")
        assert parcels[0].ri == UNCLASSIFIED

    def test_empty_rows_skipped(self) -> None:
        mapping = build_initial_mapping(HEADERS)
        rows = [_make_row(), {h: "" for h in HEADERS}]
        assert len(apply_column_mapping(rows, mapping, "x.xlsx")) == 1

    def test_missing_required_raises(self) -> None:
        with pytest.raises(ColumnMappingError, match="address"):
            apply_column_mapping([_make_row()], ColumnMapping(farmer_id="농가번호", parcel_id="필지번호"), "x")

    def test_split_mode_requires_main_lot(self) -> None:
        mapping = ColumnMapping(farmer_id="a", address="b", parcel_id_mode="split")
        with pytest.raises(ColumnMappingError, match="main_lot_num"):
            apply_column_mapping([], mapping, "x")
