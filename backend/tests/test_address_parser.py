"""필지 주소 파싱 테스트"""

import pytest

from app.services.address_parser import (
    format_lot_number,
    is_same_address,
    normalize_address,
    parse_eubmyeondong,
    parse_lot_number,
    parse_ri,
    parse_sido,
    parse_sigungu,
)


# ============================================================
# TestNormalize: 비교용 정규화
# ============================================================


class TestNormalize:
    """공백/구두점 제거 + 소문자"""

    def test_whitespace_and_hyphen(self) -> None:
        assert normalize_address("적덕리  402-1") == "적덕리4021"

    def test_case_folded(self) -> None:
        assert normalize_address("A동 101") == normalize_address("a동101")

    def test_parentheses_removed(self) -> None:
        assert normalize_address("봉화읍 (적덕리) 402") == "봉화읍적덕리402"

    def test_empty(self) -> None:
        assert normalize_address("") == ""

    def test_is_same_address(self) -> None:
        assert is_same_address("경북 봉화군 적덕리 402-1", "경북봉화군적덕리 4021")
        assert not is_same_address("적덕리 402", "적덕리 403")


# ============================================================
# TestRegionParts: 시도/시군구/읍면동/리
# ============================================================


class TestRegionParts:
    """지번 주소 구성요소 추출"""

    ADDRESS = "경상북도 봉화군 봉화읍 적덕리 402-1"

    def test_sido_full(self) -> None:
        assert parse_sido(self.ADDRESS) == "경상북도"

    def test_sido_short(self) -> None:
        assert parse_sido("경북 봉화군 봉화읍 적덕리 402") == "경상북도"

    def test_sido_unknown(self) -> None:
        assert parse_sido("봉화군 봉화읍") == ""

    def test_sigungu(self) -> None:
        assert parse_sigungu(self.ADDRESS) == "봉화군"

    def test_sigungu_without_sido(self) -> None:
        assert parse_sigungu("봉화군 봉화읍 적덕리") == "봉화군"

    def test_eubmyeondong(self) -> None:
        assert parse_eubmyeondong(self.ADDRESS) == "봉화읍"

    def test_ri(self) -> None:
        assert parse_ri(self.ADDRESS) == "적덕리"

    def test_ri_attached_to_number(self) -> None:
        assert parse_ri("경상북도 봉화군 봉화읍 적덕리402") == "적덕리"

    def test_ri_at_end(self) -> None:
        assert parse_ri("경상북도 봉화군 봉화읍 적덕리") == "적덕리"

    def test_dong_fallback(self) -> None:
        """리가 없는 도심 주소 → 동"""
        assert parse_ri("경상북도 안동시 옥동 123") == "옥동"

    @pytest.mark.parametrize("address", ["", "주소불명", "123-4"])
    def test_unclassified(self, address: str) -> None:
        assert parse_ri(address) == "미분류"


# ============================================================
# TestLotNumber: 본번/부번
# ============================================================


class TestLotNumber:
    """지번 조합"""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, 0), ("", 0), ("nan", 0), ("0402", 402), ("산402", 402), (402.0, 402), ("12번지", 12)],
    )
    def test_parse(self, value, expected: int) -> None:
        assert parse_lot_number(value) == expected

    def test_format_main_only(self) -> None:
        assert format_lot_number("402") == "402"
        assert format_lot_number("402", "0") == "402"

    def test_format_with_sub(self) -> None:
        assert format_lot_number("402", "1") == "402-1"

    def test_format_san(self) -> None:
        assert format_lot_number("402", "1", is_san=True) == "산402-1"

    def test_format_zero_main(self) -> None:
        assert format_lot_number("", "1") == ""
