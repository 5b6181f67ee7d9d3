"""필지 주소 파싱/정규화

필지 주소(단일 문자열)에서 시도/시군구/읍면동/리를 추출하고,
파일 간 비교를 위한 정규화 주소를 만든다.

지번 주소 형식: "경상북도 봉화군 봉화읍 적덕리 402-1"
리가 없는 주소(도심 동 지역)는 읍면동을 지역 키로 사용하고,
그마저 없으면 "미분류" 버킷으로 보낸다.

사용:
    from app.services.address_parser import normalize_address, parse_ri
    parse_ri("경상북도 봉화군 봉화읍 적덕리 402")  # → "적덕리"
"""

from __future__ import annotations

import re

from app.models.parcel import UNCLASSIFIED

# ── 시도 약칭 → 정식명칭 ────────────────────────────────────

SIDO_SHORT_TO_FULL = {
    "서울": "서울특별시",
    "부산": "부산광역시",
    "대구": "대구광역시",
    "인천": "인천광역시",
    "광주": "광주광역시",
    "대전": "대전광역시",
    "울산": "울산광역시",
    "세종": "세종특별자치시",
    "경기": "경기도",
    "강원": "강원특별자치도",
    "충북": "충청북도",
    "충남": "충청남도",
    "전북": "전북특별자치도",
    "전남": "전라남도",
    "경북": "경상북도",
    "경남": "경상남도",
    "제주": "제주특별자치도",
}

# 정식명칭도 포함 (이미 정식이면 그대로)
SIDO_FULL_NAMES = set(SIDO_SHORT_TO_FULL.values())

# ── 정규식 패턴 ───────────────────────────────────────────

# 리: "적덕리 402", "적덕리402", 문자열 끝의 "적덕리"
_RE_RI = re.compile(r"([가-힣]+리)(?:\s|$|\d)")

# 리가 없을 때 대체: 동/읍/면
_RE_DONG_FALLBACK = re.compile(r"([가-힣]+동|[가-힣]+읍|[가-힣]+면)(?:\s|$|\d)")

_RE_SIGUNGU = re.compile(r"([가-힣]+(?:시|군|구))\s")

_RE_EUBMYEONDONG = re.compile(r"([가-힣]+(?:읍|면|동))\s")

_RE_WHITESPACE = re.compile(r"\s+")

# 한글/영숫자/밑줄 이외 문자 (구두점, 하이픈, 괄호 등)
_RE_NON_WORD = re.compile(r"[^\w]")


def _normalize_sido(token: str) -> str:
    """시도명 정규화: 약칭 → 정식명칭"""
    if token in SIDO_FULL_NAMES:
        return token
    return SIDO_SHORT_TO_FULL.get(token, token)


def normalize_address(address: str) -> str:
    """비교용 주소 정규화

    공백과 구두점을 모두 제거하고 영문은 소문자로 맞춘다.
    "적덕리 402-1" → "적덕리4021"
    """
    if not address:
        return ""
    compact = _RE_WHITESPACE.sub("", address)
    return _RE_NON_WORD.sub("", compact).lower()


def is_same_address(addr1: str, addr2: str) -> bool:
    """정규화 후 동일 주소 여부"""
    return normalize_address(addr1) == normalize_address(addr2)


def parse_sido(address: str) -> str:
    """첫 토큰을 시도로 보고 정식명칭 반환 (인식 불가 시 빈 문자열)"""
    tokens = address.split()
    if not tokens:
        return ""
    sido = _normalize_sido(tokens[0])
    return sido if sido in SIDO_FULL_NAMES else ""


def parse_ri(address: str) -> str:
    """주소에서 리(里) 추출: 없으면 읍면동, 그것도 없으면 "미분류" """
    if not address:
        return UNCLASSIFIED
    ri_match = _RE_RI.search(address)
    if ri_match:
        return ri_match.group(1)
    dong_match = _RE_DONG_FALLBACK.search(address)
    return dong_match.group(1) if dong_match else UNCLASSIFIED


def parse_sigungu(address: str) -> str:
    """주소에서 시군구 추출 (시도 토큰은 건너뜀)"""
    for token in address.split()[:3]:
        if _normalize_sido(token) in SIDO_FULL_NAMES:
            continue
        match = _RE_SIGUNGU.match(token + " ")
        if match:
            return match.group(1)
    return ""


def parse_eubmyeondong(address: str) -> str:
    """주소에서 읍면동 추출"""
    match = _RE_EUBMYEONDONG.search(address)
    return match.group(1) if match else ""


def parse_lot_number(value: str | int | float | None) -> int:
    """본번/부번 셀 값 → 정수

    None/빈 문자열 → 0, "0402" → 402, "산402" → 402, 402.0 → 402
    """
    if value is None:
        return 0
    text = str(value).strip()
    if not text or text.lower() in ("none", "nan"):
        return 0
    text = re.sub(r"^산", "", text)
    numeric = re.sub(r"[^0-9.]", "", text)
    if not numeric:
        return 0
    try:
        return int(float(numeric))
    except ValueError:
        return 0


def format_lot_number(
    main_lot: str | int | float | None,
    sub_lot: str | int | float | None = None,
    is_san: bool = False,
) -> str:
    """본번/부번 → 지번 문자열

    부번이 0 또는 없음 → "402", 부번 있음 → "402-1", 산 번지 → "산402-1"
    본번이 0이면 빈 문자열.
    """
    main = parse_lot_number(main_lot)
    if main == 0:
        return ""
    sub = parse_lot_number(sub_lot)
    lot = f"{main}-{sub}" if sub else str(main)
    return f"산{lot}" if is_san else lot
