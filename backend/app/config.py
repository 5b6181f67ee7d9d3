"""애플리케이션 설정

모든 환경변수는 .env 파일에서 관리한다. 추출 기본값도 여기서 덮어쓸 수 있다.
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# 프로젝트 루트: backend/ 의 상위 디렉토리
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """환경변수 로드 설정"""

    # 카카오 개발자 (주소 → 좌표)
    KAKAO_REST_API_KEY: str = ""

    # 지오코딩
    GEOCODE_REQUEST_INTERVAL: float = 0.1  # 요청 간격 (초)
    GEOCODE_MAX_RETRIES: int = 2  # 결과 없음/오류 시 재시도 횟수
    GEOCODE_TIMEOUT: int = 10  # 요청 타임아웃 (초)
    GEOCODE_RATE_LIMIT_BACKOFF: float = 2.0  # 429 응답 시 대기 (초)
    GEOCODE_CACHE_PATH: str = ""  # 빈 문자열이면 메모리 캐시만 사용
    GEOCODE_CACHE_TTL_DAYS: int = 30

    # 기채취 비교 연도 (직전 2개년)
    COMPARISON_YEARS: list[int] = [2024, 2025]

    # 추출 기본값
    DEFAULT_TOTAL_TARGET: int = 700
    DEFAULT_PER_RI_TARGET: int = 10
    DEFAULT_MIN_PER_FARMER: int = 1
    DEFAULT_MAX_PER_FARMER: int = 2
    MIN_PARCEL_AREA_M2: float = 100.0  # 면적 하한 (미상 면적은 제외하지 않음)

    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": str(_PROJECT_ROOT / ".env"),
        "env_file_encoding": "utf-8",
    }


# 싱글턴 인스턴스
settings = Settings()
