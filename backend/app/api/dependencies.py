"""FastAPI 의존성 주입

서비스 인스턴스를 싱글톤으로 관리한다.
"""

from functools import lru_cache

from app.services.pipeline import SamplingPipeline


@lru_cache()
def get_pipeline() -> SamplingPipeline:
    """싱글톤 SamplingPipeline 인스턴스"""
    return SamplingPipeline()
