"""FastAPI 애플리케이션 엔트리포인트

실행: uvicorn app.main:app --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.sampling import router as sampling_router

app = FastAPI(
    title="토양 시료 채취 필지 선정 API",
    version="0.1.0",
    description="기채취 필지 대조 + 공간 기반 재현 가능 필지 추출 API",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],  # 로컬 개발
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(sampling_router)


@app.get("/health")
def health_check():
    """헬스 체크"""
    return {"status": "ok"}
