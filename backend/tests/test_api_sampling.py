"""API 엔드포인트 테스트

FastAPI TestClient + 파이프라인 주입.
외부 API 호출 없이 엔드포인트 동작을 검증한다.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_pipeline
from app.main import app
from app.models.parcel import Parcel
from app.services.pipeline import ExtractionRun, SamplingPipeline


# ── 헬퍼 ──────────────────────────────────────────────────────


ROWS = [
    {
        "농가번호": "0012",
        "필지번호": "402-1",
        "필지주소": "경상북도 봉화군 봉화읍 적덕리 402-1",
        "면적": "1,234",
        "비고": "논두렁",
    },
    {"농가번호": "", "필지번호": "", "필지주소": "", "면적": "", "비고": ""},
]


def _dump(parcels: list[Parcel]) -> list[dict]:
    return [p.model_dump(mode="json") for p in parcels]


# ── Fixture ───────────────────────────────────────────────────


@pytest.fixture()
def client():
    """실제 파이프라인이 주입된 TestClient"""
    app.dependency_overrides[get_pipeline] = lambda: SamplingPipeline()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def failing_client():
    """추출이 실패하는 mock 파이프라인"""
    mock = MagicMock()
    mock.run_extraction.return_value = ExtractionRun(error="추출 실패: boom")
    app.dependency_overrides[get_pipeline] = lambda: mock
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================
# TestHealthCheck
# ============================================================


class TestHealthCheck:
    """헬스 체크"""

    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


# ============================================================
# TestColumnMapping: POST /api/v1/parcels/mapping
# ============================================================


class TestColumnMapping:
    """원본 행 → 필지"""

    def test_auto_mapping(self, client: TestClient) -> None:
        resp = client.post("/api/v1/parcels/mapping", json={"rows": ROWS, "file_source": "마스터.xlsx"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        assert data["mapping"]["farmer_id"] == "농가번호"
        parcel = data["parcels"][0]
        assert parcel["farmer_id"] == "12"
        assert parcel["ri"] == "적덕리"
        assert parcel["area"] == 1234.0
        assert parcel["raw_data"] == {"비고": "논두렁"}

    def test_sampled_year(self, client: TestClient) -> None:
        resp = client.post("/api/v1/parcels/mapping", json={"rows": ROWS[:1], "year": 2024})
        assert resp.json()["parcels"][0]["sampled_years"] == [2024]

    def test_missing_required(self, client: TestClient) -> None:
        resp = client.post("/api/v1/parcels/mapping", json={"rows": [{"비고": "x"}]})
        assert resp.status_code == 400
        assert "필수 필드 매핑 누락" in resp.json()["detail"]


# ============================================================
# TestEligibility: POST /api/v1/eligibility
# ============================================================


class TestEligibility:
    """기채취 대조"""

    def test_marking_and_ratios(self, client: TestClient, three_region_parcels: list[Parcel]) -> None:
        sampled = [three_region_parcels[0]]
        resp = client.post("/api/v1/eligibility", json={
            "master": _dump(three_region_parcels),
            "sampled_by_year": {"2024": _dump(sampled)},
        })

        assert resp.status_code == 200
        data = resp.json()
        assert data["statistics"]["total_parcels"] == 60
        assert data["statistics"]["eligible_parcels"] == 59
        assert data["parcels"][0]["sampled_years"] == [2024]
        assert data["parcels"][0]["is_eligible"] is False
        assert sum(data["default_land_category_ratios"].values()) == pytest.approx(100, abs=0.2)


# ============================================================
# TestExtraction: POST /api/v1/extractions
# ============================================================


class TestExtraction:
    """필지 추출"""

    CONFIG = {"total_target": 15, "per_ri_target": 5, "random_seed": 42}

    def test_extract(self, client: TestClient, three_region_parcels: list[Parcel]) -> None:
        resp = client.post("/api/v1/extractions", json={
            "parcels": _dump(three_region_parcels), "config": self.CONFIG,
        })

        assert resp.status_code == 200
        data = resp.json()
        assert data["selected_count"] == 15
        assert data["seed"] == 42
        assert data["is_valid"] is True
        assert all(p["is_selected"] for p in data["result"]["selected_parcels"])

    def test_reproducible(self, client: TestClient, three_region_parcels: list[Parcel]) -> None:
        body = {"parcels": _dump(three_region_parcels), "config": self.CONFIG}
        first = client.post("/api/v1/extractions", json=body).json()
        second = client.post("/api/v1/extractions", json=body).json()

        def keys(data: dict) -> list[tuple[str, str]]:
            return [(p["farmer_id"], p["parcel_id"]) for p in data["result"]["selected_parcels"]]

        assert keys(first) == keys(second)

    def test_with_representatives(self, client: TestClient, three_region_parcels: list[Parcel]) -> None:
        rep = Parcel(farmer_id="F000", parcel_id="100", parcel_category="representative")
        resp = client.post("/api/v1/extractions", json={
            "parcels": _dump(three_region_parcels),
            "representatives": _dump([rep]),
            "config": self.CONFIG,
        })

        assert resp.status_code == 200
        result = resp.json()["result"]
        assert result["representative_report"]["total"] == 1
        assert result["selected_parcels"][0]["parcel_category"] == "representative"

    def test_invalid_config(self, client: TestClient) -> None:
        resp = client.post("/api/v1/extractions", json={
            "parcels": [], "config": {"min_per_farmer": 3, "max_per_farmer": 2},
        })
        assert resp.status_code == 422

    def test_pipeline_error(self, failing_client: TestClient) -> None:
        resp = failing_client.post("/api/v1/extractions", json={"parcels": []})
        assert resp.status_code == 500
        assert resp.json()["detail"] == "추출 실패: boom"
