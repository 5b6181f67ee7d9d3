"""추출 결과 검토 세션 테스트"""

import pytest

from app.models.extraction import (
    ExtractionConfig,
    ExtractionResult,
    ValidationMessage,
    ValidationResult,
)
from app.models.parcel import LatLng, Parcel, ParcelCategory
from app.services.extraction.engine import extract_parcels
from app.services.representative import reconcile_representatives
from app.services.session import ExtractionSession

CONFIG = ExtractionConfig(total_target=15, per_ri_target=5, random_seed=42)


@pytest.fixture()
def session(three_region_parcels: list[Parcel]) -> ExtractionSession:
    result = extract_parcels(three_region_parcels, CONFIG)
    return ExtractionSession(result, three_region_parcels, CONFIG)


def _unselected(session: ExtractionSession, parcels: list[Parcel]) -> Parcel:
    return next(p for p in parcels if not session.is_selected(*p.key))


class TestManualEdit:
    """추가/제거/토글"""

    def test_remove(self, session: ExtractionSession) -> None:
        target = session.selected[0]
        assert session.remove_parcel(*target.key)
        assert not session.is_selected(*target.key)
        assert len(session.selected) == 14
        assert not session.remove_parcel(*target.key)

    def test_add_duplicate_rejected(self, session: ExtractionSession) -> None:
        assert not session.add_parcel(session.selected[0])
        assert len(session.selected) == 15

    def test_add_marks_selected(
        self, session: ExtractionSession, three_region_parcels: list[Parcel],
    ) -> None:
        parcel = _unselected(session, three_region_parcels)
        assert session.add_parcel(parcel)
        assert session.selected[-1].is_selected
        assert not parcel.is_selected

    def test_toggle(
        self, session: ExtractionSession, three_region_parcels: list[Parcel],
    ) -> None:
        parcel = _unselected(session, three_region_parcels)
        assert session.toggle_selection(*parcel.key) is True
        assert session.is_selected(*parcel.key)
        assert session.toggle_selection(*parcel.key) is False
        assert not session.is_selected(*parcel.key)

    def test_toggle_unknown(self, session: ExtractionSession) -> None:
        assert session.toggle_selection("없음", "0") is False
        assert len(session.selected) == 15


class TestRevalidate:
    """재검증"""

    def test_after_removal(self, session: ExtractionSession) -> None:
        removed = session.selected[0]
        session.remove_parcel(*removed.key)
        result = session.revalidate()

        assert [w.code for w in result.validation.warnings] == ["TOTAL_MISMATCH", "RI_UNDERFILL"]
        assert result.validation.is_valid
        stat = next(s for s in result.ri_stats if s.ri == removed.ri)
        assert stat.selected_count == 4
        assert sum(f.selected_parcels for f in result.farmer_stats) == 14

    def test_farmer_limit_error(
        self, session: ExtractionSession, three_region_parcels: list[Parcel],
    ) -> None:
        """같은 농가 3필지 수동 선택 → 오류"""
        farmer = "F000"
        for p in three_region_parcels:
            if p.farmer_id == farmer:
                session.add_parcel(p)
        session.add_parcel(Parcel(farmer_id=farmer, parcel_id="999", ri="적덕리", area=500.0))
        result = session.revalidate()

        assert not result.validation.is_valid
        assert "FARMER_OVER_LIMIT" in [e.code for e in result.validation.errors]

    def test_representative_messages_kept(self) -> None:
        rep = Parcel(
            farmer_id="R", parcel_id="1", ri="A", area=500.0, is_selected=True,
            parcel_category=ParcelCategory.REPRESENTATIVE,
        )
        general = Parcel(farmer_id="G", parcel_id="1", ri="A", area=500.0, is_selected=True)
        result = ExtractionResult(
            selected_parcels=[rep, general],
            target_total=1,
            validation=ValidationResult(warnings=[
                ValidationMessage(code="REPRESENTATIVE_SHORTFALL", message="부족"),
                ValidationMessage(code="RI_UNDERFILL", message="이전 경고"),
            ]),
        )
        session = ExtractionSession(result, [general], ExtractionConfig(total_target=2))
        revalidated = session.revalidate()

        assert [w.code for w in revalidated.validation.warnings] == ["REPRESENTATIVE_SHORTFALL"]
        assert revalidated.validation.is_valid


class TestAreaSelection:
    """폴리곤 영역 선택"""

    def test_add_in_area(self) -> None:
        candidates = [
            Parcel(farmer_id="A", parcel_id="1", coords=LatLng(lat=36.0, lng=128.7)),
            Parcel(farmer_id="B", parcel_id="1", coords=LatLng(lat=36.05, lng=128.75)),
            Parcel(farmer_id="C", parcel_id="1", coords=LatLng(lat=37.0, lng=128.7)),
            Parcel(farmer_id="D", parcel_id="1"),
        ]
        ring = [[128.6, 35.9], [128.8, 35.9], [128.8, 36.1], [128.6, 36.1]]
        session = ExtractionSession(ExtractionResult(), candidates, ExtractionConfig())

        assert session.add_parcels_in_area(ring) == 2
        assert [p.farmer_id for p in session.selected] == ["A", "B"]
        assert session.add_parcels_in_area(ring) == 0


class TestRepresentativeCopies:
    """대표필지 사본과 공익직불제 사본이 같은 키로 공존"""

    CONFIG = ExtractionConfig(total_target=20, per_ri_target=10, random_seed=42)

    @pytest.fixture()
    def merged(self, three_region_parcels: list[Parcel]) -> ExtractionSession:
        reps = [
            Parcel(farmer_id=f, parcel_id="100", parcel_category=ParcelCategory.REPRESENTATIVE)
            for f in ("F000", "F100")
        ]
        result = reconcile_representatives(three_region_parcels, reps, self.CONFIG)
        return ExtractionSession(result, three_region_parcels, self.CONFIG)

    def test_remove_only_one_copy(self, merged: ExtractionSession) -> None:
        before = len(merged.selected)
        assert merged.is_selected("F000", "100")
        assert merged.is_selected("F000", "100", ParcelCategory.REPRESENTATIVE)

        assert merged.remove_parcel("F000", "100")
        assert len(merged.selected) == before - 1
        assert not merged.is_selected("F000", "100")
        assert merged.is_selected("F000", "100", ParcelCategory.REPRESENTATIVE)

    def test_remove_representative_copy(self, merged: ExtractionSession) -> None:
        assert merged.remove_parcel("F000", "100", ParcelCategory.REPRESENTATIVE)
        assert merged.is_selected("F000", "100")
        assert not merged.is_selected("F000", "100", ParcelCategory.REPRESENTATIVE)

    def test_toggle_keeps_representative(self, merged: ExtractionSession) -> None:
        assert merged.toggle_selection("F000", "100") is False
        assert merged.is_selected("F000", "100", ParcelCategory.REPRESENTATIVE)
        assert merged.toggle_selection("F000", "100") is True
        assert merged.is_selected("F000", "100")

    def test_add_other_category(self, merged: ExtractionSession) -> None:
        merged.remove_parcel("F000", "100", ParcelCategory.REPRESENTATIVE)
        rep = Parcel(farmer_id="F000", parcel_id="100", parcel_category=ParcelCategory.REPRESENTATIVE)
        assert merged.add_parcel(rep)
        assert not merged.add_parcel(rep)

    def test_zero_public_payment_target(self, three_region_parcels: list[Parcel]) -> None:
        """대표필지가 총 목표를 다 채우면 공익직불제 목표 0으로 재검증"""
        config = ExtractionConfig(total_target=15, per_ri_target=5, random_seed=42)
        reps = [
            p.model_copy(update={"parcel_category": ParcelCategory.REPRESENTATIVE})
            for p in three_region_parcels[:15]
        ]
        result = reconcile_representatives(three_region_parcels, reps, config)
        assert result.target_total == 0

        revalidated = ExtractionSession(result, three_region_parcels, config).revalidate()
        codes = [m.code for m in revalidated.validation.errors + revalidated.validation.warnings]

        assert "TOTAL_MISMATCH" not in codes
        assert revalidated.validation.is_valid
