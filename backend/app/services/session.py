"""추출 결과 검토 세션

추출 후 사용자가 필지를 수동으로 추가/제거/토글하고 재검증한다.
세션은 결과와 후보 풀을 보관하며, 필지는 항상 사본으로 다룬다.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.models.extraction import ExtractionConfig, ExtractionResult
from app.models.parcel import Parcel, ParcelCategory
from app.services.extraction.stats import generate_farmer_stats, generate_ri_stats
from app.services.extraction.validator import validate_extraction
from app.services.spatial import parcels_within

logger = logging.getLogger(__name__)

_REPRESENTATIVE_CODE_PREFIX = "REPRESENTATIVE_"


class ExtractionSession:
    """추출 결과 수동 편집"""

    def __init__(
        self,
        result: ExtractionResult,
        candidates: Sequence[Parcel],
        config: ExtractionConfig,
    ) -> None:
        self._result = result
        self._candidates = list(candidates)
        self._config = config

    @property
    def result(self) -> ExtractionResult:
        return self._result

    @property
    def selected(self) -> list[Parcel]:
        return list(self._result.selected_parcels)

    def is_selected(
        self,
        farmer_id: str,
        parcel_id: str,
        category: ParcelCategory = ParcelCategory.PUBLIC_PAYMENT,
    ) -> bool:
        """같은 키라도 대표필지/공익직불제 사본은 따로 본다"""
        return self._index_of(farmer_id, parcel_id, category) is not None

    def _index_of(
        self, farmer_id: str, parcel_id: str, category: ParcelCategory,
    ) -> int | None:
        for idx, p in enumerate(self._result.selected_parcels):
            if p.key == (farmer_id, parcel_id) and p.parcel_category == category:
                return idx
        return None

    def _find_candidate(self, farmer_id: str, parcel_id: str) -> Parcel | None:
        return next((p for p in self._candidates if p.key == (farmer_id, parcel_id)), None)

    def add_parcel(self, parcel: Parcel) -> bool:
        """필지 추가 (같은 구분으로 이미 선택된 키면 False)"""
        if self.is_selected(*parcel.key, parcel.parcel_category):
            return False
        added = parcel.model_copy(update={"is_selected": True})
        self._result = self._result.model_copy(
            update={"selected_parcels": [*self._result.selected_parcels, added]},
        )
        logger.info("필지 수동 추가: %s/%s", parcel.farmer_id, parcel.parcel_id)
        return True

    def remove_parcel(
        self,
        farmer_id: str,
        parcel_id: str,
        category: ParcelCategory = ParcelCategory.PUBLIC_PAYMENT,
    ) -> bool:
        """필지 제거 (해당 구분 선택에 없으면 False)"""
        idx = self._index_of(farmer_id, parcel_id, category)
        if idx is None:
            return False
        remaining = list(self._result.selected_parcels)
        del remaining[idx]
        self._result = self._result.model_copy(update={"selected_parcels": remaining})
        logger.info("필지 수동 제거: %s/%s (%s)", farmer_id, parcel_id, category.value)
        return True

    def toggle_selection(
        self,
        farmer_id: str,
        parcel_id: str,
        category: ParcelCategory = ParcelCategory.PUBLIC_PAYMENT,
    ) -> bool:
        """선택 토글. 토글 후 선택 상태 반환

        후보 풀에 없는 필지는 선택할 수 없다 (False 반환, 변경 없음).
        """
        if self.remove_parcel(farmer_id, parcel_id, category):
            return False
        candidate = self._find_candidate(farmer_id, parcel_id)
        if candidate is None:
            logger.warning("후보 풀에 없는 필지: %s/%s", farmer_id, parcel_id)
            return False
        return self.add_parcel(candidate.model_copy(update={"parcel_category": category}))

    def add_parcels_in_area(self, ring: Sequence[Sequence[float]]) -> int:
        """(lng, lat) 폴리곤 안의 후보를 모두 추가. 추가된 수 반환"""
        added = sum(1 for p in parcels_within(self._candidates, ring) if self.add_parcel(p))
        logger.info("영역 선택: %d필지 추가", added)
        return added

    def revalidate(self) -> ExtractionResult:
        """현재 선택 기준으로 통계/검증 재계산

        검증 대상은 공익직불제 선택이며, 대표필지 병합 메시지는 유지한다.
        """
        selected = self._result.selected_parcels
        general = [p for p in selected if p.parcel_category == ParcelCategory.PUBLIC_PAYMENT]
        target = self._result.target_total
        if target is None:
            target = self._config.total_target

        ri_stats = generate_ri_stats(
            self._candidates, general, self._config, self._result.excluded_distant_ris,
        )
        validation = validate_extraction(general, self._config, ri_stats, target)
        validation.warnings.extend(
            m for m in self._result.validation.warnings
            if m.code.startswith(_REPRESENTATIVE_CODE_PREFIX)
        )

        self._result = self._result.model_copy(update={
            "ri_stats": ri_stats,
            "farmer_stats": generate_farmer_stats(self._candidates, selected),
            "validation": validation,
        })
        return self._result
