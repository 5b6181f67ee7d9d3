"""공용 테스트 픽스처

좌표 없는 3개 리 × 20필지 (리당 10농가 × 2필지) 마스터 풀.
"""

from __future__ import annotations

import pytest

from app.models.parcel import Parcel

RIS = ("적덕리", "삼계리", "도촌리")


@pytest.fixture()
def three_region_parcels() -> list[Parcel]:
    """3개 리 × 20필지, 농가는 리마다 다름"""
    parcels = []
    for r, ri in enumerate(RIS):
        for i in range(20):
            farmer = f"F{r}{i // 2:02d}"
            parcels.append(Parcel(
                farmer_id=farmer,
                farmer_name=f"농가{r}{i // 2:02d}",
                parcel_id=f"{100 + i}",
                address=f"경상북도 봉화군 봉화읍 {ri} {100 + i}",
                sido="경상북도",
                sigungu="봉화군",
                eubmyeondong="봉화읍",
                ri=ri,
                area=500.0 + i,
                land_category_actual="답" if i % 3 else "전",
            ))
    return parcels
