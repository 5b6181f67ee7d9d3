"""리 단위 추출 테스트"""

from app.models.extraction import ExtractionConfig, ExtractionMethod, SpatialConfig
from app.models.parcel import LatLng, Parcel
from app.services.extraction.selector import (
    PriorityIndex,
    build_farmer_capped_pool,
    extract_from_ri,
    extract_with_density,
    is_cohesive,
    order_parcels,
    rank_with_density,
)
from app.services.random_source import create_rng

STEP = 0.001


def _make_parcel(
    parcel_id: str,
    farmer_id: str | None = None,
    lat: float | None = None,
    area: float | None = 500.0,
    ri: str = "A",
    pnu: str = "",
) -> Parcel:
    return Parcel(
        farmer_id=farmer_id or f"F{parcel_id}",
        parcel_id=parcel_id,
        ri=ri,
        area=area,
        pnu=pnu,
        coords=LatLng(lat=lat, lng=128.7) if lat is not None else None,
    )


class TestOrderParcels:
    """추출 방식별 정렬"""

    def test_area_desc_unknown_last(self) -> None:
        parcels = [
            _make_parcel("1", area=100.0),
            _make_parcel("2", area=None),
            _make_parcel("3", area=300.0),
        ]
        ordered = order_parcels(parcels, ExtractionMethod.AREA, create_rng(1))
        assert [p.parcel_id for p in ordered] == ["3", "1", "2"]

    def test_farmer_id(self) -> None:
        parcels = [_make_parcel("2", "B"), _make_parcel("9", "A"), _make_parcel("1", "B")]
        ordered = order_parcels(parcels, ExtractionMethod.FARMER_ID, create_rng(1))
        assert [p.key for p in ordered] == [("A", "9"), ("B", "1"), ("B", "2")]

    def test_random_is_permutation(self) -> None:
        parcels = [_make_parcel(str(i)) for i in range(10)]
        ordered = order_parcels(parcels, ExtractionMethod.RANDOM, create_rng(1))
        assert sorted(p.parcel_id for p in ordered) == sorted(p.parcel_id for p in parcels)


class TestPriorityIndex:
    """대표필지 조회"""

    def test_match_by_pnu_or_key(self) -> None:
        index = PriorityIndex.from_parcels([
            _make_parcel("1", pnu="111", lat=36.0),
            _make_parcel("2"),
        ])
        assert index.matches(_make_parcel("99", farmer_id="X", pnu="111"))
        assert index.matches(_make_parcel("2"))
        assert not index.matches(_make_parcel("3"))
        assert len(index.coords) == 1

    def test_empty(self) -> None:
        assert PriorityIndex().is_empty
        assert not PriorityIndex.from_parcels([_make_parcel("1")]).is_empty


class TestCohesion:
    """같은 리 응집 반경"""

    def test_within_radius(self) -> None:
        selected = [_make_parcel("1", lat=36.0)]
        assert is_cohesive(_make_parcel("2", lat=36.0 + STEP), selected, 1.0)

    def test_outside_radius(self) -> None:
        selected = [_make_parcel("1", lat=36.0)]
        assert not is_cohesive(_make_parcel("2", lat=36.1), selected, 1.0)

    def test_other_region_ignored(self) -> None:
        selected = [_make_parcel("1", lat=36.0, ri="B")]
        assert is_cohesive(_make_parcel("2", lat=36.1), selected, 1.0)

    def test_coordless_always_passes(self) -> None:
        assert is_cohesive(_make_parcel("2"), [_make_parcel("1", lat=36.0)], 1.0)


class TestFarmerCappedPool:
    """농가당 최대 수"""

    def test_cap_applied(self) -> None:
        parcels = [_make_parcel(str(i), farmer_id="F") for i in range(5)]
        config = ExtractionConfig(max_per_farmer=2)
        pool = build_farmer_capped_pool(parcels, config, create_rng(1))
        assert len(pool) == 2

    def test_priority_first_within_farmer(self) -> None:
        parcels = [_make_parcel(str(i), farmer_id="F") for i in range(5)]
        priority = PriorityIndex.from_parcels([parcels[4]])
        config = ExtractionConfig(max_per_farmer=1)
        pool = build_farmer_capped_pool(parcels, config, create_rng(1), priority)
        assert [p.parcel_id for p in pool] == ["4"]

    def test_counts_from_other_regions(self) -> None:
        """앞선 리에서 쓴 수만큼 한도 차감, 소진된 농가는 제외"""
        parcels = [_make_parcel(str(i), farmer_id="F") for i in range(3)]
        parcels += [_make_parcel(f"g{i}", farmer_id="G") for i in range(3)]
        config = ExtractionConfig(max_per_farmer=2)
        pool = build_farmer_capped_pool(
            parcels, config, create_rng(1), farmer_counts={"F": 1, "G": 2},
        )
        assert [p.farmer_id for p in pool] == ["F"]


class TestDensityExtraction:
    """밀집도 가중 추출"""

    def test_rank_splits_coordless(self) -> None:
        pool = [_make_parcel("1", lat=36.0), _make_parcel("2")]
        ranked, without = rank_with_density(pool, SpatialConfig(), create_rng(1))
        assert [p.parcel_id for p in ranked] == ["1"]
        assert [p.parcel_id for p in without] == ["2"]

    def test_anchor_cluster_ranked_first(self) -> None:
        """기준 좌표에 가까운 클러스터가 크기와 무관하게 먼저"""
        big_far = [_make_parcel(f"b{i}", lat=36.1 + i * STEP) for i in range(5)]
        small_near = [_make_parcel(f"s{i}", lat=36.0 + i * STEP) for i in range(2)]
        ranked, _ = rank_with_density(
            big_far + small_near, SpatialConfig(), create_rng(1),
            anchors=[LatLng(lat=36.0, lng=128.7)],
        )
        assert {p.parcel_id for p in ranked[:2]} == {"s0", "s1"}

    def test_cohesion_without_anchor(self) -> None:
        """기준 좌표 없음 → 첫 선택에서 먼 필지는 건너뜀"""
        near = [_make_parcel(f"n{i}", lat=36.0 + i * STEP) for i in range(3)]
        far = [_make_parcel("far", lat=36.1)]
        selected = extract_with_density(
            near + far, 4, SpatialConfig(density_weight=1.0), create_rng(1),
        )
        assert {p.parcel_id for p in selected} == {"n0", "n1", "n2"}

    def test_anchor_relaxes_cohesion(self) -> None:
        near = [_make_parcel(f"n{i}", lat=36.0 + i * STEP) for i in range(3)]
        far = [_make_parcel("far", lat=36.1)]
        selected = extract_with_density(
            near + far, 4, SpatialConfig(), create_rng(1),
            anchors=[LatLng(lat=36.0, lng=128.7)],
        )
        assert len(selected) == 4

    def test_zero_target(self) -> None:
        assert extract_with_density([_make_parcel("1", lat=36.0)], 0, SpatialConfig(), create_rng(1)) == []


class TestExtractFromRi:
    """리 하나 추출"""

    def test_priority_taken_first(self) -> None:
        parcels = [_make_parcel(str(i)) for i in range(10)]
        priority = PriorityIndex.from_parcels([parcels[7], parcels[8]])
        selected = extract_from_ri(parcels, 3, ExtractionConfig(), create_rng(1), priority)
        assert [p.parcel_id for p in selected[:2]] == ["7", "8"]
        assert len(selected) == 3
        assert len({p.key for p in selected}) == 3

    def test_priority_truncated_to_target(self) -> None:
        parcels = [_make_parcel(str(i)) for i in range(5)]
        priority = PriorityIndex.from_parcels(parcels[:4])
        selected = extract_from_ri(parcels, 2, ExtractionConfig(), create_rng(1), priority)
        assert [p.parcel_id for p in selected] == ["0", "1"]

    def test_zero_target(self) -> None:
        assert extract_from_ri([_make_parcel("1")], 0, ExtractionConfig(), create_rng(1)) == []

    def test_fewer_than_target(self) -> None:
        parcels = [_make_parcel(str(i)) for i in range(3)]
        assert len(extract_from_ri(parcels, 10, ExtractionConfig(), create_rng(1))) == 3
