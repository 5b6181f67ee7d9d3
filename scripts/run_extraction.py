"""필지 추출 CLI

입력 JSON 형식:
    {
        "master": [Parcel, ...],
        "sampled_by_year": {"2024": [Parcel, ...], "2025": [...]},   # 선택
        "representatives": [Parcel, ...]                            # 선택
    }

사용법:
    python scripts/run_extraction.py --input parcels.json --seed 42
    python scripts/run_extraction.py --input parcels.json --total 300 --per-ri 5 --output result.json
    python scripts/run_extraction.py --input parcels.json --geocode --spatial
"""

import argparse
import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from app.config import settings
from app.models.extraction import SpatialConfig
from app.models.parcel import Parcel
from app.api.schemas import default_extraction_config
from app.services.geocoding.batch import batch_geocode
from app.services.geocoding.cache import GeocodeCache
from app.services.geocoding.kakao_client import KakaoGeocoder
from app.services.pipeline import SamplingPipeline
from app.services.spatial import apply_boundary_centroids


def setup_logging(verbose: bool = False) -> None:
    """로깅 설정"""
    level = logging.DEBUG if verbose else settings.LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx 로그 억제
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def load_input(path: str) -> tuple[list[Parcel], dict[int, list[Parcel]], list[Parcel]]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    master = [Parcel.model_validate(p) for p in data.get("master", [])]
    sampled = {
        int(year): [Parcel.model_validate(p) for p in parcels]
        for year, parcels in data.get("sampled_by_year", {}).items()
    }
    reps = [Parcel.model_validate(p) for p in data.get("representatives", [])]
    return master, sampled, reps


def geocode_missing(parcels: list[Parcel]) -> list[Parcel]:
    """좌표 없는 필지 지오코딩 (캐시 파일 사용)"""
    cache = GeocodeCache(settings.GEOCODE_CACHE_PATH or None, settings.GEOCODE_CACHE_TTL_DAYS)
    cache.load()
    geocoder = KakaoGeocoder(cache=cache)

    def on_progress(done: int, total: int, failed: int) -> None:
        if done % 50 == 0 or done == total:
            print(f"  지오코딩 {done}/{total} (실패 {failed})")

    result = batch_geocode(parcels, geocoder, on_progress=on_progress)
    cache.save()
    return result.parcels


def main() -> None:
    parser = argparse.ArgumentParser(description="토양 시료 채취 필지 추출")
    parser.add_argument("--input", required=True, help="입력 JSON 경로")
    parser.add_argument("--seed", type=int, default=None, help="난수 시드 (미지정 시 현재 시각)")
    parser.add_argument("--total", type=int, default=None, help="총 목표 필지 수")
    parser.add_argument("--per-ri", type=int, default=None, dest="per_ri", help="리당 목표 수")
    parser.add_argument("--spatial", action="store_true", help="공간 필터 사용")
    parser.add_argument("--boundaries", default="", help="필지 경계 JSON 경로 ({PNU: [[lng, lat], ...]})")
    parser.add_argument("--geocode", action="store_true", help="좌표 없는 필지 지오코딩")
    parser.add_argument("--output", default="", help="결과 JSON 저장 경로")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG 로그")
    args = parser.parse_args()

    setup_logging(args.verbose)

    master, sampled_by_year, reps = load_input(args.input)

    update = {"random_seed": args.seed}
    if args.total is not None:
        update["total_target"] = args.total
    if args.per_ri is not None:
        update["per_ri_target"] = args.per_ri
    if args.spatial:
        update["spatial_config"] = SpatialConfig()
    config = default_extraction_config().model_copy(update=update)

    print("=" * 60)
    print("  토양 시료 채취 필지 추출")
    print("=" * 60)
    print(f"  마스터: {len(master)}필지 | 기채취 연도: {sorted(sampled_by_year) or '-'}")
    print(f"  대표필지: {len(reps)}건 | 총 목표: {config.total_target} | 리당: {config.per_ri_target}")
    print("=" * 60)

    if args.boundaries:
        with open(args.boundaries, encoding="utf-8") as f:
            boundaries = json.load(f)
        master = apply_boundary_centroids(master, boundaries)
        reps = apply_boundary_centroids(reps, boundaries)

    if args.geocode:
        master = geocode_missing(master)
        reps = geocode_missing(reps) if reps else reps

    pipeline = SamplingPipeline()
    analysis = pipeline.analyze(master, sampled_by_year, reps)
    stats = analysis.statistics
    print(f"\n  추출 가능: {stats.eligible_parcels}/{stats.total_parcels}필지")
    for year, count in stats.sampled_by_year.items():
        print(f"  {year}년 기채취 중복: {count}필지")

    run = pipeline.run_extraction(analysis.parcels, config, analysis.representatives)
    if run.error is not None:
        print(f"\n  ⚠ {run.error}")
        sys.exit(1)

    result = run.result
    print(f"\n{'='*60}")
    print(f"  선택: {len(result.selected_parcels)}필지 | 시드: {result.seed}")
    print(f"  검증: {'통과' if result.validation.is_valid else '실패'}")
    print(f"{'='*60}")

    for msg in result.validation.errors:
        print(f"  ✗ [{msg.code}] {msg.message}")
    for msg in result.validation.warnings:
        print(f"  ⚠ [{msg.code}] {msg.message}")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
        print(f"\n  → 결과 저장: {args.output}")

    print()


if __name__ == "__main__":
    main()
