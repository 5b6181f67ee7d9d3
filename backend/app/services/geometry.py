"""기하 유틸리티

대권 거리(Haversine), 폴리곤 무게중심, 점-폴리곤 포함 판정.
상태 없음: 순수 계산만 포함. 좌표 None 여부는 호출자가 확인한다.

폴리곤 링은 VWorld/GeoJSON 관례대로 (lng, lat) 순서의 꼭짓점 목록이다.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from app.models.parcel import LatLng

EARTH_RADIUS_KM = 6371.0

# 부호 면적이 이 값보다 작으면 퇴화 링으로 보고 꼭짓점 평균 사용
_DEGENERATE_AREA = 1e-12

Ring = Sequence[Sequence[float]]


def haversine_distance(a: LatLng, b: LatLng) -> float:
    """두 좌표 사이 대권 거리 (km)"""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)

    sin_d_lat = math.sin(d_lat / 2)
    sin_d_lng = math.sin(d_lng / 2)

    h = (
        sin_d_lat * sin_d_lat
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * sin_d_lng * sin_d_lng
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def _open_ring(ring: Ring) -> list[tuple[float, float]]:
    """닫힌 링(첫 점 == 끝 점)의 중복 끝 점 제거"""
    points = [(float(p[0]), float(p[1])) for p in ring]
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def compute_polygon_centroid(ring: Ring) -> LatLng:
    """폴리곤 무게중심 (shoelace 부호 면적 가중)

    면적이 0에 가까운 링(일직선, 자기교차로 상쇄된 링 등)은
    shoelace 공식이 정의되지 않으므로 꼭짓점 산술평균으로 대체한다.

    Args:
        ring: [(lng, lat), ...]

    Returns:
        LatLng
    """
    points = _open_ring(ring)
    if not points:
        raise ValueError("빈 폴리곤 링")

    area2 = 0.0  # 부호 면적 × 2
    cx = 0.0
    cy = 0.0
    n = len(points)
    for i in range(n):
        x0, y0 = points[i]
        x1, y1 = points[(i + 1) % n]
        cross = x0 * y1 - x1 * y0
        area2 += cross
        cx += (x0 + x1) * cross
        cy += (y0 + y1) * cross

    area = area2 / 2
    if abs(area) < _DEGENERATE_AREA:
        mean_x = sum(p[0] for p in points) / n
        mean_y = sum(p[1] for p in points) / n
        return LatLng(lat=mean_y, lng=mean_x)

    return LatLng(lat=cy / (6 * area), lng=cx / (6 * area))


def point_in_polygon(point: Sequence[float], ring: Ring) -> bool:
    """Ray casting 포함 판정

    반개구간 변 판정 ((yi > y) != (yj > y))으로 공유 꼭짓점 이중 계수를 막는다.

    Args:
        point: (lng, lat)
        ring: [(lng, lat), ...]
    """
    x, y = float(point[0]), float(point[1])
    points = _open_ring(ring)
    inside = False
    j = len(points) - 1
    for i in range(len(points)):
        xi, yi = points[i]
        xj, yj = points[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside
