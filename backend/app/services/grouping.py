"""키 기준 그룹핑 (삽입 순서 유지)"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def group_by(items: Iterable[T], key_fn: Callable[[T], K]) -> dict[K, list[T]]:
    """첫 등장 순서대로 키를 유지하는 그룹핑

    dict 삽입 순서가 추출 순서(=난수 소비 순서)를 결정하므로
    정렬하지 않고 입력 순서를 그대로 보존한다.
    """
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key_fn(item), []).append(item)
    return groups
