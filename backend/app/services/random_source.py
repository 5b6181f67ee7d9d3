"""시드 기반 난수 생성기 + 셔플

Mulberry32: 32비트 정수 시드 → [0, 1) 실수 스트림.
같은 시드면 플랫폼/실행과 무관하게 비트 단위로 같은 추출 결과가 나와야 한다
(사용자에게 '재현 가능한 추출' 기능으로 노출됨).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0

Rng = Callable[[], float]


def _imul(a: int, b: int) -> int:
    """32비트 정수 곱 (하위 32비트만 유지)"""
    return (a * b) & _MASK32


class Mulberry32:
    """Mulberry32 생성기

    호출할 때마다 다음 난수를 반환한다: rng() -> float in [0, 1)
    """

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    def __call__(self) -> float:
        self._state = (self._state + _INCREMENT) & _MASK32
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32


def resolve_seed(seed: int | None) -> int:
    """시드 결정: 미지정이면 현재 시각(ms)"""
    if seed is None:
        return int(time.time() * 1000) & _MASK32
    return seed


def create_rng(seed: int) -> Mulberry32:
    return Mulberry32(seed)


def shuffle(items: Sequence[T], rng: Rng) -> list[T]:
    """Fisher-Yates 셔플: 입력은 건드리지 않고 새 리스트 반환"""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result
