#!/usr/bin/env python3
"""
ハイトマップのステンシルフィルタ

外れ値除去の3x3中央値フィルタと、番兵セルを近傍の中央値で
繰り返し埋める穴埋めフィルタを提供します。
どちらも読み込み用と書き込み用に別々の配列を使います（ダブルバッファ）。
"""

import time
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numba import njit, prange

from .. import get_logger
from ..constants import LOWEST, HEIGHT_DTYPE, MIN_FILL_NEIGHBORS

logger = get_logger(__name__)


@njit(cache=True)
def _insertion_sort(buf: np.ndarray, n: int) -> None:
    """先頭 n 要素をその場でソート（9要素以下なので挿入ソート）"""
    for i in range(1, n):
        value = buf[i]
        j = i - 1
        while j >= 0 and buf[j] > value:
            buf[j + 1] = buf[j]
            j -= 1
        buf[j + 1] = value


@njit(cache=True, parallel=True)
def _median_filter_jit(hmap: np.ndarray, lowest: float) -> np.ndarray:
    """JIT最適化された3x3中央値フィルタ（行並列）"""
    height, width = hmap.shape
    out = np.empty_like(hmap)

    for y in prange(height):
        buf = np.empty(9, dtype=np.float32)
        for x in range(width):
            if y == 0 or y == height - 1 or x == 0 or x == width - 1:
                out[y, x] = lowest
                continue

            k = 0
            for dy in range(-1, 2):
                for dx in range(-1, 2):
                    buf[k] = hmap[y + dy, x + dx]
                    k += 1
            _insertion_sort(buf, 9)
            out[y, x] = buf[4]

    return out


@njit(cache=True, parallel=True)
def _fill_holes_step_jit(hmap: np.ndarray, lowest: float, min_neighbors: int):
    """
    JIT最適化された穴埋め1パス（行並列）

    Returns:
        (新しいハイトマップ, 今回埋めたセル数, 残った穴の数)
    """
    height, width = hmap.shape
    out = np.empty_like(hmap)
    filled_rows = np.zeros(height, dtype=np.int64)
    holes_rows = np.zeros(height, dtype=np.int64)

    for y in prange(height):
        buf = np.empty(9, dtype=np.float32)
        for x in range(width):
            if y == 0 or y == height - 1 or x == 0 or x == width - 1:
                out[y, x] = lowest
                continue

            center = hmap[y, x]
            if center != lowest:
                out[y, x] = center
                continue

            n = 0
            for dy in range(-1, 2):
                for dx in range(-1, 2):
                    value = hmap[y + dy, x + dx]
                    if value != lowest:
                        buf[n] = value
                        n += 1

            if n >= min_neighbors:
                _insertion_sort(buf, n)
                out[y, x] = buf[n // 2]
                filled_rows[y] += 1
            else:
                out[y, x] = lowest
                holes_rows[y] += 1

    return out, filled_rows.sum(), holes_rows.sum()


def median_filter(hmap: np.ndarray) -> np.ndarray:
    """
    3x3中央値フィルタで外れ値を除去

    境界セルは常に番兵値になります。内部セルは番兵値を含む
    9近傍の5番目に小さい値を取ります。

    Args:
        hmap: ハイトマップ (H, W)

    Returns:
        新しいハイトマップ（入力は変更しない）
    """
    return _median_filter_jit(np.ascontiguousarray(hmap, dtype=HEIGHT_DTYPE), LOWEST)


def fill_holes_step(hmap: np.ndarray) -> Tuple[np.ndarray, int, int]:
    """
    穴埋めを1パス実行

    Returns:
        (新しいハイトマップ, 今回埋めたセル数, 残った内部の穴の数)
    """
    out, filled, holes = _fill_holes_step_jit(
        np.ascontiguousarray(hmap, dtype=HEIGHT_DTYPE), LOWEST, MIN_FILL_NEIGHBORS
    )
    return out, int(filled), int(holes)


@dataclass
class HoleFillResult:
    """穴埋め結果"""
    heights: np.ndarray        # 穴埋め後のハイトマップ
    iterations: int            # 実行したパス数
    filled_cells: int          # 埋めたセルの総数
    remaining_holes: int       # 到達不能で残った内部セル数
    elapsed_ms: float = 0.0


def fill_holes(hmap: np.ndarray, max_iterations: Optional[int] = None) -> HoleFillResult:
    """
    不動点に達するまで穴埋めを繰り返す

    各パスは前のパスの結果全体を読み、新しいセルが一つも埋まらなかった
    時点で停止します。有限の近傍に到達できないセルは番兵値のまま残ります。

    Args:
        hmap: ハイトマップ (H, W)
        max_iterations: 最大パス数（None で無制限）

    Returns:
        HoleFillResult
    """
    start_time = time.perf_counter()

    current = np.ascontiguousarray(hmap, dtype=HEIGHT_DTYPE)
    iterations = 0
    total_filled = 0
    holes = 0

    while True:
        current, filled, holes = fill_holes_step(current)
        iterations += 1
        total_filled += filled

        if filled == 0 or holes == 0:
            break
        if max_iterations is not None and iterations >= max_iterations:
            logger.warning(
                f"Hole filling stopped after {iterations} iterations with {holes} holes left"
            )
            break

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        f"Filled {total_filled} cells in {iterations} iterations ({holes} unreachable)"
    )
    return HoleFillResult(
        heights=current,
        iterations=iterations,
        filled_cells=total_filled,
        remaining_holes=holes,
        elapsed_ms=elapsed_ms,
    )
