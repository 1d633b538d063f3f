#!/usr/bin/env python3
"""
ハイトマップ生成（最大高度ラスタライズ）

点群をXY平面に投影し、各セルで最も高い点の z 値を保持します。
"""

import numpy as np
from numba import njit

from .. import get_logger
from ..constants import LOWEST, HEIGHT_DTYPE
from ..data_types import GridSpec
from .bounds import project_to_cells

logger = get_logger(__name__)


@njit(cache=True)
def _rasterize_max_jit(
    xs: np.ndarray,
    ys: np.ndarray,
    zs: np.ndarray,
    hmap: np.ndarray
) -> int:
    """
    JIT最適化された最大高度ラスタライズ

    入力順に逐次処理し、厳密に高い値のみで上書きするため、
    同じ高さの点が複数あれば先に現れた点が残ります。
    """
    written = 0
    for i in range(zs.shape[0]):
        x = xs[i]
        y = ys[i]
        z = zs[i]
        if z <= hmap[y, x]:
            continue
        hmap[y, x] = z
        written += 1
    return written


def create_empty_heightmap(grid: GridSpec) -> np.ndarray:
    """全セル番兵値の空ハイトマップを作成"""
    return np.full(grid.shape, LOWEST, dtype=HEIGHT_DTYPE)


def rasterize_max_height(points: np.ndarray, grid: GridSpec) -> np.ndarray:
    """
    点群をハイトマップに投影（各セルの最大高度）

    Args:
        points: 点群データ (N, 3) - (x, y, z)
        grid: グリッド仕様

    Returns:
        ハイトマップ (height, width)、データなしのセルは LOWEST
    """
    xs, ys = project_to_cells(points, grid)
    zs = np.ascontiguousarray(points[:, 2], dtype=HEIGHT_DTYPE)

    hmap = create_empty_heightmap(grid)
    written = _rasterize_max_jit(xs, ys, zs, hmap)

    occupied = int(np.count_nonzero(hmap != LOWEST))
    logger.debug(f"Rasterized {len(zs)} points ({written} writes) into {occupied} cells")
    return hmap
