#!/usr/bin/env python3
"""
地面レベルの推定と正規化
"""

import numpy as np
from numba import njit, prange

from .. import get_logger
from ..constants import LOWEST
from ..errors import EmptyHeightFieldError

logger = get_logger(__name__)


@njit(cache=True, parallel=True)
def _subtract_ground_jit(flat: np.ndarray, ground_level: float, lowest: float) -> int:
    """有効セルから地面レベルを引き、番兵セルを 0 にする（その場で更新）"""
    replaced = 0
    for i in prange(flat.shape[0]):
        if flat[i] != lowest:
            flat[i] -= ground_level
        else:
            flat[i] = 0.0
            replaced += 1
    return replaced


def estimate_ground_level(hmap: np.ndarray) -> float:
    """
    有効セルの最小高度を地面レベルとして推定

    Raises:
        EmptyHeightFieldError: 有効セルが一つも無い場合
    """
    valid = hmap != LOWEST
    if not np.any(valid):
        raise EmptyHeightFieldError("Height map contains no valid cells")
    return float(hmap[valid].min())


def normalize_ground(hmap: np.ndarray) -> float:
    """
    ハイトマップを地面レベル基準に正規化（その場で更新）

    有効セルは地面レベルを引いた値に、番兵セルは正確に 0.0 になります。

    Args:
        hmap: ハイトマップ (H, W)、C連続配列であること

    Returns:
        推定した地面レベル
    """
    if not hmap.flags['C_CONTIGUOUS']:
        raise ValueError("Height map must be C-contiguous for in-place normalization")

    ground_level = estimate_ground_level(hmap)
    replaced = _subtract_ground_jit(hmap.reshape(-1), hmap.dtype.type(ground_level), LOWEST)

    logger.info(f"Ground level: {ground_level:.4f} ({replaced} empty cells set to ground)")
    return ground_level
