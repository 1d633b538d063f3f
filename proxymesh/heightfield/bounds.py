#!/usr/bin/env python3
"""
バウンディングボックスとグリッドサイズ計算

入力点群の範囲からハイトマップのグリッド寸法を求め、
各点をグリッドセルへ対応付けます。
"""

from typing import Tuple

import numpy as np

from .. import get_logger
from ..data_types import BoundingBox, GridSpec
from ..errors import ConfigurationError, DegenerateCloudError

logger = get_logger(__name__)


def compute_bounding_box(points: np.ndarray) -> BoundingBox:
    """
    点群のバウンディングボックスを計算

    Args:
        points: 点群データ (N, 3)

    Returns:
        バウンディングボックス

    Raises:
        DegenerateCloudError: 点群が空、または体積が0以下の場合
    """
    points = np.asarray(points)
    if points.ndim != 2 or points.shape[1] != 3:
        raise DegenerateCloudError(f"Points must be (N, 3), got {points.shape}")
    if len(points) == 0:
        raise DegenerateCloudError("Empty point cloud")

    bbox = BoundingBox.from_points(points.astype(np.float64))
    if bbox.volume <= 0.0:
        raise DegenerateCloudError(
            f"Bounding box has no volume: min={bbox.min_point}, max={bbox.max_point}"
        )
    return bbox


def compute_grid_size(bbox: BoundingBox, resolution: float) -> GridSpec:
    """
    グリッドサイズ計算

    各軸のセル数は floor(範囲 / 解像度) + 1 です。
    """
    if not np.isfinite(resolution) or resolution <= 0.0:
        raise ConfigurationError(f"resolution must be positive, got {resolution}")

    size = bbox.size
    width = int(size[0] / resolution + 1.0)
    height = int(size[1] / resolution + 1.0)

    grid = GridSpec(
        width=width,
        height=height,
        origin_x=float(bbox.min_point[0]),
        origin_y=float(bbox.min_point[1]),
        resolution=float(resolution),
    )
    logger.info(f"Creating height map ({width}x{height})")
    return grid


def project_to_cells(points: np.ndarray, grid: GridSpec) -> Tuple[np.ndarray, np.ndarray]:
    """
    点群をグリッド座標に投影

    idx = int((coord - min) / r + r / 2 + 0.5) でセル中心のオフセットと
    四捨五入を行い、グリッド外に出たインデックスは端のセルに丸めます。

    Returns:
        (xs, ys) の整数インデックス配列
    """
    r = grid.resolution
    offset = r / 2.0 + 0.5
    xs = ((points[:, 0] - grid.origin_x) / r + offset).astype(np.int64)
    ys = ((points[:, 1] - grid.origin_y) / r + offset).astype(np.int64)

    outside = np.count_nonzero((xs >= grid.width) | (ys >= grid.height) | (xs < 0) | (ys < 0))
    if outside:
        logger.debug(f"{outside} points projected outside the grid, clamped to the border")

    np.clip(xs, 0, grid.width - 1, out=xs)
    np.clip(ys, 0, grid.height - 1, out=ys)
    return xs, ys
