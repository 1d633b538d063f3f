#!/usr/bin/env python3
"""
空間インデックス

元点群の位置から KD-Tree を一度だけ構築し、合成サンプルの重複判定に使う
最近傍検索を提供します。構築後は読み取り専用で、並行に問い合わせできます。
"""

import time
from typing import Dict, Any

import numpy as np
from scipy.spatial import cKDTree

from .. import get_logger

logger = get_logger(__name__)


class SpatialIndex:
    """KD-Tree 最近傍インデックス"""

    def __init__(self, points: np.ndarray, workers: int = -1):
        """
        初期化

        Args:
            points: 元点群の位置 (N, 3)
            workers: バッチ検索の並列数（-1 で全コア）
        """
        start_time = time.perf_counter()

        self.points = np.asarray(points, dtype=np.float64)
        self.workers = workers
        self.kdtree = cKDTree(self.points)

        self.stats = {
            'build_time_ms': (time.perf_counter() - start_time) * 1000,
            'num_points': len(self.points),
        }
        logger.debug(
            f"KD-tree built over {len(self.points)} points in {self.stats['build_time_ms']:.1f}ms"
        )

    def find_nearest_within(self, point: np.ndarray, radius: float) -> bool:
        """
        半径 radius 以内に元点群の点があるか

        Args:
            point: 検索点 (3,)
            radius: 検索半径

        Returns:
            見つかれば True
        """
        if len(self.points) == 0:
            return False
        distance, _ = self.kdtree.query(
            np.asarray(point, dtype=np.float64), k=1,
            distance_upper_bound=np.nextafter(radius, np.inf)
        )
        return bool(distance <= radius)

    def find_nearest_within_many(self, points: np.ndarray, radius: float) -> np.ndarray:
        """
        複数点に対する find_nearest_within（バッチ検索）

        Returns:
            各点について見つかったかどうかの bool 配列 (M,)
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0 or len(self.points) == 0:
            return np.zeros(len(points), dtype=bool)

        distances, _ = self.kdtree.query(
            points, k=1,
            distance_upper_bound=np.nextafter(radius, np.inf),
            workers=self.workers
        )
        return distances <= radius

    def get_stats(self) -> Dict[str, Any]:
        """統計取得"""
        return self.stats.copy()
