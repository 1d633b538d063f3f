#!/usr/bin/env python3
"""
共通データ型定義

バウンディングボックス、グリッド仕様、点群、サンプル集合など
パイプライン全体で受け渡されるデータ構造を定義します。
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Iterator

import numpy as np


@dataclass
class BoundingBox:
    """軸並行バウンディングボックス"""
    min_point: np.ndarray      # 最小点 (3,)
    max_point: np.ndarray      # 最大点 (3,)

    @property
    def size(self) -> np.ndarray:
        """サイズを取得"""
        return self.max_point - self.min_point

    @property
    def volume(self) -> float:
        """体積を取得（いずれかの軸が0以下なら0）"""
        size = self.size
        if np.any(size <= 0.0):
            return 0.0
        return float(size[0] * size[1] * size[2])

    @staticmethod
    def from_points(points: np.ndarray) -> 'BoundingBox':
        """点群からバウンディングボックスを作成"""
        return BoundingBox(np.min(points, axis=0), np.max(points, axis=0))


@dataclass(frozen=True)
class GridSpec:
    """ハイトマップのグリッド仕様"""
    width: int                 # x方向のセル数
    height: int                # y方向のセル数
    origin_x: float            # バウンディングボックス最小x
    origin_y: float            # バウンディングボックス最小y
    resolution: float          # セルサイズ

    @property
    def shape(self) -> Tuple[int, int]:
        """配列形状 (height, width)"""
        return (self.height, self.width)

    def cell_center(self, x, y):
        """グリッド座標（スカラーまたは配列）から合成サンプルの平面座標を計算"""
        half = self.resolution / 2.0
        px = (x - half) * self.resolution + self.origin_x
        py = (y - half) * self.resolution + self.origin_y
        return px, py


@dataclass
class PointCloud:
    """向き付き点群"""
    points: np.ndarray                        # 位置 (N, 3)
    normals: Optional[np.ndarray] = None      # 法線 (N, 3)
    scales: Optional[np.ndarray] = None       # サンプルスケール (N,)
    confidences: Optional[np.ndarray] = None  # 信頼度 (N,)

    @property
    def num_points(self) -> int:
        """点数を取得"""
        return len(self.points)

    @property
    def has_normals(self) -> bool:
        return self.normals is not None and len(self.normals) == len(self.points)


@dataclass(frozen=True)
class Sample:
    """表面再構成エンジンに渡す1サンプル"""
    position: np.ndarray
    normal: np.ndarray
    scale: float
    confidence: float
    color: np.ndarray


@dataclass
class SampleSet:
    """
    サンプル集合（構造体配列ではなく配列構造体）

    順序に意味は無く、再構成エンジン側では集合として扱われます。
    """
    positions: np.ndarray      # (N, 3)
    normals: np.ndarray        # (N, 3) 単位ベクトル
    scales: np.ndarray         # (N,)
    confidences: np.ndarray    # (N,)
    colors: np.ndarray         # (N, 3)

    def __len__(self) -> int:
        return len(self.positions)

    def __iter__(self) -> Iterator[Sample]:
        for i in range(len(self)):
            yield Sample(
                position=self.positions[i],
                normal=self.normals[i],
                scale=float(self.scales[i]),
                confidence=float(self.confidences[i]),
                color=self.colors[i],
            )

    @staticmethod
    def empty() -> 'SampleSet':
        """空のサンプル集合"""
        return SampleSet(
            positions=np.zeros((0, 3), dtype=np.float64),
            normals=np.zeros((0, 3), dtype=np.float64),
            scales=np.zeros(0, dtype=np.float64),
            confidences=np.zeros(0, dtype=np.float64),
            colors=np.zeros((0, 3), dtype=np.float64),
        )

    @staticmethod
    def uniform(
        positions: np.ndarray,
        normals: np.ndarray,
        scale: float,
        confidence: float,
        color: Tuple[float, float, float]
    ) -> 'SampleSet':
        """スケール・信頼度・色が共通のサンプル集合を作成"""
        n = len(positions)
        return SampleSet(
            positions=np.asarray(positions, dtype=np.float64).reshape(n, 3),
            normals=np.asarray(normals, dtype=np.float64).reshape(n, 3),
            scales=np.full(n, scale, dtype=np.float64),
            confidences=np.full(n, confidence, dtype=np.float64),
            colors=np.tile(np.asarray(color, dtype=np.float64), (n, 1)),
        )

    @staticmethod
    def concatenate(*sets: 'SampleSet') -> 'SampleSet':
        """複数のサンプル集合を連結"""
        if not sets:
            return SampleSet.empty()
        return SampleSet(
            positions=np.concatenate([s.positions for s in sets]),
            normals=np.concatenate([s.normals for s in sets]),
            scales=np.concatenate([s.scales for s in sets]),
            confidences=np.concatenate([s.confidences for s in sets]),
            colors=np.concatenate([s.colors for s in sets]),
        )
