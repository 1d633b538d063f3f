#!/usr/bin/env python3
"""
不連続部の判定とサンプル合成

正規化済みハイトマップの各セルで局所勾配を推定し、緩やかな地形と
垂直に近い不連続部（建物の壁面など）を区別します。
平坦なセルには上向きのサンプルを1つ、不連続部には上面サンプルと
解像度刻みで下りる壁面サンプル列（階段）を生成します。
"""

import time
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Tuple

import numpy as np
from numba import njit, prange

from .. import get_logger
from ..constants import (
    SYNTHETIC_CONFIDENCE,
    SYNTHETIC_COLOR,
    UP_NORMAL,
    NUMERICAL_TOLERANCE,
)
from ..data_types import GridSpec, SampleSet
from .index import SpatialIndex

logger = get_logger(__name__)

# 勾配計算に3x3近傍の差分が必要なため、外周2セルは対象外
BORDER_MARGIN = 2


@njit(cache=True, parallel=True)
def _classify_cells_jit(hmap: np.ndarray) -> np.ndarray:
    """
    JIT最適化された方向差分・Sobel勾配計算（行並列）

    Returns:
        (7, H, W) 配列: rdx, rdy, fdx, fdy, m, gx, gy
    """
    height, width = hmap.shape
    out = np.zeros((7, height, width), dtype=np.float64)

    for y in prange(BORDER_MARGIN, height - BORDER_MARGIN):
        for x in range(BORDER_MARGIN, width - BORDER_MARGIN):
            c = np.float64(hmap[y, x])
            left = np.float64(hmap[y, x - 1])
            right = np.float64(hmap[y, x + 1])
            up = np.float64(hmap[y - 1, x])
            down = np.float64(hmap[y + 1, x])

            # 後方差分 / 前方差分
            rdx = c - left
            rdy = c - up
            fdx = right - c
            fdy = down - c

            m = max(max(rdx, -fdx), max(rdy, -fdy))

            gx = (
                -np.float64(hmap[y - 1, x - 1]) + np.float64(hmap[y - 1, x + 1])
                + 2.0 * (-left + right)
                - np.float64(hmap[y + 1, x - 1]) + np.float64(hmap[y + 1, x + 1])
            )
            gy = (
                -np.float64(hmap[y - 1, x - 1]) + np.float64(hmap[y + 1, x - 1])
                + 2.0 * (-up + down)
                - np.float64(hmap[y - 1, x + 1]) + np.float64(hmap[y + 1, x + 1])
            )

            out[0, y, x] = rdx
            out[1, y, x] = rdy
            out[2, y, x] = fdx
            out[3, y, x] = fdy
            out[4, y, x] = m
            out[5, y, x] = gx
            out[6, y, x] = gy

    return out


@dataclass
class CellClassification:
    """セルごとの方向差分と勾配"""
    rdx: np.ndarray            # x方向の後方差分 (H, W)
    rdy: np.ndarray            # y方向の後方差分 (H, W)
    fdx: np.ndarray            # x方向の前方差分 (H, W)
    fdy: np.ndarray            # y方向の前方差分 (H, W)
    m: np.ndarray              # 関連する段差の大きさ (H, W)
    gx: np.ndarray             # Sobel 勾配 x (H, W)
    gy: np.ndarray             # Sobel 勾配 y (H, W)
    mask: np.ndarray           # 判定対象セル (H, W)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.m.shape

    def discontinuity_mask(self, resolution: float) -> np.ndarray:
        """不連続部（m > 解像度）のマスク"""
        return self.mask & (self.m > resolution)

    def flat_mask(self, resolution: float) -> np.ndarray:
        """平坦部（m <= 解像度）のマスク"""
        return self.mask & (self.m <= resolution)


def classify_cells(hmap: np.ndarray) -> CellClassification:
    """
    ハイトマップの各セルの方向差分と Sobel 勾配を計算

    外周2セルは判定対象外（mask が False）です。
    """
    height, width = hmap.shape
    fields_ = _classify_cells_jit(np.ascontiguousarray(hmap, dtype=np.float32))

    mask = np.zeros((height, width), dtype=bool)
    if height > 2 * BORDER_MARGIN and width > 2 * BORDER_MARGIN:
        mask[BORDER_MARGIN:height - BORDER_MARGIN, BORDER_MARGIN:width - BORDER_MARGIN] = True

    return CellClassification(
        rdx=fields_[0], rdy=fields_[1], fdx=fields_[2], fdy=fields_[3],
        m=fields_[4], gx=fields_[5], gy=fields_[6], mask=mask,
    )


def gradient_normals(gx: np.ndarray, gy: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    勾配から水平方向の単位法線 normalize(-gx, -gy, 0) を計算

    Returns:
        (法線 (N, 3), 法線が定義できたかの bool 配列 (N,))
    """
    normals = np.stack([-gx, -gy, np.zeros_like(gx)], axis=-1).astype(np.float64)
    lengths = np.linalg.norm(normals, axis=-1)
    valid = lengths > NUMERICAL_TOLERANCE
    normals[valid] /= lengths[valid][:, np.newaxis]
    normals[~valid] = 0.0
    return normals, valid


def is_concave_corner(
    rdx: np.ndarray,
    rdy: np.ndarray,
    fdx: np.ndarray,
    fdy: np.ndarray
) -> np.ndarray:
    """入り隅（両方向とも谷になっているセル）かどうか"""
    return (fdx > 0.0) & (rdx < 0.0) & (fdy > 0.0) & (rdy < 0.0)


@dataclass
class SamplingStats:
    """サンプル合成の統計"""
    interior_cells: int = 0
    flat_cells: int = 0
    discontinuity_cells: int = 0
    flat_samples: int = 0
    top_samples: int = 0
    wall_candidates: int = 0
    wall_samples: int = 0
    suppressed_by_corner: int = 0
    suppressed_by_index: int = 0
    degenerate_normals: int = 0
    elapsed_ms: float = 0.0

    @property
    def total_samples(self) -> int:
        return self.flat_samples + self.top_samples + self.wall_samples

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['total_samples'] = self.total_samples
        return data


class DiscontinuitySampler:
    """不連続部を考慮したサンプル合成クラス"""

    def __init__(
        self,
        resolution: float,
        fuse: bool = False,
        index: Optional[SpatialIndex] = None
    ):
        """
        初期化

        Args:
            resolution: ハイトマップ解像度（壁面サンプルの縦間隔にもなる）
            fuse: 元点群と融合するか（平坦セルのサンプルを省略し、
                  元点群に近い壁面サンプルを除去する）
            index: 元点群の空間インデックス（fuse 時に必要）
        """
        if fuse and index is None:
            raise ValueError("fuse mode requires a spatial index over the original cloud")

        self.resolution = float(resolution)
        self.fuse = fuse
        self.index = index
        self.last_stats = SamplingStats()

    def sample(self, hmap: np.ndarray, grid: GridSpec, ground_level: float) -> SampleSet:
        """
        正規化済みハイトマップからサンプルを合成

        Args:
            hmap: 正規化済みハイトマップ (H, W)
            grid: グリッド仕様
            ground_level: 正規化で引いた地面レベル

        Returns:
            合成サンプル集合
        """
        return self.sample_classified(classify_cells(hmap), hmap, grid, ground_level)

    def sample_classified(
        self,
        cells: CellClassification,
        hmap: np.ndarray,
        grid: GridSpec,
        ground_level: float
    ) -> SampleSet:
        """判定済みのセル情報からサンプルを合成"""
        start_time = time.perf_counter()
        r = self.resolution
        stats = SamplingStats(interior_cells=int(np.count_nonzero(cells.mask)))

        flat = cells.flat_mask(r)
        disc = cells.discontinuity_mask(r)
        stats.flat_cells = int(np.count_nonzero(flat))
        stats.discontinuity_cells = int(np.count_nonzero(disc))

        parts = []

        # 平坦セル: 上向きのサンプルを1つ
        if not self.fuse and stats.flat_cells:
            positions = self._cell_positions(flat, hmap, grid, ground_level)
            normals = np.tile(np.asarray(UP_NORMAL, dtype=np.float64), (len(positions), 1))
            parts.append(SampleSet.uniform(positions, normals, r, SYNTHETIC_CONFIDENCE, SYNTHETIC_COLOR))
            stats.flat_samples = len(positions)

        if stats.discontinuity_cells:
            top_positions = self._cell_positions(disc, hmap, grid, ground_level)
            grad_normals, grad_valid = gradient_normals(cells.gx[disc], cells.gy[disc])

            # 上面サンプル: 上向きと勾配法線の平均方向
            top_normals = grad_normals + np.asarray(UP_NORMAL, dtype=np.float64)
            top_normals /= np.linalg.norm(top_normals, axis=1)[:, np.newaxis]
            parts.append(SampleSet.uniform(top_positions, top_normals, r, SYNTHETIC_CONFIDENCE, SYNTHETIC_COLOR))
            stats.top_samples = len(top_positions)

            walls = self._wall_samples(cells, disc, top_positions, grad_normals, grad_valid, stats)
            if len(walls):
                parts.append(walls)

        samples = SampleSet.concatenate(*parts) if parts else SampleSet.empty()

        stats.elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.last_stats = stats
        logger.info(
            f"Synthesized {stats.total_samples} samples "
            f"({stats.flat_samples} flat, {stats.top_samples} top, {stats.wall_samples} wall)"
        )
        logger.debug(f"Sampling stats: {stats.to_dict()}")
        return samples

    def _cell_positions(
        self,
        mask: np.ndarray,
        hmap: np.ndarray,
        grid: GridSpec,
        ground_level: float
    ) -> np.ndarray:
        """マスクされたセルのサンプル位置（セル中心、高さは元の座標系）"""
        ys, xs = np.nonzero(mask)
        px, py = grid.cell_center(xs, ys)
        pz = hmap[ys, xs].astype(np.float64) + ground_level
        return np.column_stack([px, py, pz])

    def _wall_samples(
        self,
        cells: CellClassification,
        disc: np.ndarray,
        top_positions: np.ndarray,
        grad_normals: np.ndarray,
        grad_valid: np.ndarray,
        stats: SamplingStats
    ) -> SampleSet:
        """不連続セルの下に解像度刻みの壁面サンプルを生成"""
        r = self.resolution

        steps = np.floor(cells.m[disc] / r).astype(np.int64)
        total = int(steps.sum())
        stats.wall_candidates = total
        if total == 0:
            return SampleSet.empty()

        # 候補ごとのセル番号と段番号 (1..steps)
        cell_ids = np.repeat(np.arange(len(steps)), steps)
        first = np.repeat(np.cumsum(steps) - steps, steps)
        step_ids = np.arange(total) - first + 1

        positions = top_positions[cell_ids].copy()
        positions[:, 2] -= step_ids * r
        normals = grad_normals[cell_ids]

        keep = np.ones(total, dtype=bool)

        degenerate = ~grad_valid[cell_ids]
        stats.degenerate_normals = int(np.count_nonzero(degenerate))
        keep &= ~degenerate

        # 入り隅では壁が自己交差するため除外（融合モードに関係なく）
        corner = is_concave_corner(
            cells.rdx[disc], cells.rdy[disc], cells.fdx[disc], cells.fdy[disc]
        )[cell_ids] & keep
        stats.suppressed_by_corner = int(np.count_nonzero(corner))
        keep &= ~corner

        # 元点群で既に覆われている壁面は除外
        if self.fuse and np.any(keep):
            covered = np.zeros(total, dtype=bool)
            covered[keep] = self.index.find_nearest_within_many(positions[keep], r)
            stats.suppressed_by_index = int(np.count_nonzero(covered))
            keep &= ~covered

        stats.wall_samples = int(np.count_nonzero(keep))
        return SampleSet.uniform(positions[keep], normals[keep], r, SYNTHETIC_CONFIDENCE, SYNTHETIC_COLOR)


def synthesize_samples(
    hmap: np.ndarray,
    grid: GridSpec,
    ground_level: float,
    fuse: bool = False,
    index: Optional[SpatialIndex] = None
) -> Tuple[SampleSet, SamplingStats]:
    """
    正規化済みハイトマップからサンプルを合成（簡単なインターフェース）

    Returns:
        (サンプル集合, 統計)
    """
    sampler = DiscontinuitySampler(grid.resolution, fuse=fuse, index=index)
    samples = sampler.sample(hmap, grid, ground_level)
    return samples, sampler.last_stats
