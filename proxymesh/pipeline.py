#!/usr/bin/env python3
"""
プロキシメッシュ生成パイプライン

点群 → ハイトマップ → フィルタ → 穴埋め → 正規化 → サンプル合成 →
再構成 → 後処理 の各段階を順に実行します。各段階は前段の結果を
すべて受け取ってから開始します。
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Dict, Any

import numpy as np

from . import get_logger
from .config import ReconstructionConfig
from .data_types import BoundingBox, GridSpec, PointCloud, SampleSet
from .errors import ConfigurationError, CloudLoadError
from .heightfield import (
    compute_bounding_box,
    compute_grid_size,
    rasterize_max_height,
    median_filter,
    fill_holes,
    normalize_ground,
    save_height_map,
)
from .sampling import (
    SpatialIndex,
    SamplingStats,
    DiscontinuitySampler,
    fused_cloud_samples,
    hand_off,
)
from .reconstruction import (
    MeshResult,
    PoissonSampleSink,
    remove_zero_confidence_vertices,
)
from .io import load_cloud, save_samples, save_mesh

logger = get_logger(__name__)


@dataclass
class HeightField:
    """正規化済みハイトマップ"""
    heights: np.ndarray        # (H, W)、番兵値を含まない
    grid: GridSpec
    bbox: BoundingBox
    ground_level: float
    fill_iterations: int = 0
    unreachable_cells: int = 0


@dataclass
class PipelineResult:
    """パイプライン実行結果"""
    height_field: HeightField
    samples: SampleSet               # 再構成エンジンに渡した全サンプル
    synthetic_count: int
    fused_count: int
    sampling_stats: SamplingStats
    mesh: Optional[MeshResult] = None


def build_height_field(
    points: np.ndarray,
    resolution: float,
    max_fill_iterations: Optional[int] = None
) -> HeightField:
    """
    点群から正規化済みハイトマップを作成

    Args:
        points: 点群データ (N, 3)
        resolution: グリッド解像度
        max_fill_iterations: 穴埋めの最大パス数（None で無制限）

    Returns:
        HeightField
    """
    bbox = compute_bounding_box(points)
    grid = compute_grid_size(bbox, resolution)

    hmap = rasterize_max_height(points, grid)
    hmap = median_filter(hmap)

    filled = fill_holes(hmap, max_iterations=max_fill_iterations)
    hmap = filled.heights

    ground_level = normalize_ground(hmap)

    return HeightField(
        heights=hmap,
        grid=grid,
        bbox=bbox,
        ground_level=ground_level,
        fill_iterations=filled.iterations,
        unreachable_cells=filled.remaining_holes,
    )


class ProxyMeshPipeline:
    """プロキシメッシュ生成パイプライン"""

    def __init__(
        self,
        config: ReconstructionConfig,
        sink_factory: Optional[Callable[[], Any]] = None
    ):
        """
        初期化

        Args:
            config: 検証済み設定
            sink_factory: SampleSink を作る関数（None で PoissonSampleSink）
        """
        self.config = config.validate()
        self.sink_factory = sink_factory or (
            lambda: PoissonSampleSink(
                max_octree_depth=self.config.max_octree_depth,
                support_factor=self.config.support_factor,
            )
        )
        self.stats: Dict[str, Any] = {}
        self.reset_stats()

    def run(self, cloud: Optional[PointCloud] = None, reconstruct: bool = True) -> PipelineResult:
        """
        パイプラインを実行

        Args:
            cloud: 入力点群（None なら config.cloud_path から読み込む）
            reconstruct: 再構成とメッシュ保存まで行うか

        Returns:
            PipelineResult
        """
        config = self.config
        total_start = time.perf_counter()

        if cloud is None:
            if config.cloud_path is None:
                raise ConfigurationError("No input cloud given")
            cloud = self._timed('load', load_cloud, config.cloud_path)

        if config.fuse_samples and not cloud.has_normals:
            raise CloudLoadError("Fusing samples requires per-vertex normals")

        height_field = self._timed(
            'height_field', build_height_field,
            cloud.points, config.resolution, config.max_fill_iterations
        )

        if config.height_map_path is not None:
            save_height_map(height_field.heights, config.height_map_path)

        index = None
        if config.fuse_samples:
            index = self._timed('index', SpatialIndex, cloud.points)

        sampler = DiscontinuitySampler(config.resolution, fuse=config.fuse_samples, index=index)
        synthetic = self._timed(
            'sampling', sampler.sample,
            height_field.heights, height_field.grid, height_field.ground_level
        )

        if config.samples_path is not None:
            save_samples(synthetic, config.samples_path)

        samples = synthetic
        fused_count = 0
        if config.fuse_samples:
            fused = fused_cloud_samples(cloud, default_scale=config.resolution)
            fused_count = len(fused)
            samples = SampleSet.concatenate(synthetic, fused)

        result = PipelineResult(
            height_field=height_field,
            samples=samples,
            synthetic_count=len(synthetic),
            fused_count=fused_count,
            sampling_stats=sampler.last_stats,
        )

        if reconstruct:
            mesh = self._timed('reconstruction', hand_off, self.sink_factory(), samples)
            mesh = self._timed('postprocess', remove_zero_confidence_vertices, mesh)
            if config.mesh_path is not None:
                save_mesh(mesh.mesh, config.mesh_path)
            result.mesh = mesh

        self.stats['total_time_ms'] = (time.perf_counter() - total_start) * 1000
        self.stats['grid_size'] = height_field.grid.shape
        self.stats['fill_iterations'] = height_field.fill_iterations
        self.stats['num_samples'] = len(samples)
        logger.debug(f"Pipeline stats: {self.stats}")
        return result

    def _timed(self, stage: str, func: Callable, *args, **kwargs):
        """段階を実行して所要時間を記録"""
        start_time = time.perf_counter()
        value = func(*args, **kwargs)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.stats['stage_times_ms'][stage] = elapsed_ms
        logger.debug(f"Stage '{stage}' finished in {elapsed_ms:.1f}ms")
        return value

    def get_performance_stats(self) -> Dict[str, Any]:
        """パフォーマンス統計取得"""
        stats = self.stats.copy()
        stats['stage_times_ms'] = dict(self.stats['stage_times_ms'])
        return stats

    def reset_stats(self):
        """統計リセット"""
        self.stats = {
            'stage_times_ms': {},
            'total_time_ms': 0.0,
            'grid_size': (0, 0),
            'fill_iterations': 0,
            'num_samples': 0,
        }
