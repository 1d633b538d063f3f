#!/usr/bin/env python3
"""
パイプライン統合テスト

建物1棟の合成点群からハイトマップ・サンプル・メッシュまでを通しで実行します。
"""

import os
import numpy as np
import pytest
from unittest.mock import Mock

from proxymesh.config import ReconstructionConfig
from proxymesh.constants import LOWEST, FUSED_COLOR
from proxymesh.data_types import PointCloud
from proxymesh.errors import ConfigurationError, CloudLoadError, DegenerateCloudError
from proxymesh.heightfield import load_height_map
from proxymesh.io import save_cloud
from proxymesh.pipeline import ProxyMeshPipeline, build_height_field


class TestBuildHeightField:
    """ハイトマップ構築のテスト"""

    def test_building(self, building_cloud):
        field = build_height_field(building_cloud.points, resolution=1.0)

        assert field.grid.shape == (21, 21)
        assert field.ground_level == 0.0
        assert not np.any(field.heights == LOWEST)
        assert field.heights.min() == 0.0
        assert field.heights.max() == 6.0
        assert field.unreachable_cells == 0
        # 屋根の中央
        assert field.heights[10, 10] == 6.0

    def test_degenerate_cloud(self):
        points = np.column_stack([np.arange(5.0), np.arange(5.0), np.zeros(5)])
        with pytest.raises(DegenerateCloudError):
            build_height_field(points, resolution=1.0)


class TestProxyMeshPipeline:
    """パイプライン実行のテスト"""

    def test_samples_without_reconstruction(self, building_cloud):
        pipeline = ProxyMeshPipeline(ReconstructionConfig(resolution=1.0))
        result = pipeline.run(cloud=building_cloud, reconstruct=False)

        stats = result.sampling_stats
        assert result.mesh is None
        assert result.fused_count == 0
        assert result.synthetic_count == len(result.samples)
        assert stats.total_samples == len(result.samples)
        assert stats.discontinuity_cells > 0
        assert stats.wall_samples > 0
        assert stats.flat_samples > 0

        # サンプルは地面と屋根の間にある
        zs = result.samples.positions[:, 2]
        assert zs.min() >= -1e-6
        assert zs.max() <= 6.0 + 1e-6

        # 壁面サンプルは水平法線
        horizontal = np.isclose(result.samples.normals[:, 2], 0.0)
        assert np.count_nonzero(horizontal) == stats.wall_samples

        perf = pipeline.get_performance_stats()
        assert set(perf['stage_times_ms']) == {'height_field', 'sampling'}
        assert perf['grid_size'] == (21, 21)
        assert perf['num_samples'] == len(result.samples)

    def test_fuse_mode(self, building_cloud):
        pipeline = ProxyMeshPipeline(ReconstructionConfig(resolution=1.0, fuse_samples=True))
        result = pipeline.run(cloud=building_cloud, reconstruct=False)

        assert result.fused_count == building_cloud.num_points
        assert result.sampling_stats.flat_samples == 0
        assert len(result.samples) == result.synthetic_count + result.fused_count
        np.testing.assert_allclose(result.samples.colors[-1], FUSED_COLOR)
        assert 'index' in pipeline.get_performance_stats()['stage_times_ms']

    def test_fuse_requires_normals(self, building_cloud):
        cloud = PointCloud(points=building_cloud.points)
        pipeline = ProxyMeshPipeline(ReconstructionConfig(resolution=1.0, fuse_samples=True))
        with pytest.raises(CloudLoadError):
            pipeline.run(cloud=cloud, reconstruct=False)

    def test_requires_input(self):
        pipeline = ProxyMeshPipeline(ReconstructionConfig())
        with pytest.raises(ConfigurationError):
            pipeline.run()

    def test_custom_sink(self, building_cloud):
        """受け渡し先を差し替えられる"""
        sink = Mock()
        sink.extract_mesh.side_effect = RuntimeError("stop")
        pipeline = ProxyMeshPipeline(ReconstructionConfig(resolution=1.0), sink_factory=lambda: sink)

        with pytest.raises(RuntimeError):
            pipeline.run(cloud=building_cloud)
        assert sink.insert_many.call_count == 1
        assert sink.clear_samples.call_count == 1

    def test_reset_stats(self, building_cloud):
        pipeline = ProxyMeshPipeline(ReconstructionConfig(resolution=1.0))
        pipeline.run(cloud=building_cloud, reconstruct=False)
        pipeline.reset_stats()
        assert pipeline.get_performance_stats()['stage_times_ms'] == {}

    @pytest.mark.slow
    def test_full_run_from_files(self, building_cloud, temp_directory):
        """ファイルから読み込み、ハイトマップ・サンプル・メッシュを書き出す"""
        cloud_path = save_cloud(building_cloud, os.path.join(temp_directory, "cloud.ply"))
        config = ReconstructionConfig(
            cloud_path=cloud_path,
            mesh_path=os.path.join(temp_directory, "mesh.ply"),
            height_map_path=os.path.join(temp_directory, "heights.pfm"),
            samples_path=os.path.join(temp_directory, "samples.ply"),
            resolution=1.0,
        )
        pipeline = ProxyMeshPipeline(config)
        result = pipeline.run()

        assert config.mesh_path.exists()
        assert config.samples_path.exists()
        heights = load_height_map(config.height_map_path)
        np.testing.assert_array_equal(heights, result.height_field.heights)

        assert result.mesh is not None
        assert result.mesh.num_vertices > 0
        assert np.all(result.mesh.confidences > 0.0)
        assert {'load', 'reconstruction', 'postprocess'} <= set(
            pipeline.get_performance_stats()['stage_times_ms']
        )
