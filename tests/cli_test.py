#!/usr/bin/env python3
"""
コマンドラインインターフェースのテスト
"""

import os
from pathlib import Path

import numpy as np
import pytest

from proxymesh.cli import create_argument_parser, create_configuration, main
from proxymesh.config import save_config, ReconstructionConfig
from proxymesh.data_types import PointCloud
from proxymesh.io import save_cloud


class TestArguments:
    """引数解析のテスト"""

    def test_defaults_come_from_config(self):
        args = create_argument_parser().parse_args(["cloud.ply", "mesh.ply"])
        config = create_configuration(args)

        assert config.cloud_path == Path("cloud.ply")
        assert config.mesh_path == Path("mesh.ply")
        assert config.resolution == 1.0
        assert config.fuse_samples is False

    def test_options(self):
        args = create_argument_parser().parse_args([
            "-r", "0.5", "-H", "h.pfm", "--fuse-samples", "-s", "s.ply",
            "--max-fill-iterations", "20", "cloud.ply", "mesh.ply",
        ])
        config = create_configuration(args)

        assert config.resolution == 0.5
        assert config.height_map_path == Path("h.pfm")
        assert config.samples_path == Path("s.ply")
        assert config.fuse_samples is True
        assert config.max_fill_iterations == 20

    def test_command_line_overrides_file(self, temp_directory):
        path = os.path.join(temp_directory, "config.yaml")
        save_config(ReconstructionConfig(resolution=2.0, max_octree_depth=7), path)

        args = create_argument_parser().parse_args(["-c", path, "-r", "0.25", "in.ply", "out.ply"])
        config = create_configuration(args)

        assert config.resolution == 0.25
        assert config.max_octree_depth == 7

    def test_missing_positional(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(["cloud.ply"])


class TestMain:
    """main() の終了コードのテスト"""

    def test_missing_cloud(self, temp_directory):
        code = main([
            os.path.join(temp_directory, "missing.ply"),
            os.path.join(temp_directory, "mesh.ply"),
        ])
        assert code == 1

    def test_invalid_resolution(self, temp_directory):
        code = main(["-r", "-1", "cloud.ply", os.path.join(temp_directory, "mesh.ply")])
        assert code == 1

    def test_height_map_must_be_pfm(self, temp_directory):
        """PFM 以外のハイトマップ出力は処理前に拒否して終了コード 1"""
        cloud_path = save_cloud(
            PointCloud(points=np.random.default_rng(5).random((20, 3))),
            os.path.join(temp_directory, "cloud.ply"),
        )
        heights_path = os.path.join(temp_directory, "h.png")
        code = main(["-H", heights_path, str(cloud_path), os.path.join(temp_directory, "mesh.ply")])

        assert code == 1
        assert not os.path.exists(heights_path)

    def test_non_numeric_config_value(self, temp_directory):
        path = os.path.join(temp_directory, "config.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("max_fill_iterations: abc\n")
        code = main(["-c", path, "cloud.ply", os.path.join(temp_directory, "mesh.ply")])
        assert code == 1

    def test_degenerate_cloud(self, temp_directory):
        flat = PointCloud(points=np.column_stack([np.arange(4.0), np.arange(4.0), np.ones(4)]))
        cloud_path = save_cloud(flat, os.path.join(temp_directory, "flat.ply"))
        code = main([str(cloud_path), os.path.join(temp_directory, "mesh.ply")])
        assert code == 1

    @pytest.mark.slow
    def test_generate(self, building_cloud, temp_directory):
        cloud_path = save_cloud(building_cloud, os.path.join(temp_directory, "cloud.ply"))
        mesh_path = os.path.join(temp_directory, "mesh.ply")
        heights_path = os.path.join(temp_directory, "heights.pfm")

        code = main(["-r", "1.0", "-H", heights_path, str(cloud_path), mesh_path])

        assert code == 0
        assert os.path.exists(mesh_path)
        assert os.path.exists(heights_path)
