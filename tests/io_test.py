#!/usr/bin/env python3
"""
点群・メッシュ入出力のテスト
"""

import os
import numpy as np
import open3d as o3d
import pytest

from proxymesh.data_types import PointCloud, SampleSet
from proxymesh.errors import CloudLoadError
from proxymesh.io import load_cloud, save_cloud, save_samples, save_mesh


class TestCloudIO:
    """点群読み込みのテスト"""

    def test_round_trip_with_attributes(self, temp_directory):
        """スケール・信頼度属性付きで保存した点群を読み戻す"""
        cloud = PointCloud(
            points=np.array([[0.0, 0.0, 0.0], [1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]),
            normals=np.tile([0.0, 0.0, 1.0], (3, 1)),
            scales=np.array([0.25, 0.5, 1.0]),
            confidences=np.array([1.0, 0.5, 0.25]),
        )
        path = save_cloud(cloud, os.path.join(temp_directory, "cloud.ply"))
        loaded = load_cloud(path)

        assert loaded.num_points == 3
        assert loaded.has_normals
        np.testing.assert_allclose(loaded.points, cloud.points)
        np.testing.assert_allclose(loaded.scales, cloud.scales)
        np.testing.assert_allclose(loaded.confidences, cloud.confidences)

    def test_missing_attributes(self, temp_directory):
        """属性が無い点群も読み込める（スケール・信頼度は None）"""
        cloud = PointCloud(points=np.random.default_rng(1).random((10, 3)))
        path = save_cloud(cloud, os.path.join(temp_directory, "bare.ply"))
        loaded = load_cloud(path)

        assert loaded.num_points == 10
        assert not loaded.has_normals
        assert loaded.scales is None
        assert loaded.confidences is None

    def test_missing_file(self, temp_directory):
        with pytest.raises(CloudLoadError):
            load_cloud(os.path.join(temp_directory, "missing.ply"))

    def test_rejects_mesh(self, temp_directory):
        """面情報を含む PLY は拒否"""
        path = os.path.join(temp_directory, "box.ply")
        o3d.io.write_triangle_mesh(path, o3d.geometry.TriangleMesh.create_box())
        with pytest.raises(CloudLoadError):
            load_cloud(path)


class TestOutputs:
    """サンプル・メッシュ書き出しのテスト"""

    def test_save_samples(self, temp_directory):
        samples = SampleSet.uniform(
            np.random.default_rng(2).random((20, 3)),
            np.tile([0.0, 0.0, 1.0], (20, 1)),
            1.0, 0.5, (0.0, 0.0, 1.0)
        )
        path = save_samples(samples, os.path.join(temp_directory, "out", "samples.ply"))

        pcd = o3d.io.read_point_cloud(str(path))
        assert len(pcd.points) == 20
        assert pcd.has_normals()
        assert pcd.has_colors()

    def test_save_mesh(self, temp_directory):
        mesh = o3d.geometry.TriangleMesh.create_box()
        mesh.compute_vertex_normals()
        path = save_mesh(mesh, os.path.join(temp_directory, "mesh.ply"))

        loaded = o3d.io.read_triangle_mesh(str(path))
        assert len(loaded.triangles) == len(mesh.triangles)
        assert loaded.has_vertex_normals()
