#!/usr/bin/env python3
"""
点群・メッシュの入出力

PLY 点群を Open3D のテンソル API で読み込み、点ごとのスケール（"value"）と
信頼度（"confidence"）属性も取り出します。
"""

from pathlib import Path
from typing import Optional

import numpy as np
import open3d as o3d

from .. import get_logger
from ..constants import PLY_SCALE_ATTRIBUTE, PLY_CONFIDENCE_ATTRIBUTE
from ..data_types import PointCloud, SampleSet
from ..errors import CloudLoadError

logger = get_logger(__name__)


def _attribute(pcd: o3d.t.geometry.PointCloud, name: str) -> Optional[np.ndarray]:
    """テンソル点群から属性を numpy 配列で取り出す（無ければ None）"""
    if name not in pcd.point:
        return None
    return pcd.point[name].numpy()


def load_cloud(path: Path) -> PointCloud:
    """
    PLY 点群を読み込み

    Args:
        path: 点群ファイルパス

    Returns:
        PointCloud

    Raises:
        CloudLoadError: ファイルが無い・読めない・空・面情報を含む場合
    """
    path = Path(path)
    if not path.exists():
        raise CloudLoadError(f"Could not load cloud: {path} does not exist")

    try:
        mesh = o3d.io.read_triangle_mesh(str(path))
        pcd = o3d.t.io.read_point_cloud(str(path))
    except RuntimeError as e:
        raise CloudLoadError(f"Could not load cloud: {e}") from e

    if len(mesh.triangles) > 0:
        raise CloudLoadError(f"Cloud {path} contains {len(mesh.triangles)} faces")

    points = _attribute(pcd, "positions")
    if points is None or len(points) == 0:
        raise CloudLoadError(f"Could not load cloud: {path} contains no vertices")

    n = len(points)
    normals = _attribute(pcd, "normals")
    scales = _attribute(pcd, PLY_SCALE_ATTRIBUTE)
    confidences = _attribute(pcd, PLY_CONFIDENCE_ATTRIBUTE)

    if scales is None:
        logger.warning(f"Cloud has no '{PLY_SCALE_ATTRIBUTE}' attribute, sample scales will default")
    if confidences is None:
        logger.warning(f"Cloud has no '{PLY_CONFIDENCE_ATTRIBUTE}' attribute, confidences will default")

    cloud = PointCloud(
        points=points.astype(np.float64).reshape(n, 3),
        normals=None if normals is None else normals.astype(np.float64).reshape(n, 3),
        scales=None if scales is None else scales.astype(np.float64).reshape(n),
        confidences=None if confidences is None else confidences.astype(np.float64).reshape(n),
    )
    logger.info(f"Loaded {n} points from {path}")
    return cloud


def save_cloud(cloud: PointCloud, path: Path) -> Path:
    """点群を PLY として保存（スケール・信頼度属性付き）"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    pcd = o3d.t.geometry.PointCloud()
    pcd.point.positions = o3d.core.Tensor(np.asarray(cloud.points, dtype=np.float32))
    if cloud.has_normals:
        pcd.point.normals = o3d.core.Tensor(np.asarray(cloud.normals, dtype=np.float32))
    if cloud.scales is not None:
        pcd.point[PLY_SCALE_ATTRIBUTE] = o3d.core.Tensor(
            np.asarray(cloud.scales, dtype=np.float32).reshape(-1, 1))
    if cloud.confidences is not None:
        pcd.point[PLY_CONFIDENCE_ATTRIBUTE] = o3d.core.Tensor(
            np.asarray(cloud.confidences, dtype=np.float32).reshape(-1, 1))

    if not o3d.t.io.write_point_cloud(str(path), pcd):
        raise IOError(f"Could not write cloud to {path}")
    return path


def save_samples(samples: SampleSet, path: Path) -> Path:
    """合成サンプルを法線・色付き PLY 点群として保存（確認用）"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(samples.positions)
    pcd.normals = o3d.utility.Vector3dVector(samples.normals)
    pcd.colors = o3d.utility.Vector3dVector(samples.colors)

    if not o3d.io.write_point_cloud(str(path), pcd):
        raise IOError(f"Could not write samples to {path}")
    logger.info(f"Saved {len(samples)} samples to {path}")
    return path


def save_mesh(mesh: o3d.geometry.TriangleMesh, path: Path) -> Path:
    """メッシュを頂点法線付きで保存"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if not o3d.io.write_triangle_mesh(str(path), mesh, write_vertex_normals=True):
        raise IOError(f"Could not write mesh to {path}")
    logger.info(f"Saved mesh ({len(mesh.vertices)} vertices, {len(mesh.triangles)} triangles) to {path}")
    return path
