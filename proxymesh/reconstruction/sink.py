#!/usr/bin/env python3
"""
サンプル受け渡し先（体積的表面再構成エンジン）

SampleSink プロトコルと、Open3D の Poisson 表面再構成を使った実装を
提供します。再構成アルゴリズム自体の中身はこのパッケージの対象外で、
挿入・深さ制限・ボクセル計算・サンプル解放・抽出の呼び出しだけを行います。
"""

import math
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

import numpy as np
import open3d as o3d
from scipy.spatial import cKDTree

from .. import get_logger
from ..constants import DEFAULT_MAX_OCTREE_DEPTH, DEFAULT_SUPPORT_FACTOR
from ..data_types import Sample, SampleSet
from ..errors import ReconstructionError

logger = get_logger(__name__)


@runtime_checkable
class SampleSink(Protocol):
    """
    サンプルを受け取る再構成エンジンのプロトコル

    まとめて挿入できる実装は insert_many(samples) も提供できます（任意）。
    """

    def insert(self, sample: Sample) -> None:
        """サンプルを1つ挿入"""
        ...

    def limit_octree_level(self) -> None:
        """八分木の深さを制限"""
        ...

    def compute_voxels(self) -> None:
        """ボクセル（陰関数）を計算"""
        ...

    def clear_samples(self) -> None:
        """サンプルを解放"""
        ...

    def extract_mesh(self) -> 'MeshResult':
        """等値面を抽出"""
        ...


@dataclass
class MeshResult:
    """抽出されたメッシュと頂点信頼度"""
    mesh: o3d.geometry.TriangleMesh
    confidences: np.ndarray    # 頂点信頼度 (N,)、サンプルの影響外は 0.0
    depth: int = 0             # 使用した八分木の深さ
    elapsed_ms: float = 0.0

    @property
    def num_vertices(self) -> int:
        return len(self.mesh.vertices)

    @property
    def num_triangles(self) -> int:
        return len(self.mesh.triangles)


class PoissonSampleSink:
    """Open3D Poisson 表面再構成によるサンプル受け渡し先"""

    def __init__(
        self,
        max_octree_depth: int = DEFAULT_MAX_OCTREE_DEPTH,
        support_factor: float = DEFAULT_SUPPORT_FACTOR
    ):
        """
        初期化

        Args:
            max_octree_depth: 八分木の最大深さ
            support_factor: 頂点信頼度を与えるサンプル影響半径（スケールの倍率）
        """
        self.max_octree_depth = max_octree_depth
        self.support_factor = support_factor

        self._chunks: List[SampleSet] = []
        self._pending: List[Sample] = []
        self._samples: Optional[SampleSet] = None
        self._point_cloud: Optional[o3d.geometry.PointCloud] = None
        self._kdtree: Optional[cKDTree] = None
        self._scales: Optional[np.ndarray] = None
        self._confidences: Optional[np.ndarray] = None
        self.depth: Optional[int] = None

    @property
    def num_samples(self) -> int:
        """挿入済みサンプル数"""
        return sum(len(c) for c in self._chunks) + len(self._pending)

    def insert(self, sample: Sample) -> None:
        self._pending.append(sample)

    def insert_many(self, samples: SampleSet) -> None:
        if len(samples):
            self._chunks.append(samples)

    def _collect(self) -> SampleSet:
        """挿入されたサンプルを1つの集合にまとめる"""
        if self._pending:
            self._chunks.append(SampleSet(
                positions=np.array([s.position for s in self._pending], dtype=np.float64),
                normals=np.array([s.normal for s in self._pending], dtype=np.float64),
                scales=np.array([s.scale for s in self._pending], dtype=np.float64),
                confidences=np.array([s.confidence for s in self._pending], dtype=np.float64),
                colors=np.array([s.color for s in self._pending], dtype=np.float64),
            ))
            self._pending = []
        samples = SampleSet.concatenate(*self._chunks)
        self._chunks = [samples] if len(samples) else []
        return samples

    def limit_octree_level(self) -> None:
        """最も細かいサンプルスケールと全体の範囲から八分木の深さを決める"""
        samples = self._collect()
        if len(samples) == 0:
            raise ReconstructionError("No samples inserted")

        extent = float(np.max(samples.positions.max(axis=0) - samples.positions.min(axis=0)))
        finest = float(np.min(samples.scales[samples.scales > 0.0], initial=np.inf))

        if extent <= 0.0 or not math.isfinite(finest):
            depth = 1
        else:
            depth = int(math.ceil(math.log2(max(extent / finest, 1.0))))
        self.depth = int(np.clip(depth, 1, self.max_octree_depth))
        logger.debug(f"Octree depth limited to {self.depth} (extent {extent:.3f}, finest scale {finest:.3f})")

    def compute_voxels(self) -> None:
        """Poisson 用の点群と頂点信頼度用の KD-Tree を構築"""
        samples = self._collect()
        if self.depth is None:
            self.limit_octree_level()

        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(samples.positions)
        pcd.normals = o3d.utility.Vector3dVector(samples.normals)
        pcd.colors = o3d.utility.Vector3dVector(samples.colors)

        self._point_cloud = pcd
        self._kdtree = cKDTree(samples.positions)
        self._scales = samples.scales.copy()
        self._confidences = samples.confidences.copy()

    def clear_samples(self) -> None:
        self._chunks = []
        self._pending = []

    def extract_mesh(self) -> MeshResult:
        """
        Poisson 再構成で等値面を抽出

        各頂点の信頼度は最近傍サンプルの信頼度で、そのサンプルの
        影響半径（support_factor * scale）の外にある頂点は 0.0 になります。
        """
        if self._point_cloud is None:
            raise ReconstructionError("compute_voxels() must be called before extract_mesh()")

        start_time = time.perf_counter()
        mesh, _densities = o3d.geometry.TriangleMesh.create_from_point_cloud_poisson(
            self._point_cloud, depth=self.depth
        )
        if len(mesh.vertices) == 0:
            raise ReconstructionError("Surface extraction produced an empty mesh")

        vertices = np.asarray(mesh.vertices)
        distances, nearest = self._kdtree.query(vertices, k=1, workers=-1)
        support = self.support_factor * self._scales[nearest]
        confidences = np.where(distances <= support, self._confidences[nearest], 0.0)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Extracted mesh with {len(mesh.vertices)} vertices, "
            f"{len(mesh.triangles)} triangles (depth {self.depth})"
        )
        return MeshResult(mesh=mesh, confidences=confidences, depth=self.depth, elapsed_ms=elapsed_ms)
