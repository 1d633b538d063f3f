#!/usr/bin/env python3
"""
抽出メッシュの後処理
"""

import numpy as np
import open3d as o3d

from .. import get_logger
from .sink import MeshResult

logger = get_logger(__name__)


def remove_zero_confidence_vertices(result: MeshResult) -> MeshResult:
    """
    信頼度が正確に 0 の頂点を削除（接続する三角形も削除）

    Args:
        result: 抽出結果

    Returns:
        頂点を削除した新しい MeshResult（入力は変更しない）
    """
    remove = np.asarray(result.confidences) == 0.0

    mesh = o3d.geometry.TriangleMesh(result.mesh)
    if np.any(remove):
        mesh.remove_vertices_by_mask(remove.tolist())
    if not mesh.has_vertex_normals():
        mesh.compute_vertex_normals()

    logger.info(f"Removed {int(np.count_nonzero(remove))} zero-confidence vertices")
    return MeshResult(
        mesh=mesh,
        confidences=np.asarray(result.confidences)[~remove],
        depth=result.depth,
        elapsed_ms=result.elapsed_ms,
    )
