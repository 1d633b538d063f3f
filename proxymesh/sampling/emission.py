#!/usr/bin/env python3
"""
サンプルの取り込みと再構成エンジンへの受け渡し
"""

import numpy as np

from .. import get_logger
from ..constants import FUSED_COLOR, DEFAULT_POINT_CONFIDENCE
from ..data_types import PointCloud, SampleSet
from ..errors import CloudLoadError

logger = get_logger(__name__)


def fused_cloud_samples(cloud: PointCloud, default_scale: float) -> SampleSet:
    """
    元点群の各点をサンプルに変換（融合モード）

    スケール・信頼度は点ごとの値を使い、無い場合は default_scale と
    DEFAULT_POINT_CONFIDENCE で補います。

    Args:
        cloud: 元点群（法線必須）
        default_scale: スケール属性が無い場合のスケール

    Returns:
        サンプル集合
    """
    if not cloud.has_normals:
        raise CloudLoadError("Fusing samples requires per-vertex normals")

    n = cloud.num_points
    scales = cloud.scales if cloud.scales is not None else np.full(n, default_scale)
    confidences = (
        cloud.confidences if cloud.confidences is not None
        else np.full(n, DEFAULT_POINT_CONFIDENCE)
    )

    return SampleSet(
        positions=np.asarray(cloud.points, dtype=np.float64),
        normals=np.asarray(cloud.normals, dtype=np.float64),
        scales=np.asarray(scales, dtype=np.float64).reshape(n),
        confidences=np.asarray(confidences, dtype=np.float64).reshape(n),
        colors=np.tile(np.asarray(FUSED_COLOR, dtype=np.float64), (n, 1)),
    )


def hand_off(sink, samples: SampleSet):
    """
    サンプルを再構成エンジンへ渡してメッシュを抽出

    全サンプルの挿入後、深さ制限・ボクセル計算・サンプル解放を順に要求し、
    最後に等値面を抽出します。insert_many を持たない受け渡し先には
    insert でサンプルを1つずつ渡します。

    Args:
        sink: SampleSink 実装
        samples: 挿入するサンプル集合

    Returns:
        sink.extract_mesh() の結果
    """
    logger.info(f"Inserting {len(samples)} samples")
    insert_many = getattr(sink, "insert_many", None)
    if insert_many is not None:
        insert_many(samples)
    else:
        for sample in samples:
            sink.insert(sample)

    sink.limit_octree_level()
    sink.compute_voxels()
    sink.clear_samples()
    return sink.extract_mesh()
