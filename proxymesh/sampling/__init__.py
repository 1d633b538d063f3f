"""
proxymesh サンプル合成フェーズ

正規化済みハイトマップから不連続部を考慮したサンプルを合成し、
必要に応じて元点群のサンプルと融合して再構成エンジンへ渡します。
"""

from .index import SpatialIndex

from .discontinuity import (
    BORDER_MARGIN,
    CellClassification,
    SamplingStats,
    DiscontinuitySampler,
    classify_cells,
    gradient_normals,
    is_concave_corner,
    synthesize_samples
)

from .emission import (
    fused_cloud_samples,
    hand_off
)

__all__ = [
    # インデックス
    'SpatialIndex',

    # 不連続部
    'BORDER_MARGIN',
    'CellClassification',
    'SamplingStats',
    'DiscontinuitySampler',
    'classify_cells',
    'gradient_normals',
    'is_concave_corner',
    'synthesize_samples',

    # 受け渡し
    'fused_cloud_samples',
    'hand_off'
]
