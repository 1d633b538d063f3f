"""
proxymesh 表面再構成フェーズ

合成サンプルを再構成エンジンに渡し、抽出したメッシュから
信頼度 0 の頂点を取り除きます。
"""

from .sink import (
    SampleSink,
    MeshResult,
    PoissonSampleSink
)

from .postprocess import remove_zero_confidence_vertices

__all__ = [
    'SampleSink',
    'MeshResult',
    'PoissonSampleSink',
    'remove_zero_confidence_vertices'
]
