"""
proxymesh ハイトマップ生成フェーズ

点群から 2.5D ハイトマップを作成し、外れ値除去・穴埋め・地面正規化を行います。

処理フロー:
1. バウンディングボックスとグリッドサイズ (bounds.py)
2. 最大高度ラスタライズ (raster.py)
3. 中央値フィルタと穴埋め (filters.py)
4. 地面レベル正規化 (normalize.py)
5. PFM 書き出し (export.py)
"""

from .bounds import (
    compute_bounding_box,
    compute_grid_size,
    project_to_cells
)

from .raster import (
    create_empty_heightmap,
    rasterize_max_height
)

from .filters import (
    HoleFillResult,
    median_filter,
    fill_holes_step,
    fill_holes
)

from .normalize import (
    estimate_ground_level,
    normalize_ground
)

from .export import (
    save_height_map,
    load_height_map
)

__all__ = [
    # グリッド
    'compute_bounding_box',
    'compute_grid_size',
    'project_to_cells',

    # ラスタライズ
    'create_empty_heightmap',
    'rasterize_max_height',

    # フィルタ
    'HoleFillResult',
    'median_filter',
    'fill_holes_step',
    'fill_holes',

    # 正規化
    'estimate_ground_level',
    'normalize_ground',

    # 書き出し
    'save_height_map',
    'load_height_map'
]
