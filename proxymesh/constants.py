#!/usr/bin/env python3
"""
共通定数・設定値

ハイトマップ処理とサンプル合成で使用される定数を一元管理します。
"""

from typing import Final, Tuple

import numpy as np

# =============================================================================
# ハイトマップ
# =============================================================================

# 「データなし」を表す番兵値（float32 の最小有限値）
LOWEST: Final[float] = float(np.finfo(np.float32).min)

# ハイトマップのデータ型
HEIGHT_DTYPE = np.float32

# 穴埋めに必要な最小有効近傍数
MIN_FILL_NEIGHBORS: Final[int] = 3

# =============================================================================
# サンプル合成
# =============================================================================

# 合成サンプルの信頼度
SYNTHETIC_CONFIDENCE: Final[float] = 0.5

# 合成サンプルの色（青）
SYNTHETIC_COLOR: Final[Tuple[float, float, float]] = (0.0, 0.0, 1.0)

# 元点群から取り込んだサンプルの色（灰）
FUSED_COLOR: Final[Tuple[float, float, float]] = (0.7, 0.7, 0.7)

# 上向き法線
UP_NORMAL: Final[Tuple[float, float, float]] = (0.0, 0.0, 1.0)

# =============================================================================
# デフォルト設定
# =============================================================================

DEFAULT_RESOLUTION: Final[float] = 1.0
DEFAULT_MAX_OCTREE_DEPTH: Final[int] = 10
DEFAULT_SUPPORT_FACTOR: Final[float] = 2.0

# 点群に属性が無い場合の信頼度
DEFAULT_POINT_CONFIDENCE: Final[float] = 1.0

# PLY 頂点属性名（スケールは "value" として保存される）
PLY_SCALE_ATTRIBUTE: Final[str] = "value"
PLY_CONFIDENCE_ATTRIBUTE: Final[str] = "confidence"

# 数値計算の許容誤差
NUMERICAL_TOLERANCE: Final[float] = 1e-12
