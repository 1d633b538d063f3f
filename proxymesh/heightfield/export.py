#!/usr/bin/env python3
"""
ハイトマップの書き出し（確認用）

正規化済みハイトマップを単一チャネルの PFM として保存します。
"""

from pathlib import Path

import cv2
import numpy as np

from .. import get_logger

logger = get_logger(__name__)


def save_height_map(hmap: np.ndarray, path: Path) -> Path:
    """
    ハイトマップを PFM ファイルに保存

    Args:
        hmap: ハイトマップ (H, W)
        path: 出力パス（拡張子 .pfm）

    Returns:
        保存したパス
    """
    path = Path(path)
    if path.suffix.lower() != ".pfm":
        raise ValueError(f"Height map must be saved as .pfm, got {path.name}")

    path.parent.mkdir(parents=True, exist_ok=True)
    image = np.ascontiguousarray(hmap, dtype=np.float32)
    if not cv2.imwrite(str(path), image):
        raise IOError(f"Could not write height map to {path}")

    logger.info(f"Height map saved to {path} ({image.shape[1]}x{image.shape[0]})")
    return path


def load_height_map(path: Path) -> np.ndarray:
    """保存済み PFM を読み込む（確認・テスト用）"""
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise IOError(f"Could not read height map from {path}")
    return image
