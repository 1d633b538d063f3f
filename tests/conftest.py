#!/usr/bin/env python3
"""
pytest共通設定とフィクスチャ

テスト実行時のロギング設定と、合成点群・ハイトマップなどの
テストデータを提供します。
"""

import pytest
import sys
import os
import tempfile
import numpy as np
from typing import Generator

# proxymesh モジュールのパス追加
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from proxymesh import setup_logging, get_logger
from proxymesh.data_types import PointCloud

# =============================================================================
# テストロギング設定
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """テスト全体のロギング設定"""
    setup_logging(level="DEBUG")
    logger = get_logger("test")
    logger.info("=== テストセッション開始 ===")
    yield
    logger.info("=== テストセッション終了 ===")


@pytest.fixture
def test_logger():
    """テスト用ロガー"""
    return get_logger("test")


@pytest.fixture
def temp_directory() -> Generator[str, None, None]:
    """一時ディレクトリ"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


# =============================================================================
# テストデータフィクスチャ
# =============================================================================

def make_building_cloud(
    extent: float = 20.0,
    spacing: float = 0.25,
    footprint=(6.0, 12.0),
    roof_height: float = 6.0
) -> PointCloud:
    """
    平らな地面の上に箱型の建物が1棟建つ航空写真風の点群を生成

    壁面の点は含みません（真上からの計測では壁が写らないため）。
    """
    coords = np.arange(0.0, extent + spacing / 2, spacing)
    xx, yy = np.meshgrid(coords, coords)
    xx = xx.ravel()
    yy = yy.ravel()

    lo, hi = footprint
    inside = (xx >= lo) & (xx <= hi) & (yy >= lo) & (yy <= hi)
    zz = np.where(inside, roof_height, 0.0)

    points = np.column_stack([xx, yy, zz])
    normals = np.tile([0.0, 0.0, 1.0], (len(points), 1))
    return PointCloud(
        points=points,
        normals=normals,
        scales=np.full(len(points), spacing),
        confidences=np.ones(len(points)),
    )


@pytest.fixture
def building_cloud() -> PointCloud:
    """建物1棟の点群"""
    return make_building_cloud()


@pytest.fixture
def random_points() -> np.ndarray:
    """ランダム点群 (500, 3)"""
    rng = np.random.default_rng(42)
    return rng.uniform(low=[-5.0, 2.0, 0.0], high=[15.0, 9.0, 3.0], size=(500, 3))


# =============================================================================
# テストスイート選択
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """テスト収集時の自動マーカー付与"""
    for item in items:
        if "pipeline" in item.nodeid or "cli" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
