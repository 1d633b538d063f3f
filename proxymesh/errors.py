#!/usr/bin/env python3
"""
例外定義

ライブラリ側は例外を送出し、致命的エラーとしての終了処理は CLI が行います。
"""


class ProxyMeshError(Exception):
    """proxymesh の基底例外"""


class ConfigurationError(ProxyMeshError, ValueError):
    """設定値が不正"""


class CloudLoadError(ProxyMeshError):
    """点群の読み込み失敗（破損・面情報を含む等）"""


class DegenerateCloudError(ProxyMeshError):
    """バウンディングボックスの体積がゼロ以下"""


class EmptyHeightFieldError(ProxyMeshError):
    """有効な高さを持つセルが一つも無い"""


class ReconstructionError(ProxyMeshError):
    """表面再構成の失敗"""
