#!/usr/bin/env python3
"""
proxymesh 設定管理

再構成パイプラインの設定値を一つのデータクラスにまとめ、
YAML ファイルとの相互変換と境界での検証を行います。
"""

import math
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

from . import get_logger, LOG_FORMAT_STYLES
from .constants import (
    DEFAULT_RESOLUTION,
    DEFAULT_MAX_OCTREE_DEPTH,
    DEFAULT_SUPPORT_FACTOR,
)
from .errors import ConfigurationError

logger = get_logger(__name__)

# パスとして扱う設定項目
_PATH_FIELDS = ("cloud_path", "mesh_path", "height_map_path", "samples_path")


@dataclass
class ReconstructionConfig:
    """再構成パイプライン設定"""
    # 入出力
    cloud_path: Optional[Path] = None
    mesh_path: Optional[Path] = None
    height_map_path: Optional[Path] = None   # PFM として保存（任意）
    samples_path: Optional[Path] = None      # 合成サンプルの PLY（任意）

    # ハイトマップ
    resolution: float = DEFAULT_RESOLUTION
    max_fill_iterations: Optional[int] = None

    # サンプル合成
    fuse_samples: bool = False

    # 表面再構成
    max_octree_depth: int = DEFAULT_MAX_OCTREE_DEPTH
    support_factor: float = DEFAULT_SUPPORT_FACTOR

    # ログ設定
    log_level: str = "INFO"
    log_format_style: str = "detailed"

    def _coerce(self, name: str, type_):
        """数値項目を型変換（失敗したら ConfigurationError）"""
        value = getattr(self, name)
        try:
            return type_(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be {type_.__name__}, got {value!r}") from None

    def validate(self) -> "ReconstructionConfig":
        """設定値を検証（不正なら ConfigurationError）"""
        resolution = self._coerce("resolution", float)
        if not math.isfinite(resolution) or resolution <= 0.0:
            raise ConfigurationError(f"resolution must be positive, got {self.resolution}")
        self.resolution = resolution

        if self.max_fill_iterations is not None:
            self.max_fill_iterations = self._coerce("max_fill_iterations", int)
            if self.max_fill_iterations < 1:
                raise ConfigurationError(
                    f"max_fill_iterations must be >= 1, got {self.max_fill_iterations}"
                )
        self.max_octree_depth = self._coerce("max_octree_depth", int)
        if self.max_octree_depth < 1:
            raise ConfigurationError(f"max_octree_depth must be >= 1, got {self.max_octree_depth}")
        self.support_factor = self._coerce("support_factor", float)
        if not self.support_factor > 0.0:
            raise ConfigurationError(f"support_factor must be positive, got {self.support_factor}")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log level: {self.log_level}")
        if self.log_format_style not in LOG_FORMAT_STYLES:
            raise ConfigurationError(f"Invalid log format style: {self.log_format_style}")

        self.fuse_samples = bool(self.fuse_samples)
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))

        # ハイトマップは PFM のみ（パイプライン実行前に弾く）
        if self.height_map_path is not None and self.height_map_path.suffix.lower() != ".pfm":
            raise ConfigurationError(
                f"height_map_path must be a .pfm file, got {self.height_map_path.name}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """設定オブジェクトを辞書に変換"""
        data = asdict(self)
        for name in _PATH_FIELDS:
            if data[name] is not None:
                data[name] = str(data[name])
        return data

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ReconstructionConfig":
        """辞書から設定オブジェクトを作成（未知のキーは警告して無視）"""
        known = {f.name for f in fields(cls)}
        config = cls()
        for key, value in (config_dict or {}).items():
            if key in known:
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown configuration key ignored: {key}")
        return config.validate()

    def merged(self, overrides: Dict[str, Any]) -> "ReconstructionConfig":
        """None 以外の値で上書きした新しい設定を返す"""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return ReconstructionConfig.from_dict(data)


def load_config(config_file: Optional[Path] = None) -> ReconstructionConfig:
    """
    設定ファイルを読み込み

    Args:
        config_file: 設定ファイルパス（Noneの場合はデフォルト設定）

    Returns:
        検証済みの設定
    """
    if config_file is None:
        logger.info("No config file given, using default configuration")
        return ReconstructionConfig().validate()

    config_file = Path(config_file)
    if not config_file.exists():
        raise ConfigurationError(f"Config file not found: {config_file}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config {config_file}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Config {config_file} must contain a mapping")

    config = ReconstructionConfig.from_dict(config_dict)
    logger.info(f"Configuration loaded from {config_file}")
    return config


def save_config(config: ReconstructionConfig, config_file: Path) -> None:
    """設定をファイルに保存"""
    config_file = Path(config_file)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, 'w', encoding='utf-8') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False,
                  allow_unicode=True, indent=2)

    logger.info(f"Configuration saved to {config_file}")
