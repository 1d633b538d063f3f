#!/usr/bin/env python3
"""
proxymesh メインパッケージ

点群からハイトマップを生成し、不連続部（建物の壁面など）を補うサンプルを
合成して表面再構成エンジンへ渡すためのパッケージです。
共通のロギング機能もここで提供します。
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# プロジェクト情報
__version__ = "0.1.0"
__author__ = "proxymesh Development Team"

# パッケージロガー名（モジュールロガーはこの子になる）
LOGGER_NAME = "proxymesh"

# ログフォーマット（パイプライン段階の進捗はロガー名で区別できるようにする）
LOG_FORMAT_STYLES = {
    "simple": "%(levelname)s: %(message)s",
    "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
}


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    proxymesh パッケージロガーの設定

    ルートロガーには触れず、"proxymesh" 以下のロガーにだけハンドラーを付けます。
    ライブラリとして組み込まれた場合も呼び出し側のログ設定を壊しません。

    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルパス（Noneならコンソールのみ）
        format_style: フォーマットスタイル ("simple", "detailed")

    Returns:
        設定済みパッケージロガー
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    log_format = LOG_FORMAT_STYLES.get(format_style, LOG_FORMAT_STYLES["detailed"])
    formatter = logging.Formatter(log_format, datefmt='%H:%M:%S')

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(numeric_level)
    package_logger.propagate = False

    # 再設定時は以前のハンドラーを外す
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    proxymesh 配下のロガーを取得

    Args:
        name: ロガー名（通常は __name__）。パッケージ外の名前は "proxymesh." の下に置く

    Returns:
        ロガー
    """
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = [
    '__version__',
    'LOGGER_NAME',
    'LOG_FORMAT_STYLES',
    'setup_logging',
    'get_logger',
]
