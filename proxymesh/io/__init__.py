"""
proxymesh 入出力
"""

from .cloud import (
    load_cloud,
    save_cloud,
    save_samples,
    save_mesh
)

__all__ = [
    'load_cloud',
    'save_cloud',
    'save_samples',
    'save_mesh'
]
