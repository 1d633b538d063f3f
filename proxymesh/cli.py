#!/usr/bin/env python3
"""
プロキシメッシュ生成コマンド

点群からハイトマップを作り、不連続部のサンプルを補って表面を再構成します。

    generate-proxy-mesh [OPTS] CLOUD OUT_MESH
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__, setup_logging, get_logger
from .config import ReconstructionConfig, load_config
from .constants import DEFAULT_RESOLUTION, DEFAULT_MAX_OCTREE_DEPTH, DEFAULT_SUPPORT_FACTOR
from .errors import ProxyMeshError
from .pipeline import ProxyMeshPipeline


def create_argument_parser() -> argparse.ArgumentParser:
    """引数パーサーを作成"""
    parser = argparse.ArgumentParser(
        prog="generate-proxy-mesh",
        description="Generate a discontinuity-aware proxy mesh from an oriented point cloud"
    )
    parser.add_argument('cloud', type=Path, help='Input point cloud (PLY)')
    parser.add_argument('mesh', type=Path, help='Output mesh (PLY)')

    # ハイトマップ関連オプション
    hmap_group = parser.add_argument_group('Height Map Options')
    hmap_group.add_argument('-r', '--resolution', type=float, default=None,
                            help=f'Height map resolution [{DEFAULT_RESOLUTION}]')
    hmap_group.add_argument('-H', '--height-map', type=Path, default=None,
                            help='Save height map as PFM file')
    hmap_group.add_argument('--max-fill-iterations', type=int, default=None,
                            help='Upper bound on hole filling passes [unbounded]')

    # サンプル関連オプション
    sample_group = parser.add_argument_group('Sample Options')
    sample_group.add_argument('-f', '--fuse-samples', action='store_true', default=None,
                              help='Fuse synthesized samples with the original cloud')
    sample_group.add_argument('-s', '--samples', type=Path, default=None,
                              help='Save synthesized samples as PLY point cloud')

    # 再構成関連オプション
    recon_group = parser.add_argument_group('Reconstruction Options')
    recon_group.add_argument('--max-octree-depth', type=int, default=None,
                             help=f'Maximum octree depth [{DEFAULT_MAX_OCTREE_DEPTH}]')
    recon_group.add_argument('--support-factor', type=float, default=None,
                             help=f'Sample support radius in multiples of its scale [{DEFAULT_SUPPORT_FACTOR}]')

    # 一般オプション
    parser.add_argument('-c', '--config', type=Path, default=None,
                        help='YAML configuration file (command line options take precedence)')
    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default=None,
                        help='Log level [INFO]')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def create_configuration(args: argparse.Namespace) -> ReconstructionConfig:
    """コマンドライン引数から設定を作成"""
    base = load_config(args.config) if args.config is not None else ReconstructionConfig()
    return base.merged({
        'cloud_path': args.cloud,
        'mesh_path': args.mesh,
        'resolution': args.resolution,
        'height_map_path': args.height_map,
        'max_fill_iterations': args.max_fill_iterations,
        'fuse_samples': args.fuse_samples,
        'samples_path': args.samples,
        'max_octree_depth': args.max_octree_depth,
        'support_factor': args.support_factor,
        'log_level': 'DEBUG' if args.verbose else args.log_level,
    })


def main(argv: Optional[List[str]] = None) -> int:
    """メイン関数"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(level='DEBUG' if args.verbose else (args.log_level or 'INFO'))
    logger = get_logger(__name__)

    try:
        config = create_configuration(args)
        setup_logging(level=config.log_level, format_style=config.log_format_style)
        logger.debug(f"Configuration: {config}")

        pipeline = ProxyMeshPipeline(config)
        result = pipeline.run()
    except ProxyMeshError as e:
        logger.error(f"{e}")
        return 1
    except IOError as e:
        logger.error(f"I/O error: {e}")
        return 1

    logger.info(
        f"Done: {len(result.samples)} samples, "
        f"{result.mesh.num_vertices if result.mesh else 0} mesh vertices"
    )
    stats = pipeline.get_performance_stats()
    for stage, elapsed_ms in stats['stage_times_ms'].items():
        logger.debug(f"  {stage}: {elapsed_ms:.1f}ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
