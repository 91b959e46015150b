"""
cnnbatch.utils: ユーティリティモジュール.

設定ファイル読み込み, 画像入出力, レイテンシ計測などの汎用機能を提供
"""

from .config_loader import ConfigLoader
from .image_io import (
    collect_image_paths,
    read_image,
    read_images,
    resize_image,
    resize_plane,
    write_image,
)
from .performance_metrics import PerformanceMetrics

__all__ = [
    "ConfigLoader",
    "PerformanceMetrics",
    "collect_image_paths",
    "read_image",
    "read_images",
    "resize_image",
    "resize_plane",
    "write_image",
]
