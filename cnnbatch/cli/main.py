#!/usr/bin/env python3
"""cnnbatch 統合CLI (検出+マスク, 頭部姿勢, 埋め込みベクトル).

使用例:
    cnnbatch mask-rcnn -m models/mask_rcnn.onnx -i images/ -o results/
    cnnbatch head-pose -m models/head_pose.xml -i face.png --backend openvino
    cnnbatch embed -m models/reid.onnx -i faces/ --batch-size 8
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, NoReturn, Optional

import numpy as np
from pydantic import ValidationError

from cnnbatch.cli.arg_types import positive_int, unit_float
from cnnbatch.config import DemoConfig
from cnnbatch.decoders import HeadPoseEstimator, MaskRcnnDecoder, VectorCNN
from cnnbatch.engine import BACKEND_NAMES
from cnnbatch.errors import ConfigurationError
from cnnbatch.inference import (
    BatchAdapter,
    BlobMap,
    FaceInferenceResults,
    load_model,
)
from cnnbatch.logging import LoggerManager
from cnnbatch.utils import (
    ConfigLoader,
    PerformanceMetrics,
    collect_image_paths,
    read_images,
    write_image,
)
from cnnbatch.visualization import ClassColorMap, MaskOverlayRenderer

logger: logging.Logger = LoggerManager().get_logger(__name__)


class DemoArgumentParser(argparse.ArgumentParser):
    """引数エラーを ConfigurationError として送出するパーサー."""

    def error(self, message: str) -> NoReturn:
        """argparseの既定動作 (終了コード2) の代わりに例外を送出する."""
        raise ConfigurationError(message)


def _load_inputs(config: DemoConfig) -> tuple[List[np.ndarray], List[Path]]:
    """入力画像を読み込む. 1枚も読めない場合は致命的エラー."""
    image_paths = collect_image_paths(config.inputs)
    if not image_paths:
        raise RuntimeError("対象の画像が見つかりません")
    images, loaded = read_images(image_paths)
    if not images:
        raise RuntimeError("読み込める画像がありません")
    logger.info(f"入力画像: {len(images)}枚")
    return images, loaded


def mask_rcnn_command(config: DemoConfig) -> None:
    """検出+マスクを推論し, 注釈付き画像 out<index>.png を出力する."""
    images, _ = _load_inputs(config)
    mask_config = config.mask_rcnn

    handle = load_model(
        config.model_path,
        device=config.device,
        max_batch_size=config.max_batch_size,
        backend=config.backend,
        allow_image_info=True,
    )
    adapter = BatchAdapter(handle, swap_rb=config.swap_rb)
    decoder = MaskRcnnDecoder(
        batch_size=handle.batch_size,
        detection_output_name=mask_config.detection_output_name,
        masks_name=mask_config.masks_name,
        probability_threshold=mask_config.probability_threshold,
        mask_threshold=mask_config.mask_threshold,
    )
    renderer = MaskOverlayRenderer(ClassColorMap(), alpha=mask_config.alpha)
    output_images = [image.copy() for image in images]

    metrics = PerformanceMetrics()
    start_time = time.perf_counter()
    processed = 0

    def fetch_results(blobs: BlobMap, batch_size: int) -> None:
        nonlocal processed
        chunk = images[processed : processed + batch_size]
        for detection in decoder.decode(blobs, chunk, batch_size, batch_offset=processed):
            renderer.render_detection(output_images[detection.batch_index], detection)
        processed += batch_size

    adapter.infer_batch(images, fetch_results)
    metrics.update(start_time)

    output_dir = Path(config.output_dir)
    for i, image in enumerate(output_images):
        image_path = write_image(image, output_dir / f"out{i}.png")
        logger.info(f"Image {image_path.name} created!")

    logger.info("Metrics report:")
    logger.info(f"\tLatency: {metrics.total_latency_ms:.1f} ms")


def head_pose_command(config: DemoConfig) -> None:
    """画像ごとに頭部姿勢角を推定してログ出力する."""
    images, loaded = _load_inputs(config)

    handle = load_model(
        config.model_path,
        device=config.device,
        max_batch_size=config.max_batch_size,
        backend=config.backend,
    )
    estimator = HeadPoseEstimator(handle, swap_rb=config.swap_rb)

    metrics = PerformanceMetrics()
    for path, image in zip(loaded, images):
        height, width = image.shape[:2]
        face_box = config.head_pose.face_box or (0, 0, width, height)
        face = FaceInferenceResults(face_bounding_box=face_box)

        start_time = time.perf_counter()
        angles = estimator.estimate(image, face)
        metrics.update(start_time)
        logger.info(
            f"{path.name}: yaw={angles.yaw:.2f} pitch={angles.pitch:.2f} "
            f"roll={angles.roll:.2f}"
        )

    logger.info("Metrics report:")
    logger.info(f"\tLatency: {metrics.average_latency_ms:.1f} ms")


def embed_command(config: DemoConfig) -> None:
    """画像ごとの埋め込みベクトルを計算し, .npy ファイルへ保存する."""
    images, _ = _load_inputs(config)

    handle = load_model(
        config.model_path,
        device=config.device,
        max_batch_size=config.max_batch_size,
        backend=config.backend,
    )
    network = VectorCNN(handle, swap_rb=config.swap_rb)

    metrics = PerformanceMetrics()
    start_time = time.perf_counter()
    vectors = network.compute_batch(images, config.embedding.output_shape)
    metrics.update(start_time)

    output_path = Path(config.embedding.output_file)
    if not output_path.is_absolute():
        output_path = Path(config.output_dir) / output_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.save(output_path, np.stack(vectors))

    logger.info(f"埋め込みベクトル: {len(vectors)}件, 形状 {vectors[0].shape}")
    logger.info(f"保存先: {output_path}")
    logger.info("Metrics report:")
    logger.info(f"\tLatency: {metrics.total_latency_ms:.1f} ms")


COMMANDS: Dict[str, Callable[[DemoConfig], None]] = {
    "mask-rcnn": mask_rcnn_command,
    "head-pose": head_pose_command,
    "embed": embed_command,
}


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """全デモ共通の引数を追加する."""
    parser.add_argument("--model", "-m", dest="model_path", help="モデルファイルパス")
    parser.add_argument(
        "--input", "-i", dest="inputs", nargs="+", help="画像ファイルまたはディレクトリ"
    )
    parser.add_argument("--device", "-d", help="推論デバイス (default: CPU)")
    parser.add_argument(
        "--backend", choices=BACKEND_NAMES, help="推論バックエンド (default: onnxruntime)"
    )
    parser.add_argument(
        "--batch-size", "-b", dest="max_batch_size", type=positive_int, help="最大バッチサイズ"
    )
    parser.add_argument("--output", "-o", dest="output_dir", help="結果出力ディレクトリ")
    parser.add_argument("--config", "-c", help="設定ファイルパス (Python形式)")
    parser.add_argument(
        "--no-swap-rb",
        dest="swap_rb",
        action="store_false",
        default=None,
        help="入力画像をBGRへ並べ替えない",
    )


def build_parser() -> DemoArgumentParser:
    """CLIのパーサーを組み立てる."""
    parser = DemoArgumentParser(
        prog="cnnbatch",
        description="cnnbatch - 推論エンジンのバッチ推論デモ",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用例:
  検出+マスク (out<index>.png を出力)
  cnnbatch mask-rcnn -m mask_rcnn.onnx -i images/ -o results/

  頭部姿勢 (顔領域を指定)
  cnnbatch head-pose -m head_pose.xml -i face.png --backend openvino --face-box 10 10 60 60

  埋め込みベクトル (8枚ずつバッチ推論)
  cnnbatch embed -m reid.onnx -i faces/ -b 8 --output-shape 16 16
        """,
    )
    parser.add_argument("--debug", action="store_true", help="DEBUGログを有効化")

    subparsers = parser.add_subparsers(dest="command", help="サブコマンド")

    mask_parser = subparsers.add_parser("mask-rcnn", help="検出+インスタンスマスク")
    _add_common_arguments(mask_parser)
    mask_parser.add_argument("--detection-output-name", help="検出出力の名前")
    mask_parser.add_argument("--masks-name", help="マスク出力の名前")
    mask_parser.add_argument(
        "--probability-threshold", type=unit_float, help="検出確率のしきい値"
    )

    head_parser = subparsers.add_parser("head-pose", help="頭部姿勢推定")
    _add_common_arguments(head_parser)
    head_parser.add_argument(
        "--face-box",
        nargs=4,
        type=int,
        metavar=("X", "Y", "W", "H"),
        help="顔領域 (省略時は画像全体)",
    )

    embed_parser = subparsers.add_parser("embed", help="埋め込みベクトル計算")
    _add_common_arguments(embed_parser)
    embed_parser.add_argument(
        "--output-shape",
        nargs=2,
        type=positive_int,
        metavar=("H", "W"),
        help="各ベクトルを整形する形状",
    )
    embed_parser.add_argument("--output-file", help="保存ファイル名 (default: embeddings.npy)")

    return parser


def _overrides(args: argparse.Namespace, names: List[str]) -> Dict[str, Any]:
    """指定されたCLI引数のうち値のあるものだけを返す."""
    values = {name: getattr(args, name, None) for name in names}
    return {name: value for name, value in values.items() if value is not None}


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """デモ別のネスト設定を辞書として取り出す.

    Raises:
        ConfigurationError: 辞書以外が指定されている場合.
    """
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} は辞書で指定してください: {value!r}")
    return value


def resolve_config(args: argparse.Namespace) -> DemoConfig:
    """設定ファイルとCLI引数を統合してDemoConfigを作る. CLI引数が優先される.

    Raises:
        ConfigurationError: 必須項目の欠落や検証エラーの場合.
    """
    config: Dict[str, Any] = {}
    if args.config:
        try:
            config = ConfigLoader.load_config(args.config)
        except FileNotFoundError as e:
            raise ConfigurationError(str(e)) from e
        except Exception as e:
            raise ConfigurationError(
                f"設定ファイルを読み込めません: {args.config}: {type(e).__name__}: {e}"
            ) from e

    config.update(
        _overrides(
            args,
            ["model_path", "inputs", "device", "backend", "max_batch_size", "output_dir", "swap_rb"],
        )
    )
    config["mask_rcnn"] = {
        **_section(config, "mask_rcnn"),
        **_overrides(
            args, ["detection_output_name", "masks_name", "probability_threshold"]
        ),
    }
    head_pose = _overrides(args, ["face_box"])
    config["head_pose"] = {**_section(config, "head_pose"), **head_pose}
    embedding = _overrides(args, ["output_shape", "output_file"])
    config["embedding"] = {**_section(config, "embedding"), **embedding}

    if not config.get("model_path"):
        raise ConfigurationError("Parameter -m is not set")
    if not config.get("inputs"):
        raise ConfigurationError("Parameter -i is not set")
    if isinstance(config["inputs"], str):
        config["inputs"] = [config["inputs"]]

    try:
        return DemoConfig.from_dict(config)
    except (ValidationError, TypeError, ValueError) as e:
        raise ConfigurationError(f"設定ファイルのバリデーションに失敗しました: {e}") from e


def main(argv: Optional[List[str]] = None) -> None:
    """メイン関数.

    引数・設定の不備は使い方を表示して終了コード0,
    実行中の致命的エラーはログ出力して終了コード1で終了する.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        LoggerManager().configure(debug=args.debug)
        if args.command is None:
            parser.print_help()
            sys.exit(0)
        config = resolve_config(args)
    except ConfigurationError as e:
        logger.error(str(e))
        parser.print_usage()
        sys.exit(0)

    try:
        COMMANDS[args.command](config)
    except Exception as e:
        logger.error(f"{type(e).__name__}: {e}")
        logger.debug("詳細", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
